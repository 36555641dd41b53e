from __future__ import annotations

from urllib.parse import quote

from invoicing.models import HistoryEntry
from invoicing.parse_utils import digits_only


COUNTRY_CODE = "94"
WHATSAPP_BASE = "https://wa.me"


def normalize_phone(phone: str | None) -> str:
    """Local numbers to international form: 0771234567 / 771234567 -> 94771234567."""
    digits = digits_only(phone)
    if digits.startswith("0"):
        return COUNTRY_CODE + digits[1:]
    if len(digits) == 9:
        return COUNTRY_CODE + digits
    return digits


def format_lkr(amount: float) -> str:
    return f"LKR {amount:,.2f}"


def invoice_message(entry: HistoryEntry) -> str:
    return (
        "*GO GLOBAL EXPRESS INVOICE (COPY)*\n\n"
        f"Invoice No: {entry.invoice_no}\n"
        f"Date: {entry.date}\n\n"
        f"*Customer:* {entry.sender_name}\n"
        f"*Consignee:* {entry.consignee_name} ({entry.country})\n\n"
        f"*TOTAL: {format_lkr(entry.grand_total)}*\n\n"
        "Thank you for shipping with us!"
    )


def whatsapp_link(entry: HistoryEntry) -> str:
    phone = normalize_phone(entry.sender_phone)
    return f"{WHATSAPP_BASE}/{phone}?text={quote(invoice_message(entry), safe='')}"
