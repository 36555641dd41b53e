# invoicing/export.py
from __future__ import annotations

import csv
import io
from datetime import date
from typing import Iterable, Optional

from invoicing.models import HistoryEntry


EXPORT_HEADERS = [
    "Date",
    "Invoice No",
    "Sender",
    "Sender Ph",
    "Consignee",
    "Cons Email",
    "Country",
    "Weight (Kg)",
    "Boxes",
    "Total (LKR)",
    "Paid",
    "Balance",
]

# Spreadsheet tools read UTF-8 reliably only with a BOM.
BOM = "\ufeff"


def _phone_cell(phone: str) -> str:
    # A leading apostrophe keeps spreadsheets from reading the number as numeric.
    return f"'{phone}"


def _amount_cell(value: float) -> str:
    return f"{value:.2f}"


def _weight_cell(value: float) -> str:
    return f"{value:g}"


def entry_row(entry: HistoryEntry) -> list[str]:
    return [
        entry.date,
        entry.invoice_no,
        entry.sender_name,
        _phone_cell(entry.sender_phone),
        entry.consignee_name,
        entry.consignee_email,
        entry.country,
        _weight_cell(entry.chargeable_weight_kg),
        str(entry.total_boxes),
        _amount_cell(entry.grand_total),
        _amount_cell(entry.amount_paid),
        _amount_cell(entry.balance_due),
    ]


def export_csv(entries: Iterable[HistoryEntry], include_bom: bool = True) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for entry in entries:
        writer.writerow(entry_row(entry))
    content = buffer.getvalue()
    return BOM + content if include_bom else content


def export_filename(day: Optional[date] = None) -> str:
    return f"GGX_Archive_{(day or date.today()).isoformat()}.csv"
