from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import requests
from google.cloud import secretmanager

from invoicing.config import get_env
from invoicing.models import Branch, HistoryEntry, InvoiceTotals, RateQuote, ShipmentDetails
from invoicing.normalize import RecordNormalizer
from invoicing.parse_utils import ledger_date_text

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKER = "PASTE_YOUR_NEW_WEB_APP_URL_HERE"
DEFAULT_TIMEOUT = 30


def _timeout() -> float:
    raw = get_env("LEDGER_TIMEOUT_SECONDS")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid LEDGER_TIMEOUT_SECONDS value: %s", raw)
        return DEFAULT_TIMEOUT


def _get_ledger_url() -> Optional[str]:
    secret_name = get_env("LEDGER_URL_SECRET_NAME")
    if secret_name:
        client = secretmanager.SecretManagerServiceClient()
        version = client.access_secret_version(name=f"{secret_name}/versions/latest")
        return version.payload.data.decode("utf-8").strip()
    return get_env("LEDGER_URL")


def _get_history_url() -> Optional[str]:
    return get_env("LEDGER_HISTORY_URL") or _get_ledger_url()


def _resolve_url(url: Optional[str], resolver) -> Optional[str]:
    if url:
        return url
    try:
        return resolver()
    except Exception as exc:
        logger.warning("Could not resolve ledger URL: %s", exc)
        return None


def is_configured(url: Optional[str]) -> bool:
    return bool(url) and PLACEHOLDER_MARKER not in url


def _records_from_body(body: Any) -> List[Any]:
    if isinstance(body, list):
        return body
    if not isinstance(body, dict):
        return []
    if body.get("result") == "error":
        logger.warning("Ledger returned an error: %s", body.get("message"))
        return []
    data = body.get("data") or []
    return data if isinstance(data, list) else []


def fetch_raw_records(url: Optional[str] = None) -> List[Any]:
    """Raw rows from the ledger; empty when the ledger is unset or unreachable."""
    url = _resolve_url(url, _get_history_url)
    if not is_configured(url):
        logger.warning("History fetch skipped: ledger URL not configured")
        return []

    try:
        resp = requests.get(
            url,
            params={"t": int(time.time() * 1000)},
            headers={"Accept": "application/json"},
            timeout=_timeout(),
        )
        resp.raise_for_status()
        body = resp.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Failed to fetch history: %s", exc)
        return []

    return _records_from_body(body)


def fetch_history(branches: Iterable[Branch] = (), url: Optional[str] = None) -> List[HistoryEntry]:
    records = fetch_raw_records(url)
    return RecordNormalizer(branches).normalize_all(records)


def invoice_exists(invoice_no: str, entries: Iterable[HistoryEntry]) -> bool:
    if not invoice_no:
        return False
    return any(entry.invoice_no == invoice_no for entry in entries)


def build_ledger_payload(
    shipment: ShipmentDetails,
    quote: RateQuote,
    totals: InvoiceTotals,
) -> Dict[str, Any]:
    """Flatten an invoice into the field set the ledger appends as one row."""
    branch = shipment.branch.model_dump() if shipment.branch else None
    return {
        "date": ledger_date_text(shipment.date),
        "invoiceNo": shipment.invoice_no,
        "branch": branch,
        "country": shipment.country,
        "service": shipment.service,
        "senderName": shipment.sender_name,
        "senderPh": shipment.sender_phone,
        "consName": shipment.consignee_name,
        "consPh": shipment.consignee_phone,
        "consEmail": shipment.consignee_email,
        "consAddr": shipment.consignee_address,
        "consCity": shipment.consignee_city,
        "consZip": shipment.consignee_zip,
        "items": [item.model_dump() for item in shipment.items],
        "totalBoxes": shipment.total_boxes,
        "actWt": shipment.actual_weight_kg,
        "volWt": shipment.volumetric_weight_kg,
        "chgWt": quote.chargeable_weight_kg,
        "ratePerKg": quote.rate_per_kg,
        "total": quote.freight_total,
        "vacQty": shipment.vacuum_seal_qty,
        "vacPrice": shipment.vacuum_seal_unit_price,
        "boxQty": shipment.box_qty,
        "boxPrice": shipment.box_unit_price,
        "insurance": totals.insurance,
        "grandTotal": totals.grand_total,
        "amountPaid": totals.amount_paid,
        "balanceDue": totals.balance_due,
        "payMethod": shipment.payment_method,
    }


def submit_invoice(payload: Dict[str, Any], url: Optional[str] = None) -> bool:
    """Append one invoice to the ledger. Returns whether the ledger accepted it."""
    url = _resolve_url(url, _get_ledger_url)
    if not is_configured(url):
        logger.warning("Ledger sync skipped: ledger URL not configured")
        return False

    try:
        # Apps Script web apps only read the raw body, so send JSON as text/plain.
        resp = requests.post(
            url,
            data=json.dumps(payload),
            headers={"Content-Type": "text/plain;charset=utf-8"},
            timeout=_timeout(),
        )
        resp.raise_for_status()
        body = resp.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("Ledger sync failed for %s: %s", payload.get("invoiceNo"), exc)
        return False

    if not isinstance(body, dict) or body.get("result") != "success":
        message = body.get("message") if isinstance(body, dict) else body
        logger.error("Ledger rejected %s: %s", payload.get("invoiceNo"), message)
        return False

    logger.info("Synced to ledger", extra={"invoice_no": payload.get("invoiceNo")})
    return True
