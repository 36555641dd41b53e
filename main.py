from __future__ import annotations

import base64
import logging
import os
import secrets
from datetime import date
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import Response
from pydantic import BaseModel

from invoicing.ai_prefill import prefill_from_image
from invoicing.archive import HistoryArchive
from invoicing.config import env_flag, load_branches, load_rate_table
from invoicing.export import export_csv, export_filename
from invoicing.ledger_client import (
    build_ledger_payload,
    fetch_history,
    invoice_exists,
    submit_invoice,
)
from invoicing.messaging import whatsapp_link
from invoicing.models import InvoiceTotals, RateQuote, ShipmentDetails, ShipmentPrefill
from invoicing.query import daily_stats
from invoicing.rate_engine import InvalidWeightError, RateEngine, UnknownRateError
from invoicing.totals import compute, totals_for_entry


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("invoicing")

APP_VERSION = os.getenv("APP_VERSION", "dev")

BASIC_USER = os.getenv("BASIC_USER")
BASIC_PASS = os.getenv("BASIC_PASS")
PREFILL_ENABLED = env_flag("PREFILL_ENABLED")

RATE_ENGINE = RateEngine(load_rate_table())
BRANCHES = load_branches()

app = FastAPI()


class QuoteRequest(BaseModel):
    country: str
    service: str
    actual_weight_kg: float
    volumetric_weight_kg: float = 0.0


class TotalsRequest(BaseModel):
    freight_total: float
    vacuum_seal_qty: float = 0.0
    vacuum_seal_unit_price: float = 0.0
    box_qty: float = 0.0
    box_unit_price: float = 0.0
    insurance: float = 0.0
    amount_paid: float = 0.0


class PrefillRequest(BaseModel):
    content: str
    mime_type: str


@app.get("/version")
async def version() -> Dict[str, Any]:
    return {
        "status": "ok",
        "revision": os.getenv("K_REVISION"),
        "service": os.getenv("K_SERVICE"),
        "app_version": APP_VERSION,
    }


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


def _basic_credentials(header: Optional[str]) -> Optional[tuple[str, str]]:
    scheme, _, token = (header or "").partition(" ")
    if scheme.lower() != "basic" or not token.strip():
        return None
    try:
        decoded = base64.b64decode(token.strip(), validate=True).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    return (username, password) if sep else None


def _same(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def _require_clerk(request: Request) -> None:
    """Gate ledger writes and exports behind the counter clerk's basic-auth login."""
    if not BASIC_USER or not BASIC_PASS:
        logger.error("BASIC_USER/BASIC_PASS not configured")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Auth not configured")

    credentials = _basic_credentials(request.headers.get("authorization"))
    if credentials is None or not (
        _same(credentials[0], BASIC_USER) & _same(credentials[1], BASIC_PASS)
    ):
        logger.info("Rejected login for %s", request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": 'Basic realm="ggx-invoicing"'},
        )


def _quote(country: str, service: str, actual: float, volumetric: float) -> RateQuote:
    try:
        return RATE_ENGINE.quote(country, service, actual, volumetric)
    except InvalidWeightError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except UnknownRateError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def _load_archive() -> HistoryArchive:
    archive = HistoryArchive()
    archive.refresh(lambda: fetch_history(BRANCHES))
    return archive


@app.post("/rates/quote")
async def rate_quote(body: QuoteRequest) -> RateQuote:
    return _quote(body.country, body.service, body.actual_weight_kg, body.volumetric_weight_kg)


@app.post("/invoices/totals")
async def invoice_totals(body: TotalsRequest) -> InvoiceTotals:
    return compute(**body.model_dump())


@app.post("/invoices")
async def create_invoice(request: Request, shipment: ShipmentDetails) -> Dict[str, Any]:
    _require_clerk(request)

    quote = _quote(
        shipment.country,
        shipment.service,
        shipment.actual_weight_kg,
        shipment.volumetric_weight_kg,
    )
    totals = compute(
        freight_total=quote.freight_total,
        vacuum_seal_qty=shipment.vacuum_seal_qty,
        vacuum_seal_unit_price=shipment.vacuum_seal_unit_price,
        box_qty=shipment.box_qty,
        box_unit_price=shipment.box_unit_price,
        insurance=shipment.insurance,
        amount_paid=shipment.amount_paid,
    )

    archive = _load_archive()
    if invoice_exists(shipment.invoice_no, archive.entries):
        logger.info("Duplicate invoice skipped", extra={"invoice_no": shipment.invoice_no})
        return {
            "status": "skipped",
            "reason": "already_exists",
            "invoice_no": shipment.invoice_no,
            "synced": False,
        }

    payload = build_ledger_payload(shipment, quote, totals)
    synced = submit_invoice(payload)
    return {
        "status": "saved" if synced else "failed",
        "invoice_no": shipment.invoice_no,
        "synced": synced,
        "quote": quote.model_dump(),
        "totals": totals.model_dump(),
    }


@app.get("/history")
async def history(q: Optional[str] = None) -> Dict[str, Any]:
    archive = _load_archive()
    entries = archive.search(q)
    return {
        "count": len(entries),
        "stats": archive.stats(q).model_dump(),
        "entries": [entry.model_dump() for entry in entries],
    }


@app.get("/history/export.csv")
async def history_export(request: Request, q: Optional[str] = None) -> Response:
    _require_clerk(request)
    archive = _load_archive()
    content = export_csv(archive.search(q))
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@app.get("/history/{invoice_no}")
async def restore_invoice(invoice_no: str) -> Dict[str, Any]:
    entry = _load_archive().find(invoice_no)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Invoice {invoice_no} not found")
    return {
        "entry": entry.model_dump(),
        "totals": totals_for_entry(entry).model_dump(),
        "whatsapp_url": whatsapp_link(entry),
    }


@app.get("/dashboard")
async def dashboard() -> Dict[str, Any]:
    archive = _load_archive()
    return daily_stats(archive.entries, date.today()).model_dump()


@app.post("/prefill")
async def prefill(body: PrefillRequest) -> ShipmentPrefill:
    if not PREFILL_ENABLED:
        return ShipmentPrefill()
    return prefill_from_image(body.content, body.mime_type)
