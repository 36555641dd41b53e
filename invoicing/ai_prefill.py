# invoicing/ai_prefill.py
"""
Best-effort pre-fill of the shipment form from a photographed label.

The label image goes through Cloud Vision document text detection and the
recognised text is mined for the usual label fields. Anything that goes
wrong (no credentials, OCR error, nothing recognisable) yields an empty
``ShipmentPrefill``: pre-fill is a convenience and never blocks an invoice.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import uuid
from typing import Optional

from invoicing.label_ocr import read_label_text
from invoicing.models import LineItem, ShipmentPrefill
from invoicing.parse_utils import coerce_count, coerce_number, first_match

logger = logging.getLogger(__name__)

DEFAULT_ITEM_DESCRIPTION = "Package Content"

_FLAGS = re.IGNORECASE | re.MULTILINE
_PHONE = r"(\+?\d[\d \-()]{6,}\d)"
_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_ITEM_RE = re.compile(r"^(.*?)\s*(?:\((\d+)\)|[x×]\s*(\d+))?$", re.IGNORECASE)


def _find(patterns: list[str], text: str) -> Optional[str]:
    match = first_match(patterns, text, flags=_FLAGS)
    if not match:
        return None
    value = match.group(1).strip(" \t:-")
    return value or None


def _find_weight(patterns: list[str], text: str) -> Optional[float]:
    raw = _find(patterns, text)
    if raw is None:
        return None
    weight = coerce_number(raw.replace(",", "."))
    return weight if weight > 0 else None


def _parse_items(raw: Optional[str]) -> Optional[list[LineItem]]:
    if not raw:
        return None

    items = []
    for part in re.split(r"[,;]", raw):
        part = part.strip()
        if not part:
            continue
        match = _ITEM_RE.match(part)
        description = (match.group(1) if match else part).strip()
        qty = (match.group(2) or match.group(3)) if match else None
        items.append(
            LineItem(
                id=uuid.uuid4().hex,
                description=description or DEFAULT_ITEM_DESCRIPTION,
                qty=coerce_count(qty),
            )
        )
    return items or None


def extract_shipment_fields(text: str) -> ShipmentPrefill:
    if not text or not text.strip():
        return ShipmentPrefill()

    email = _EMAIL_RE.search(text)
    boxes = _find([r"(?:No\.?\s*of\s*)?(?:Boxes|Pieces|Pcs|Packages)\s*[:\-]?\s*(\d+)"], text)

    return ShipmentPrefill(
        sender_name=_find([r"^\s*(?:Sender|Shipper|From)\s*(?:Name)?\s*[:\-]\s*([^\n\d+][^\n]*)$"], text),
        sender_phone=_find([r"(?:Sender|Shipper|From)\s*(?:Ph(?:one)?|Tel|Mobile|Contact)\.?\s*[:\-]?\s*" + _PHONE], text),
        consignee_name=_find(
            [r"^\s*(?:Consignee|Receiver|Recipient|Deliver\s*To|Ship\s*To|To)\s*(?:Name)?\s*[:\-]\s*([^\n\d+][^\n]*)$"],
            text,
        ),
        consignee_phone=_find(
            [r"(?:Consignee|Receiver|Recipient|Cons\.?)\s*(?:Ph(?:one)?|Tel|Mobile|Contact)\.?\s*[:\-]?\s*" + _PHONE],
            text,
        ),
        consignee_email=email.group(0) if email else None,
        consignee_address=_find([r"^\s*Address\s*[:\-]\s*(.+)$"], text),
        consignee_city=_find([r"^\s*City\s*[:\-]\s*(.+)$"], text),
        consignee_zip=_find([r"(?:Zip|Post(?:al)?\s*Code|Postcode)\s*[:\-]?\s*([A-Z0-9][A-Z0-9\- ]{2,9})\s*$"], text),
        country=_find([r"^\s*(?:Country|Destination)\s*[:\-]\s*(.+)$"], text),
        actual_weight_kg=_find_weight(
            [r"^(?![^\n]*\bvol)[^\n]*?\b(?:weight|wt)\.?\s*[:\-]?\s*(\d+(?:[.,]\d+)?)\s*kgs?\b"],
            text,
        ),
        volumetric_weight_kg=_find_weight(
            [r"\bvol(?:umetric|\.)?\s*(?:weight|wt)\.?\s*[:\-]?\s*(\d+(?:[.,]\d+)?)"],
            text,
        ),
        total_boxes=coerce_count(boxes) if boxes else None,
        items=_parse_items(_find([r"^\s*(?:Contents|Description(?:\s*of\s*Goods)?|Items)\s*[:\-]\s*(.+)$"], text)),
    )


def prefill_from_image(content_b64: str, mime_type: str) -> ShipmentPrefill:
    if not (mime_type or "").lower().startswith("image/"):
        logger.info("Pre-fill skipped: unsupported type %s", mime_type)
        return ShipmentPrefill()

    try:
        image_bytes = base64.b64decode(content_b64 or "", validate=True)
    except (binascii.Error, ValueError) as exc:
        logger.info("Pre-fill skipped: image is not valid base64: %s", exc)
        return ShipmentPrefill()
    if not image_bytes:
        return ShipmentPrefill()

    try:
        text = read_label_text(image_bytes)
    except Exception as exc:
        logger.warning("Label OCR failed, continuing without pre-fill: %s", exc)
        return ShipmentPrefill()

    prefill = extract_shipment_fields(text)
    if prefill.is_empty():
        logger.info("Label OCR found no shipment fields")
    return prefill
