# invoicing/normalize.py
"""
Rebuild canonical history entries from raw ledger records.

The ledger is a spreadsheet behind a web app: columns get added over time,
old rows lack newer fields, and cell values come back as whatever type the
sheet decided on. Normalization is therefore total. Every field has a
default in ``FIELD_RULES`` and a record of any shape produces an entry.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping, NamedTuple, Optional, Sequence

from invoicing.models import DEFAULT_PAYMENT_METHOD, Branch, HistoryEntry, LineItem
from invoicing.parse_utils import coerce_count, coerce_number, coerce_text

logger = logging.getLogger(__name__)


class FieldRule(NamedTuple):
    attr: str
    keys: tuple[str, ...]
    kind: str
    default: Any


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("invoice_no", ("invoiceNo",), "text", ""),
    FieldRule("date", ("date",), "text", ""),
    FieldRule("country", ("country",), "text", ""),
    FieldRule("service", ("service",), "text", ""),
    FieldRule("sender_name", ("senderName",), "text", ""),
    FieldRule("sender_phone", ("senderPh",), "text", ""),
    FieldRule("consignee_name", ("consName",), "text", ""),
    FieldRule("consignee_phone", ("consPh",), "text", ""),
    FieldRule("consignee_email", ("consEmail",), "text", ""),
    FieldRule("consignee_address", ("consAddr",), "text", ""),
    FieldRule("consignee_city", ("consCity",), "text", ""),
    FieldRule("consignee_zip", ("consZip",), "text", ""),
    FieldRule("total_boxes", ("totalBoxes",), "count", 1),
    FieldRule("actual_weight_kg", ("actWt",), "amount", 0.0),
    FieldRule("volumetric_weight_kg", ("volWt",), "amount", 0.0),
    FieldRule("chargeable_weight_kg", ("chgWt",), "amount", 0.0),
    FieldRule("rate_per_kg", ("ratePerKg",), "amount", 0.0),
    FieldRule("freight_total", ("freight", "total"), "amount", 0.0),
    FieldRule("vacuum_seal_qty", ("vacQty",), "amount", 0.0),
    FieldRule("vacuum_seal_unit_price", ("vacPrice",), "amount", 0.0),
    FieldRule("box_qty", ("boxQty",), "amount", 0.0),
    FieldRule("box_unit_price", ("boxPrice",), "amount", 0.0),
    FieldRule("insurance", ("insurance",), "amount", 0.0),
    FieldRule("grand_total", ("grandTotal",), "amount", 0.0),
    FieldRule("amount_paid", ("amountPaid",), "amount", 0.0),
    FieldRule("balance_due", ("balanceDue",), "signed", 0.0),
    FieldRule("payment_method", ("payMethod",), "label", DEFAULT_PAYMENT_METHOD),
)


def _first_present(record: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def _apply_rule(rule: FieldRule, raw: Any) -> Any:
    if rule.kind == "text":
        return coerce_text(raw)
    if rule.kind == "label":
        return coerce_text(raw).strip() or rule.default
    if rule.kind == "count":
        return coerce_count(raw, default=rule.default)
    if rule.kind == "signed":
        return coerce_number(raw, default=rule.default)
    if rule.kind == "amount":
        number = coerce_number(raw, default=rule.default)
        return number if number >= 0 else rule.default
    raise ValueError(f"Unknown field kind: {rule.kind}")


def resolve_branch(name: Any, branches: Iterable[Branch]) -> Branch:
    """Known branch with this exact name, else a placeholder carrying the name."""
    branch_name = coerce_text(name)
    for branch in branches:
        if branch.name == branch_name:
            return branch
    return Branch(name=branch_name)


def _decode_items_payload(payload: Any) -> Optional[list]:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, str):
        return None

    text = payload.strip()
    if not text or text == "[]":
        return None
    try:
        decoded = json.loads(text)
    except ValueError:
        logger.info("Unparsable items payload: %s", text[:200])
        return None
    return decoded if isinstance(decoded, list) else None


def parse_items(payload: Any, summary: str = "") -> tuple[LineItem, ...]:
    """Line items from a serialized payload, or one placeholder built from the summary."""
    items: list[LineItem] = []
    seen: set[str] = set()

    for index, element in enumerate(_decode_items_payload(payload) or []):
        if isinstance(element, Mapping):
            item_id = coerce_text(element.get("id")).strip()
            description = coerce_text(element.get("description"))
            qty = coerce_count(element.get("qty"))
        elif isinstance(element, str):
            item_id, description, qty = "", element, 1
        else:
            continue

        if not item_id or item_id in seen:
            item_id = str(index + 1)
            while item_id in seen:
                item_id += "'"
        seen.add(item_id)
        items.append(LineItem(id=item_id, description=description, qty=qty))

    if not items:
        items.append(LineItem(id="1", description=summary, qty=1))
    return tuple(items)


class RecordNormalizer:
    def __init__(self, branches: Iterable[Branch] = ()) -> None:
        self.branches = tuple(branches)

    def normalize(self, record: Any) -> HistoryEntry:
        if not isinstance(record, Mapping):
            record = {}

        fields = {
            rule.attr: _apply_rule(rule, _first_present(record, rule.keys))
            for rule in FIELD_RULES
        }

        raw_items = record.get("items")
        summary = raw_items if isinstance(raw_items, str) else ""
        payload = record.get("itemsJson")
        if payload is None and isinstance(raw_items, list):
            payload = raw_items

        return HistoryEntry(
            branch=resolve_branch(record.get("branchName"), self.branches),
            items_summary=summary,
            items=parse_items(payload, summary),
            **fields,
        )

    def normalize_all(self, records: Iterable[Any]) -> list[HistoryEntry]:
        return [self.normalize(record) for record in records]
