# invoicing/query.py
from __future__ import annotations

import math
from datetime import date
from typing import Iterable, Optional, Sequence

from invoicing.models import CollectionStats, DailyStats, HistoryEntry
from invoicing.parse_utils import coerce_number, natural_key, round_money


SEARCH_FIELDS = (
    "invoice_no",
    "consignee_name",
    "sender_phone",
    "sender_name",
    "country",
    "date",
)


def _matches(entry: HistoryEntry, term: str) -> bool:
    for name in SEARCH_FIELDS:
        value = getattr(entry, name, None)
        if value and term in str(value).lower():
            return True
    return False


def filter_entries(entries: Sequence[HistoryEntry], term: Optional[str]) -> list[HistoryEntry]:
    """Case-insensitive substring search, ORed across the searchable fields."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(entries)
    return [entry for entry in entries if _matches(entry, needle)]


def aggregate(entries: Iterable[HistoryEntry]) -> CollectionStats:
    revenue: list[float] = []
    weight: list[float] = []
    boxes = 0
    count = 0

    for entry in entries:
        revenue.append(coerce_number(getattr(entry, "grand_total", 0)))
        weight.append(coerce_number(getattr(entry, "chargeable_weight_kg", 0)))
        boxes += int(coerce_number(getattr(entry, "total_boxes", 0)))
        count += 1

    # fsum is exactly rounded, so the result does not depend on entry order.
    return CollectionStats(
        total_revenue=round_money(math.fsum(revenue)),
        total_weight_kg=round(math.fsum(weight), 3),
        total_boxes=boxes,
        count=count,
    )


def sort_by_invoice_desc(entries: Sequence[HistoryEntry]) -> list[HistoryEntry]:
    """Newest invoice number first, digit runs compared by magnitude.

    Entries without an invoice number keep their positions; only the
    numbered entries are reordered among the slots they occupy.
    """
    result = list(entries)
    slots = [index for index, entry in enumerate(result) if entry.invoice_no]
    numbered = sorted(
        (result[index] for index in slots),
        key=lambda entry: natural_key(entry.invoice_no),
        reverse=True,
    )
    for index, entry in zip(slots, numbered):
        result[index] = entry
    return result


def entries_on(entries: Iterable[HistoryEntry], day: str | date) -> list[HistoryEntry]:
    """Entries whose date text is exactly the ledger's YYYY-MM-DD text for ``day``.

    Dates stored in any other format do not match.
    """
    day_text = day.isoformat() if isinstance(day, date) else day
    return [entry for entry in entries if entry.date == day_text]


def daily_stats(entries: Iterable[HistoryEntry], day: Optional[date] = None) -> DailyStats:
    day = day or date.today()
    todays = entries_on(entries, day)
    return DailyStats(
        day=day.isoformat(),
        count=len(todays),
        revenue=round_money(math.fsum(coerce_number(entry.grand_total) for entry in todays)),
    )
