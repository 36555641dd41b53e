# invoicing/archive.py
from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from invoicing.models import CollectionStats, HistoryEntry
from invoicing.query import aggregate, filter_entries, sort_by_invoice_desc

logger = logging.getLogger(__name__)


class HistoryArchive:
    """In-memory view of the ledger's invoice history.

    The snapshot is an immutable tuple that ``refresh`` replaces in one
    assignment, so a search running against the old snapshot never sees a
    half-loaded collection.
    """

    def __init__(self, entries: Iterable[HistoryEntry] = ()) -> None:
        self._entries: tuple[HistoryEntry, ...] = tuple(sort_by_invoice_desc(list(entries)))

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return self._entries

    def refresh(self, fetch: Callable[[], Iterable[HistoryEntry]]) -> tuple[HistoryEntry, ...]:
        snapshot = tuple(sort_by_invoice_desc(list(fetch())))
        self._entries = snapshot
        logger.info("History refreshed", extra={"entries": len(snapshot)})
        return snapshot

    def search(self, term: Optional[str] = None) -> list[HistoryEntry]:
        return filter_entries(self._entries, term)

    def stats(self, term: Optional[str] = None) -> CollectionStats:
        return aggregate(self.search(term))

    def find(self, invoice_no: str) -> Optional[HistoryEntry]:
        for entry in self._entries:
            if entry.invoice_no == invoice_no:
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)
