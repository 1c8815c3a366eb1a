"""Data models for ``spend_tracker``.

Records are plain frozen dataclasses addressed by field name; the stored row
schema lives in :mod:`spend_tracker.tabular` (CSV) and ``db.models.spending``
(SQL). Nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Final

# Source format of the purchase date/time in the notification body.
TIMESTAMP_FORMAT: Final = "%d/%m/%Y %H:%M"


@dataclass(frozen=True, slots=True)
class PurchaseRecord:
    """One parsed card purchase.

    ``category`` is ``""`` until a rule assigns one. ``source_id`` is the id of
    the originating message and the deduplication key of the store.
    ``raw_text`` keeps the exact matched substring so near-miss pattern
    matches can be diagnosed after the fact.
    """

    timestamp: str
    merchant: str
    amount: int
    category: str
    payment_method: str
    source_id: str
    raw_text: str

    @property
    def occurred_at(self) -> datetime:
        return datetime.strptime(self.timestamp, TIMESTAMP_FORMAT)

    @property
    def is_categorized(self) -> bool:
        return self.category != ""

    def with_category(self, category: str) -> PurchaseRecord:
        return replace(self, category=category)


class NoMatch:
    """Result of extracting a body that is not a recognized notification.

    There is exactly one instance, :data:`NO_MATCH`; it is falsy so callers can
    write ``if not result``.
    """

    _instance: NoMatch | None = None

    def __new__(cls) -> NoMatch:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_MATCH"


NO_MATCH: Final = NoMatch()

type ExtractionResult = PurchaseRecord | NoMatch


@dataclass(frozen=True, slots=True)
class CategorizationRule:
    """A lower-cased keyword and the category it assigns on a substring hit."""

    keyword: str
    category: str


@dataclass(frozen=True, slots=True)
class StoredPurchase:
    """A record as read back from a sink, with the sink's own row key.

    The row key lets the sweep write categories back by key instead of by
    position in the table.
    """

    key: int
    record: PurchaseRecord


@dataclass(frozen=True, slots=True)
class IngestOutcome:
    """Summary of one ingestion run.

    ``appended`` holds exactly the records written in the run's single bulk
    append, in source order. Counts cover every fetched candidate:
    ``fetched == skipped_known + unparsed + len(appended)``.
    """

    fetched: int = 0
    skipped_known: int = 0
    unparsed: int = 0
    appended: tuple[PurchaseRecord, ...] = field(default_factory=tuple)

    @property
    def nothing_new(self) -> bool:
        return not self.appended


__all__ = [
    "NO_MATCH",
    "TIMESTAMP_FORMAT",
    "CategorizationRule",
    "ExtractionResult",
    "IngestOutcome",
    "NoMatch",
    "PurchaseRecord",
    "StoredPurchase",
]
