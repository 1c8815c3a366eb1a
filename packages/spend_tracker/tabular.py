"""Named-column tabular form of purchase records (CSV export/import).

Columns are addressed by header name, never by position, so reordering the
file's columns does not shift ``SourceId`` (the deduplication key) into
another field.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable, Mapping
from os import PathLike
from pathlib import Path
from typing import Final

from .models import PurchaseRecord

SINK_COLUMNS: Final[tuple[str, ...]] = (
    "Timestamp",
    "Merchant",
    "Amount",
    "Category",
    "PaymentMethod",
    "SourceId",
    "RawText",
)


def record_to_row(record: PurchaseRecord) -> dict[str, str]:
    return {
        "Timestamp": record.timestamp,
        "Merchant": record.merchant,
        "Amount": str(record.amount),
        "Category": record.category,
        "PaymentMethod": record.payment_method,
        "SourceId": record.source_id,
        "RawText": record.raw_text,
    }


def row_to_record(row: Mapping[str, str | None]) -> PurchaseRecord:
    """Build a record from a row keyed by :data:`SINK_COLUMNS`.

    Raises ``ValueError`` when ``Amount`` is not a whole number.
    """

    def cell(name: str) -> str:
        return row.get(name) or ""

    return PurchaseRecord(
        timestamp=cell("Timestamp"),
        merchant=cell("Merchant"),
        amount=int(cell("Amount")),
        category=cell("Category"),
        payment_method=cell("PaymentMethod"),
        source_id=cell("SourceId"),
        raw_text=cell("RawText"),
    )


def write_csv(records: Iterable[PurchaseRecord], path: str | PathLike[str]) -> int:
    """Write records with a header row; returns the number of data rows."""

    count = 0
    with Path(path).open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(SINK_COLUMNS))
        writer.writeheader()
        for record in records:
            writer.writerow(record_to_row(record))
            count += 1
    return count


def read_csv(path: str | PathLike[str]) -> list[PurchaseRecord]:
    """Read a file written by :func:`write_csv` (any column order)."""

    p = Path(path)
    with p.open(encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        headers = set(reader.fieldnames or [])
        if not headers:
            raise csv.Error(f"CSV appears to have no header row: {p}")
        missing = [c for c in SINK_COLUMNS if c not in headers]
        if missing:
            raise csv.Error("CSV header mismatch. Missing columns: " + ", ".join(missing))
        return [row_to_record(row) for row in reader]


__all__ = [
    "SINK_COLUMNS",
    "read_csv",
    "record_to_row",
    "row_to_record",
    "write_csv",
]
