"""Persistence integration for spend_tracker.

The purchase store is the ``st_purchases`` table owned by ``libs/db``. The
pipeline and the sweep only see the :class:`PurchaseSink` protocol;
:class:`SqlPurchaseSink` implements it on a SQLAlchemy session provided by
``db.client.session_scope``. Committing is the caller's job.

Scope:
- Read the set of stored source ids (deduplication).
- Append a batch of records with one bulk ``INSERT``.
- Read uncategorized rows and write their categories back by row key.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, Protocol

from db.models.spending import StPurchase
from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import SinkUnavailable
from .logging_setup import get_logger
from .models import TIMESTAMP_FORMAT, PurchaseRecord, StoredPurchase

_logger = get_logger("spend_tracker.persistence")


class PurchaseSink(Protocol):
    """Append-mostly store of purchase records keyed by ``source_id``."""

    def known_source_ids(self) -> set[str]: ...

    def append(self, records: Sequence[PurchaseRecord]) -> None: ...

    def uncategorized(self) -> list[StoredPurchase]: ...

    def update_categories(self, categories: Mapping[int, str]) -> None: ...


def _to_values(record: PurchaseRecord) -> dict[str, Any]:
    return {
        "occurred_at": record.occurred_at,
        "merchant": record.merchant,
        "amount": record.amount,
        "category": record.category,
        "payment_method": record.payment_method,
        "source_id": record.source_id,
        "raw_text": record.raw_text,
    }


def _to_record(row: StPurchase) -> PurchaseRecord:
    return PurchaseRecord(
        timestamp=row.occurred_at.strftime(TIMESTAMP_FORMAT),
        merchant=row.merchant,
        amount=row.amount,
        category=row.category or "",
        payment_method=row.payment_method,
        source_id=row.source_id,
        raw_text=row.raw_text,
    )


class SqlPurchaseSink:
    """:class:`PurchaseSink` over ``st_purchases``.

    Database errors are re-raised as :class:`SinkUnavailable`; the session is
    left for the surrounding ``session_scope`` to roll back.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def known_source_ids(self) -> set[str]:
        try:
            result = self._session.execute(select(StPurchase.source_id))
        except SQLAlchemyError as exc:
            raise SinkUnavailable(f"cannot read stored source ids: {exc}") from exc
        return set(result.scalars())

    def append(self, records: Sequence[PurchaseRecord]) -> None:
        if not records:
            return
        try:
            self._session.execute(insert(StPurchase), [_to_values(r) for r in records])
        except SQLAlchemyError as exc:
            raise SinkUnavailable(f"cannot append {len(records)} purchases: {exc}") from exc
        _logger.info("appended %d purchases", len(records))

    def uncategorized(self) -> list[StoredPurchase]:
        try:
            rows = self._session.scalars(
                select(StPurchase).where(StPurchase.category == "").order_by(StPurchase.id)
            ).all()
        except SQLAlchemyError as exc:
            raise SinkUnavailable(f"cannot read uncategorized purchases: {exc}") from exc
        return [StoredPurchase(key=row.id, record=_to_record(row)) for row in rows]

    def update_categories(self, categories: Mapping[int, str]) -> None:
        if not categories:
            return
        now = datetime.now(UTC)
        params = [
            {"id": key, "category": category, "updated_at": now}
            for key, category in categories.items()
        ]
        try:
            # ORM bulk UPDATE by primary key: one executemany for the batch.
            self._session.execute(update(StPurchase), params)
        except SQLAlchemyError as exc:
            raise SinkUnavailable(f"cannot update {len(params)} categories: {exc}") from exc
        _logger.info("updated categories on %d purchases", len(params))


def list_purchases(session: Session) -> list[PurchaseRecord]:
    """Return every stored purchase in row (insertion) order."""

    try:
        rows = session.scalars(select(StPurchase).order_by(StPurchase.id)).all()
    except SQLAlchemyError as exc:
        raise SinkUnavailable(f"cannot list purchases: {exc}") from exc
    return [_to_record(row) for row in rows]


__all__ = [
    "PurchaseSink",
    "SqlPurchaseSink",
    "list_purchases",
]
