"""Deduplicating ingestion: messages in, one batch of categorized records out.

Public API:
    - :func:`run_ingestion`

A run reads the stored source ids once, walks the source's candidates in
order, extracts and categorizes the unseen ones, and appends the accumulated
batch with a single ``sink.append`` call. Nothing is written before the walk
finishes, so a source failure mid-run leaves the store as it
was. Running twice over the same messages appends nothing the second time.
Message bodies are only read for ids the sink does not already hold.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from itertools import islice

from .categorize import categorize
from .extract import extract
from .logging_setup import get_logger
from .models import CategorizationRule, IngestOutcome, NoMatch, PurchaseRecord
from .persistence import PurchaseSink
from .sources import MailMessage, MessageSource, SearchQuery

_logger = get_logger("spend_tracker.pipeline")


def run_ingestion(
    message_source: MessageSource,
    sink: PurchaseSink,
    rules: Sequence[CategorizationRule],
    *,
    query: SearchQuery,
    limit: int | None = None,
) -> IngestOutcome:
    """Append every new, parseable message in ``message_source`` to ``sink``.

    ``rules`` is the snapshot used for the whole run. ``limit`` caps how many
    candidates are examined (known and unparsed ones count toward it).
    """

    if limit is not None and limit < 0:
        raise ValueError("limit must be >= 0")

    known = set(sink.known_source_ids())
    found = message_source.search(query)
    candidates: Iterable[MailMessage] = found
    if limit is not None:
        candidates = islice(found, limit)

    fetched = skipped_known = unparsed = 0
    batch: list[PurchaseRecord] = []
    try:
        for message in candidates:
            fetched += 1
            if message.id in known:
                skipped_known += 1
                continue

            result = extract(message.body, source_id=message.id)
            if isinstance(result, NoMatch):
                unparsed += 1
                _logger.debug("message %s is not a purchase notification", message.id)
                continue

            record = result.with_category(categorize(result.merchant, rules))
            batch.append(record)
            # Same message surfaced twice in one search is stored once.
            known.add(message.id)
    finally:
        # Generator sources hold a connection until closed.
        close = getattr(found, "close", None)
        if close is not None:
            close()

    if batch:
        sink.append(batch)

    outcome = IngestOutcome(
        fetched=fetched,
        skipped_known=skipped_known,
        unparsed=unparsed,
        appended=tuple(batch),
    )
    if outcome.nothing_new:
        _logger.info(
            "no new purchases (fetched=%d, known=%d, unparsed=%d)", fetched, skipped_known, unparsed
        )
    else:
        _logger.info(
            "ingested %d new purchases (fetched=%d, known=%d, unparsed=%d)",
            len(batch),
            fetched,
            skipped_known,
            unparsed,
        )
    return outcome


__all__ = ["run_ingestion"]
