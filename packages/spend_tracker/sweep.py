"""Recategorization sweep: fill empty categories using the current rules.

Rows that already carry a category are never rewritten, even when a newer
rule would assign a different one. Manual corrections survive every sweep.
"""

from __future__ import annotations

from collections.abc import Sequence

from .categorize import categorize
from .logging_setup import get_logger
from .models import CategorizationRule
from .persistence import PurchaseSink

_logger = get_logger("spend_tracker.sweep")


def recategorize_uncategorized(sink: PurchaseSink, rules: Sequence[CategorizationRule]) -> int:
    """Assign categories to uncategorized rows; return how many were filled.

    All new categories are written with one ``sink.update_categories`` call.
    Nothing is written when no row gains a category.
    """

    updates: dict[int, str] = {}
    for stored in sink.uncategorized():
        if stored.record.is_categorized:
            continue
        category = categorize(stored.record.merchant, rules)
        if category:
            updates[stored.key] = category

    if updates:
        sink.update_categories(updates)
    _logger.info("recategorized %d purchases", len(updates))
    return len(updates)


__all__ = ["recategorize_uncategorized"]
