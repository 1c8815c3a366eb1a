"""Keyword categorization of merchant names.

Public API:
    - :func:`categorize`

Matching is plain substring containment against a lower-cased merchant; the
first hit in snapshot order wins. Order the snapshot with
:func:`spend_tracker.rules.load_rules` so longer keywords come first.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import CategorizationRule


def categorize(merchant: str | None, rules: Iterable[CategorizationRule]) -> str:
    """Return the category of the first rule whose keyword occurs in ``merchant``.

    Returns ``""`` when ``merchant`` is empty/``None`` or no keyword matches.
    """

    if not merchant:
        return ""
    haystack = merchant.lower()
    for rule in rules:
        if rule.keyword in haystack:
            return rule.category
    return ""


__all__ = ["categorize"]
