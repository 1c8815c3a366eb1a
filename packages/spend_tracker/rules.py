"""Keyword-rule store: loading, ordering and seeding categorization rules.

A *rule surface* is any two-column table of ``(keyword, category)`` rows whose
first row is a header. Surfaces implement :class:`RuleSource`; ``rows()``
returns the data rows after the header, or ``None`` when the surface does not
exist at all. :func:`load_rules` turns those rows into an ordered snapshot.

Ordering
--------
Rules are sorted by keyword length, longest first, so ``"uber eats"`` is
tried before ``"uber"``. The sort is stable: equal-length keywords keep their
source order, and that is the only priority between them.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable, Sequence
from os import PathLike
from pathlib import Path
from typing import Any, Final, Protocol

from db.models.spending import StKeywordRule
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from .errors import ConfigurationError
from .logging_setup import get_logger
from .models import CategorizationRule

_logger = get_logger("spend_tracker.rules")

# Rows written to an empty rule table on first use.
DEFAULT_RULES: Final[tuple[tuple[str, str], ...]] = (
    ("Uber", "Transporte"),
    ("Jumbo", "Supermercado"),
    ("Netflix", "Suscripciones"),
    ("Paris", "Tiendas"),
    ("Starbucks", "Café"),
)


class RuleSource(Protocol):
    """A configuration surface holding keyword/category rows."""

    def rows(self) -> Iterable[Sequence[Any]] | None:
        """Return data rows (header excluded), or ``None`` if the surface is absent."""
        ...


# ---------------------------------------------------------------------------
# Snapshot construction
# ---------------------------------------------------------------------------


def _blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def normalize_rules(rows: Iterable[Sequence[Any]]) -> list[CategorizationRule]:
    """Filter, lower-case and order raw ``(keyword, category)`` rows.

    Rows with fewer than two cells or a blank keyword/category are dropped.
    Keywords are lower-cased; categories are kept exactly as written.
    """

    rules: list[CategorizationRule] = []
    for row in rows:
        if len(row) < 2:
            continue
        keyword, category = row[0], row[1]
        if _blank(keyword) or _blank(category):
            continue
        rules.append(CategorizationRule(keyword=str(keyword).lower(), category=str(category)))

    # list.sort is stable: ties keep source order.
    rules.sort(key=lambda r: len(r.keyword), reverse=True)
    return rules


def load_rules(source: RuleSource) -> list[CategorizationRule]:
    """Return a fresh, ordered rule snapshot from ``source``.

    A missing surface or one without data rows yields ``[]``; categorization
    against an empty snapshot always returns ``""``.
    """

    rows = source.rows()
    if rows is None:
        _logger.info("rule surface %s is absent; using zero rules", type(source).__name__)
        return []
    rules = normalize_rules(rows)
    if not rules:
        _logger.info("rule surface %s has no usable rows", type(source).__name__)
    else:
        _logger.debug("loaded %d rules from %s", len(rules), type(source).__name__)
    return rules


# ---------------------------------------------------------------------------
# Surfaces
# ---------------------------------------------------------------------------


class DbRuleSource:
    """Rules stored in ``st_keyword_rules``, in insertion (``id``) order."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def rows(self) -> list[tuple[str | None, str | None]]:
        result = self._session.execute(
            select(StKeywordRule.keyword, StKeywordRule.category).order_by(StKeywordRule.id)
        )
        return [(kw, cat) for kw, cat in result]


class CsvRuleSource:
    """A two-column CSV file; the first row is the header and is skipped."""

    def __init__(self, path: str | PathLike[str]) -> None:
        self._path = Path(path)

    def rows(self) -> list[list[str]] | None:
        if not self._path.is_file():
            return None
        with self._path.open(encoding="utf-8", newline="") as f:
            reader = csv.reader(f)
            next(reader, None)  # header
            return [row for row in reader if row]


# ---------------------------------------------------------------------------
# Seeding / replacement (database surface)
# ---------------------------------------------------------------------------


class RuleSeedEntry(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid", str_strip_whitespace=True)

    keyword: str = Field(min_length=1)
    category: str = Field(min_length=1)


class RuleSeedFile(BaseModel):
    """Top-level schema for a JSON rule file: ``{"rules": [{...}, ...]}``."""

    model_config = ConfigDict(strict=True, extra="forbid")

    rules: list[RuleSeedEntry]


def read_rule_seed_file(path: str | PathLike[str]) -> list[tuple[str, str]]:
    """Load and validate a JSON rule file, preserving its order."""

    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"rule file not found: {p}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"rule file is not valid JSON: {p}: {exc}") from exc

    try:
        seed = RuleSeedFile.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid rule file {p}: {exc}") from exc
    return [(e.keyword, e.category) for e in seed.rules]


def seed_default_rules(session: Session) -> int:
    """Insert :data:`DEFAULT_RULES` when the rule table is empty.

    Returns the number of rows inserted (``0`` when rules already exist).
    """

    existing = session.execute(select(func.count()).select_from(StKeywordRule)).scalar_one()
    if existing:
        return 0
    session.execute(
        insert(StKeywordRule),
        [{"keyword": kw, "category": cat} for kw, cat in DEFAULT_RULES],
    )
    _logger.info("seeded %d default rules", len(DEFAULT_RULES))
    return len(DEFAULT_RULES)


def replace_rules(session: Session, rows: Sequence[tuple[str, str]]) -> int:
    """Replace the whole rule table with ``rows`` (written in the given order)."""

    session.execute(delete(StKeywordRule))
    if rows:
        session.execute(
            insert(StKeywordRule),
            [{"keyword": kw, "category": cat} for kw, cat in rows],
        )
    _logger.info("replaced rule table with %d rows", len(rows))
    return len(rows)


__all__ = [
    "DEFAULT_RULES",
    "CsvRuleSource",
    "DbRuleSource",
    "RuleSeedEntry",
    "RuleSeedFile",
    "RuleSource",
    "load_rules",
    "normalize_rules",
    "read_rule_seed_file",
    "replace_rules",
    "seed_default_rules",
]
