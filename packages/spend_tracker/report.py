"""Summaries over stored purchases: monthly pivot, top purchases, breakdown.

Everything here is a pure function over ``Iterable[PurchaseRecord]``;
rendering (rich tables) lives in :mod:`spend_tracker.cli`.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Final, NamedTuple

from .models import PurchaseRecord

UNCATEGORIZED_LABEL: Final = "Sin Categoría"

_ADVISOR_INTRO: Final = (
    "Actúa como mi asesor financiero personal. "
    "Aquí está el desglose de mis gastos recientes:\n\n"
)
_ADVISOR_QUESTIONS: Final = (
    "\nPor favor responde:\n"
    "1. ¿Cuál es la anomalía más grande en mi presupuesto?\n"
    "2. Dame 3 consejos concretos para reducir la categoría principal.\n"
    "3. ¿Mi distribución de gastos parece saludable?"
)


@dataclass(frozen=True, slots=True)
class MonthlyPivot:
    """Spend per ``(year, month)`` row and category column.

    Months are ascending; categories are sorted by name. A missing cell means
    no spend in that category that month.
    """

    months: tuple[tuple[int, int], ...] = ()
    categories: tuple[str, ...] = ()
    cells: dict[tuple[int, int], dict[str, int]] = field(default_factory=dict)

    def value(self, month: tuple[int, int], category: str) -> int | None:
        return self.cells.get(month, {}).get(category)

    def rows(self) -> list[tuple[int, int, list[int | None]]]:
        return [(y, m, [self.value((y, m), c) for c in self.categories]) for y, m in self.months]


class CategoryShare(NamedTuple):
    category: str
    total: int
    pct: float


def monthly_pivot(records: Iterable[PurchaseRecord]) -> MonthlyPivot:
    """Sum amounts by month and category; uncategorized purchases are left out."""

    cells: dict[tuple[int, int], dict[str, int]] = defaultdict(lambda: defaultdict(int))
    categories: set[str] = set()
    for r in records:
        if not r.is_categorized:
            continue
        at = r.occurred_at
        cells[(at.year, at.month)][r.category] += r.amount
        categories.add(r.category)

    return MonthlyPivot(
        months=tuple(sorted(cells)),
        categories=tuple(sorted(categories)),
        cells={k: dict(v) for k, v in cells.items()},
    )


def top_purchases(records: Iterable[PurchaseRecord], n: int = 5) -> list[PurchaseRecord]:
    """Return the ``n`` largest purchases; equal amounts keep input order."""

    if n <= 0:
        return []
    # sorted() is stable, so ties stay in input order.
    return sorted(records, key=lambda r: r.amount, reverse=True)[:n]


def category_breakdown(records: Iterable[PurchaseRecord]) -> list[CategoryShare]:
    """Total and share of spend per category, largest first.

    Uncategorized purchases are grouped under :data:`UNCATEGORIZED_LABEL`.
    Categories with equal totals keep first-seen order.
    """

    totals: dict[str, int] = {}
    for r in records:
        label = r.category or UNCATEGORIZED_LABEL
        totals[label] = totals.get(label, 0) + r.amount

    grand_total = sum(totals.values())
    ordered = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [
        CategoryShare(
            category=cat,
            total=total,
            pct=round(total * 100 / grand_total, 1) if grand_total else 0.0,
        )
        for cat, total in ordered
    ]


def format_clp(amount: int) -> str:
    """``19790`` -> ``"$19.790"`` (period as thousands separator)."""

    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,}".replace(",", ".")


def build_advisor_prompt(breakdown: Sequence[CategoryShare]) -> str:
    """Render the breakdown as a prompt to paste into a chat assistant."""

    grand_total = sum(share.total for share in breakdown)
    lines = [_ADVISOR_INTRO, f"Gasto Total: {format_clp(grand_total)}\n\n"]
    for share in breakdown:
        lines.append(f"- {share.category}: {format_clp(share.total)} ({share.pct:.1f}%)\n")
    lines.append(_ADVISOR_QUESTIONS)
    return "".join(lines)


__all__ = [
    "UNCATEGORIZED_LABEL",
    "CategoryShare",
    "MonthlyPivot",
    "build_advisor_prompt",
    "category_breakdown",
    "format_clp",
    "monthly_pivot",
    "top_purchases",
]
