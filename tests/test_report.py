from __future__ import annotations

from spend_tracker.report import (
    UNCATEGORIZED_LABEL,
    CategoryShare,
    build_advisor_prompt,
    category_breakdown,
    format_clp,
    monthly_pivot,
    top_purchases,
)
from tests.helpers.mail import record

RECORDS = [
    record("a", amount=10000, category="Supermercado", timestamp="05/01/2025 10:00"),
    record("b", amount=5000, category="Transporte", timestamp="20/01/2025 08:00"),
    record("c", amount=20000, category="Supermercado", timestamp="31/01/2025 23:59"),
    record("d", amount=10000, category="", timestamp="02/02/2025 12:00"),
    record("e", amount=5000, category="Transporte", timestamp="03/02/2025 18:30"),
]


def test_monthly_pivot_sums_by_month_and_category():
    pivot = monthly_pivot(RECORDS)

    assert pivot.months == ((2025, 1), (2025, 2))
    assert pivot.categories == ("Supermercado", "Transporte")
    assert pivot.value((2025, 1), "Supermercado") == 30000
    assert pivot.value((2025, 2), "Supermercado") is None
    assert pivot.rows() == [(2025, 1, [30000, 5000]), (2025, 2, [None, 5000])]


def test_monthly_pivot_of_nothing_is_empty():
    pivot = monthly_pivot([record("x", category="")])

    assert pivot.months == () and pivot.categories == () and pivot.rows() == []


def test_top_purchases_orders_by_amount_and_keeps_ties_in_input_order():
    top = top_purchases(RECORDS, n=4)

    assert [r.source_id for r in top] == ["c", "a", "d", "b"]
    assert top_purchases(RECORDS, n=0) == []
    assert len(top_purchases(RECORDS)) == 5


def test_category_breakdown_groups_uncategorized_and_keeps_ties_in_first_seen_order():
    breakdown = category_breakdown(RECORDS)

    assert breakdown == [
        CategoryShare("Supermercado", 30000, 60.0),
        CategoryShare("Transporte", 10000, 20.0),
        CategoryShare(UNCATEGORIZED_LABEL, 10000, 20.0),
    ]
    assert category_breakdown([]) == []


def test_format_clp_uses_period_thousands():
    assert format_clp(0) == "$0"
    assert format_clp(990) == "$990"
    assert format_clp(19790) == "$19.790"
    assert format_clp(1234567) == "$1.234.567"


def test_advisor_prompt_lists_categories_with_shares():
    prompt = build_advisor_prompt(category_breakdown(RECORDS))

    assert prompt.startswith("Actúa como mi asesor financiero personal.")
    assert "Gasto Total: $50.000\n" in prompt
    assert "- Supermercado: $30.000 (60.0%)\n" in prompt
    assert "- Sin Categoría: $10.000 (20.0%)\n" in prompt
    assert prompt.rstrip().endswith("¿Mi distribución de gastos parece saludable?")
