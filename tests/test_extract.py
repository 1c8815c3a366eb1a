from __future__ import annotations

import pytest

from spend_tracker.extract import extract
from spend_tracker.models import NO_MATCH, NoMatch, PurchaseRecord
from tests.helpers.mail import notification_body


def test_extracts_the_documented_example():
    body = notification_body()

    rec = extract(body, source_id="msg-1")

    assert isinstance(rec, PurchaseRecord)
    assert rec.timestamp == "13/12/2025 17:01"
    assert rec.merchant == "PARIS VINA DEL MAR"
    assert rec.amount == 19790
    assert rec.category == ""
    assert rec.payment_method == "Tarjeta ****0990"
    assert rec.source_id == "msg-1"
    assert rec.raw_text == (
        "compra por $19.790 con Tarjeta de Crédito ****0990 en PARIS VINA DEL MAR el 13/12/2025 17:01"
    )
    assert rec.occurred_at.year == 2025 and rec.occurred_at.hour == 17


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("500", 500), ("1.000", 1000), ("19.790", 19790), ("1.234.567", 1234567)],
)
def test_thousands_separators_are_stripped(raw: str, expected: int):
    rec = extract(notification_body(amount=raw))
    assert isinstance(rec, PurchaseRecord)
    assert rec.amount == expected


def test_merchant_spanning_line_breaks_is_collapsed():
    body = (
        "compra por $8.500 con Tarjeta de Crédito ****1234 en UBER\r\n"
        "   EATS SANTIAGO el 01/02/2025 08:15"
    )

    rec = extract(body)

    assert isinstance(rec, PurchaseRecord)
    assert rec.merchant == "UBER EATS SANTIAGO"
    assert rec.payment_method == "Tarjeta ****1234"


def test_matching_ignores_case_and_accent_on_credito():
    body = "COMPRA POR $1.000 CON TARJETA DE CREDITO ****4321 EN JUMBO LA REINA EL 05/03/2025 12:00"

    rec = extract(body)

    assert isinstance(rec, PurchaseRecord)
    assert rec.merchant == "JUMBO LA REINA"
    assert rec.amount == 1000


def test_whitespace_between_tokens_is_flexible():
    body = "compra  por\n$2.990 con  Tarjeta de\tCrédito ****0990 en\nSTARBUCKS el 10/01/2025  09:30"

    rec = extract(body)

    assert isinstance(rec, PurchaseRecord)
    assert rec.merchant == "STARBUCKS"
    assert rec.timestamp == "10/01/2025 09:30"


@pytest.mark.parametrize(
    "body",
    [
        None,
        123,
        b"compra por $1.000",
        "",
        "Hola, tu estado de cuenta está disponible.",
        # three card digits
        "compra por $1.000 con Tarjeta de Crédito ****099 en JUMBO el 05/03/2025 12:00",
        # missing time
        "compra por $1.000 con Tarjeta de Crédito ****0990 en JUMBO el 05/03/2025",
        # debit card, different template
        "compra por $1.000 con Tarjeta de Débito ****0990 en JUMBO el 05/03/2025 12:00",
    ],
)
def test_non_notifications_yield_no_match(body):
    result = extract(body)

    assert result is NO_MATCH
    assert isinstance(result, NoMatch)
    assert not result


def test_impossible_calendar_date_is_no_match():
    assert extract(notification_body(when="31/02/2025 10:00")) is NO_MATCH
    assert extract(notification_body(when="01/01/2025 25:10")) is NO_MATCH


def test_amount_without_digits_is_no_match():
    assert extract(notification_body(amount="...")) is NO_MATCH


def test_first_notification_in_body_wins():
    body = notification_body(merchant="JUMBO") + "\n" + notification_body(merchant="UBER")

    rec = extract(body)

    assert isinstance(rec, PurchaseRecord)
    assert rec.merchant == "JUMBO"


def test_invalid_first_notification_falls_through_to_the_next():
    body = (
        notification_body(merchant="JUMBO", when="31/02/2025 10:00")
        + "\n"
        + notification_body(merchant="UBER")
    )

    rec = extract(body, source_id="m")

    assert isinstance(rec, PurchaseRecord)
    assert rec.merchant == "UBER"
    assert rec.timestamp == "13/12/2025 17:01"


def test_non_ascii_digits_are_no_match():
    assert extract(notification_body(amount="١٩.٧٩٠")) is NO_MATCH
    assert extract(notification_body(last4="٠٩٩٠")) is NO_MATCH
    assert extract(notification_body(when="١٣/١٢/٢٠٢٥ 17:01")) is NO_MATCH
