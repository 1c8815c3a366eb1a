from __future__ import annotations

from datetime import date

import pytest

from spend_tracker.config import ImapSettings, load_config
from spend_tracker.errors import ConfigurationError
from spend_tracker.sources import SearchQuery


def test_defaults_from_an_empty_environment():
    config = load_config({})

    assert config.query == SearchQuery()
    assert config.imap is None
    assert config.max_messages is None


def test_values_are_read_from_the_environment():
    config = load_config(
        {
            "SPEND_TRACKER_SENDER": "alertas@banco.cl",
            "SPEND_TRACKER_SUBJECT": "Compra",
            "SPEND_TRACKER_AFTER": "2025-06-01",
            "SPEND_TRACKER_IMAP_HOST": "imap.gmail.com",
            "SPEND_TRACKER_IMAP_USER": "me@gmail.com",
            "SPEND_TRACKER_IMAP_PASSWORD": "app password",
            "SPEND_TRACKER_IMAP_MAILBOX": "Bancos",
            "SPEND_TRACKER_MAX_MESSAGES": "200",
        }
    )

    assert config.query == SearchQuery("alertas@banco.cl", "Compra", date(2025, 6, 1))
    assert config.imap == ImapSettings(
        host="imap.gmail.com", user="me@gmail.com", password="app password", mailbox="Bancos"
    )
    assert config.max_messages == 200


def test_blank_values_fall_back_to_defaults():
    config = load_config({"SPEND_TRACKER_SENDER": "  ", "SPEND_TRACKER_IMAP_HOST": ""})

    assert config.query.sender == "enviodigital@bancochile.cl"
    assert config.imap is None


def test_os_environ_is_the_default_source(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SPEND_TRACKER_MAX_MESSAGES", "3")

    assert load_config().max_messages == 3


@pytest.mark.parametrize(
    "env",
    [
        {"SPEND_TRACKER_AFTER": "01/01/2025"},
        {"SPEND_TRACKER_MAX_MESSAGES": "many"},
        {"SPEND_TRACKER_MAX_MESSAGES": "-1"},
        {"SPEND_TRACKER_IMAP_HOST": "imap.gmail.com"},
        {
            "SPEND_TRACKER_IMAP_HOST": "imap.gmail.com",
            "SPEND_TRACKER_IMAP_USER": "me",
            "SPEND_TRACKER_IMAP_PASSWORD": "pw",
            "SPEND_TRACKER_IMAP_PORT": "0",
        },
    ],
)
def test_malformed_values_raise_configuration_error(env: dict[str, str]):
    with pytest.raises(ConfigurationError):
        load_config(env)
