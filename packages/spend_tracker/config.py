"""Runtime configuration read from the environment.

The CLI loads ``.env`` first (``python-dotenv``, never overriding variables
already set) and then calls :func:`load_config` once per invocation. The
resulting :class:`TrackerConfig` is passed explicitly to whatever needs it.

Variables (all optional unless IMAP ingestion is used):

``SPEND_TRACKER_SENDER`` / ``SPEND_TRACKER_SUBJECT`` / ``SPEND_TRACKER_AFTER``
    Search filter; ``AFTER`` is ``YYYY-MM-DD``.
``SPEND_TRACKER_IMAP_HOST`` / ``_PORT`` / ``_USER`` / ``_PASSWORD`` / ``_MAILBOX``
    Mailbox to read when no ``--eml-dir`` is given.
``SPEND_TRACKER_MAX_MESSAGES``
    Default per-run candidate limit.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date

from .errors import ConfigurationError
from .sources import DEFAULT_AFTER, DEFAULT_SENDER, DEFAULT_SUBJECT, SearchQuery

_PREFIX = "SPEND_TRACKER_"


@dataclass(frozen=True, slots=True)
class ImapSettings:
    host: str
    user: str
    password: str
    port: int = 993
    mailbox: str = "INBOX"


@dataclass(frozen=True, slots=True)
class TrackerConfig:
    query: SearchQuery = SearchQuery()
    imap: ImapSettings | None = None
    max_messages: int | None = None


def _get(env: Mapping[str, str], name: str) -> str | None:
    raw = env.get(_PREFIX + name)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _parse_int(env: Mapping[str, str], name: str, *, minimum: int) -> int | None:
    raw = _get(env, name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{_PREFIX}{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{_PREFIX}{name} must be >= {minimum}, got {value}")
    return value


def _parse_after(env: Mapping[str, str]) -> date | None:
    raw = _get(env, "AFTER")
    if raw is None:
        return DEFAULT_AFTER
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{_PREFIX}AFTER must be YYYY-MM-DD, got {raw!r}") from exc


def _parse_imap(env: Mapping[str, str]) -> ImapSettings | None:
    host = _get(env, "IMAP_HOST")
    if host is None:
        return None
    user = _get(env, "IMAP_USER")
    password = env.get(_PREFIX + "IMAP_PASSWORD")
    if user is None or not password:
        raise ConfigurationError(
            f"{_PREFIX}IMAP_HOST is set but {_PREFIX}IMAP_USER/{_PREFIX}IMAP_PASSWORD are not"
        )
    port = _parse_int(env, "IMAP_PORT", minimum=1)
    return ImapSettings(
        host=host,
        user=user,
        password=password,
        port=port if port is not None else 993,
        mailbox=_get(env, "IMAP_MAILBOX") or "INBOX",
    )


def load_config(env: Mapping[str, str] | None = None) -> TrackerConfig:
    """Build a :class:`TrackerConfig` from ``env`` (default: ``os.environ``).

    Raises :class:`ConfigurationError` for malformed values.
    """

    env = os.environ if env is None else env
    query = SearchQuery(
        sender=_get(env, "SENDER") or DEFAULT_SENDER,
        subject=_get(env, "SUBJECT") or DEFAULT_SUBJECT,
        after=_parse_after(env),
    )
    return TrackerConfig(
        query=query,
        imap=_parse_imap(env),
        max_messages=_parse_int(env, "MAX_MESSAGES", minimum=0),
    )


__all__ = ["ImapSettings", "TrackerConfig", "load_config"]
