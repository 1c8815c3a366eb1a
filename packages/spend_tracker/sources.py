"""Message sources: where candidate notification emails come from.

A message source answers ``search(query)`` with :class:`MailMessage` items in
a stable order. Two implementations ship here:

- :class:`ImapMessageSource` reads a live mailbox over IMAP/SSL.
- :class:`EmlDirectoryMessageSource` reads ``*.eml`` files from a folder
  (exports, fixtures, offline replays).

Both translate transport failures into
:class:`~spend_tracker.errors.SourceUnavailable`; the ingestion pipeline lets
that propagate before anything is written.
"""

from __future__ import annotations

import contextlib
import imaplib
import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import date
from email import message_from_bytes, policy
from email.message import EmailMessage
from email.utils import parsedate_to_datetime
from functools import partial
from os import PathLike
from pathlib import Path
from typing import Final, Protocol, cast

from bs4 import BeautifulSoup

from .errors import SourceUnavailable
from .logging_setup import get_logger

_logger = get_logger("spend_tracker.sources")

DEFAULT_SENDER: Final = "enviodigital@bancochile.cl"
DEFAULT_SUBJECT: Final = "Compra con Tarjeta de Crédito"
DEFAULT_AFTER: Final = date(2025, 1, 1)


class MailMessage:
    """A candidate message: its unique id and plain-text body.

    ``body`` may be supplied directly or produced on first access by ``load``,
    so sources can hand out ids without downloading every message.
    """

    __slots__ = ("id", "_body", "_load")

    def __init__(
        self, id: str, body: str | None = None, *, load: Callable[[], str] | None = None
    ) -> None:
        if body is None and load is None:
            raise ValueError("MailMessage needs a body or a loader")
        self.id = id
        self._body = body
        self._load = load if body is None else None

    @property
    def body(self) -> str:
        if self._load is not None:
            self._body = self._load()
            self._load = None
        return self._body or ""

    def __repr__(self) -> str:
        state = "loaded" if self._body is not None else "pending"
        return f"MailMessage(id={self.id!r}, body=<{state}>)"


class MessageSource(Protocol):
    def search(self, query: SearchQuery) -> Iterable[MailMessage]: ...


# ---------------------------------------------------------------------------
# Query filter
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SearchQuery:
    """Sender + subject phrase + date lower bound (inclusive).

    ``str(query)`` is the mail-search string (``from:... subject:"..."
    after:YYYY-MM-DD``); :meth:`imap_criteria` and :meth:`matches` express the
    same filter for IMAP servers and local files.
    """

    sender: str = DEFAULT_SENDER
    subject: str = DEFAULT_SUBJECT
    after: date | None = DEFAULT_AFTER

    def __str__(self) -> str:
        parts = []
        if self.sender:
            parts.append(f"from:{self.sender}")
        if self.subject:
            parts.append(f'subject:"{self.subject}"')
        if self.after is not None:
            parts.append(f"after:{self.after.isoformat()}")
        return " ".join(parts)

    def imap_criteria(self) -> tuple[list[str], bytes | None]:
        """Return ``(criteria, literal)`` for an IMAP ``UID SEARCH``.

        IMAP arguments are ASCII-only, so a non-ASCII subject is sent as a
        trailing UTF-8 literal; ``SUBJECT`` is then the last criterion and the
        caller must assign ``literal`` to ``IMAP4.literal`` before searching.
        """

        criteria: list[str] = []
        literal: bytes | None = None
        if self.sender:
            criteria += ["FROM", _imap_quote(self.sender)]
        if self.after is not None:
            criteria += ["SINCE", self.after.strftime("%d-%b-%Y")]
        if self.subject:
            if self.subject.isascii():
                criteria += ["SUBJECT", _imap_quote(self.subject)]
            else:
                literal = self.subject.encode("utf-8")
                criteria = ["CHARSET", "UTF-8", *criteria, "SUBJECT"]
        if not criteria:
            criteria = ["ALL"]
        return criteria, literal

    def matches(self, sender: str | None, subject: str | None, sent_on: date | None) -> bool:
        """Case-insensitive containment on sender/subject; ``sent_on >= after``.

        Messages without a parseable date are kept; extraction decides later.
        """

        if self.sender and self.sender.lower() not in (sender or "").lower():
            return False
        if self.subject and self.subject.lower() not in (subject or "").lower():
            return False
        if self.after is not None and sent_on is not None and sent_on < self.after:
            return False
        return True


def _imap_quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


# ---------------------------------------------------------------------------
# RFC 5322 parsing helpers
# ---------------------------------------------------------------------------


def _html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    text = soup.get_text(separator=" ", strip=True)
    return re.sub(r"\s+", " ", text)


def _part_text(part: EmailMessage) -> str:
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        # Unknown/mislabelled charset: keep what can be decoded.
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _plain_body(msg: EmailMessage) -> str:
    plain = msg.get_body(preferencelist=("plain",))
    if plain is not None:
        return _part_text(plain)
    html = msg.get_body(preferencelist=("html",))
    if html is not None:
        return _html_to_text(_part_text(html))
    return ""


def _message_id(msg: EmailMessage, fallback: str) -> str:
    raw = msg.get("Message-ID")
    value = str(raw).strip().strip("<>").strip() if raw is not None else ""
    return value or fallback


def _sent_on(msg: EmailMessage) -> date | None:
    raw = msg.get("Date")
    if raw is None:
        return None
    try:
        return parsedate_to_datetime(str(raw)).date()
    except (TypeError, ValueError):
        return None


def parse_mail(raw: bytes, *, fallback_id: str) -> tuple[MailMessage, EmailMessage]:
    """Parse raw RFC 5322 bytes into a :class:`MailMessage` plus the parsed email.

    The id is the ``Message-ID`` header without angle brackets, or
    ``fallback_id`` when the header is missing.
    """

    msg = cast(EmailMessage, message_from_bytes(raw, policy=policy.default))
    return MailMessage(id=_message_id(msg, fallback_id), body=_plain_body(msg)), msg


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------


class EmlDirectoryMessageSource:
    """Messages stored as ``*.eml`` files, yielded in file-name order."""

    def __init__(self, path: str | PathLike[str]) -> None:
        self._path = Path(path)

    def search(self, query: SearchQuery) -> list[MailMessage]:
        if not self._path.is_dir():
            raise SourceUnavailable(f"message directory not found: {self._path}")

        found: list[MailMessage] = []
        for file in sorted(self._path.glob("*.eml")):
            try:
                raw = file.read_bytes()
            except OSError as exc:
                raise SourceUnavailable(f"cannot read {file}: {exc}") from exc
            message, parsed = parse_mail(raw, fallback_id=file.stem)
            if query.matches(parsed.get("From"), parsed.get("Subject"), _sent_on(parsed)):
                found.append(message)
        _logger.info("%d of the .eml files in %s match %s", len(found), self._path, query)
        return found


class ImapMessageSource:
    """Read-only IMAP/SSL mailbox search.

    Messages are yielded in ascending UID order with lazily fetched bodies.
    Messages lacking a ``Message-ID`` header get ``imap-uid:<mailbox>:<uid>``
    as their id.
    """

    def __init__(
        self,
        *,
        host: str,
        user: str,
        password: str,
        port: int = 993,
        mailbox: str = "INBOX",
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._mailbox = mailbox
        self._timeout = timeout

    def _connect(self) -> imaplib.IMAP4_SSL:
        try:
            conn = imaplib.IMAP4_SSL(self._host, self._port, timeout=self._timeout)
        except OSError as exc:
            raise SourceUnavailable(f"cannot connect to {self._host}:{self._port}: {exc}") from exc
        try:
            conn.login(self._user, self._password)
        except imaplib.IMAP4.error as exc:
            with contextlib.suppress(imaplib.IMAP4.error, OSError):
                conn.logout()
            raise SourceUnavailable(f"IMAP login failed for {self._user}: {exc}") from exc
        return conn

    def search(self, query: SearchQuery) -> Iterator[MailMessage]:
        """Yield matches in ascending UID order, reading only headers up front.

        Each message's full RFC822 text is fetched the first time its ``body``
        is read, over the same connection. The connection is logged out when
        the generator is exhausted or closed.
        """

        conn = self._connect()
        try:
            status, _ = conn.select(self._mailbox, readonly=True)
            if status != "OK":
                raise SourceUnavailable(f"cannot open mailbox {self._mailbox!r}")

            criteria, literal = query.imap_criteria()
            if literal is not None:
                conn.literal = literal
            status, data = conn.uid("SEARCH", *criteria)
            if status != "OK":
                raise SourceUnavailable(f"IMAP search failed for {query}")
            uids = data[0].split() if data and data[0] else []
            _logger.info("IMAP search %s matched %d messages", query, len(uids))

            for uid in uids:
                fallback = f"imap-uid:{self._mailbox}:{uid.decode('ascii', 'replace')}"
                header = self._fetch(conn, uid, "(BODY.PEEK[HEADER.FIELDS (MESSAGE-ID)])")
                if header is None:
                    _logger.warning("IMAP uid %r returned no headers", uid)
                    continue
                parsed = cast(EmailMessage, message_from_bytes(header, policy=policy.default))
                yield MailMessage(
                    _message_id(parsed, fallback),
                    load=partial(self._fetch_body, conn, uid, fallback),
                )
        except (imaplib.IMAP4.error, OSError) as exc:
            raise SourceUnavailable(f"IMAP error while searching {query}: {exc}") from exc
        finally:
            with contextlib.suppress(imaplib.IMAP4.error, OSError):
                conn.logout()

    @staticmethod
    def _fetch(conn: imaplib.IMAP4_SSL, uid: bytes, spec: str) -> bytes | None:
        status, fetched = conn.uid("FETCH", uid, spec)
        if status != "OK":
            raise SourceUnavailable(f"IMAP fetch failed for uid {uid!r}")
        raw = next(
            (item[1] for item in fetched if isinstance(item, tuple) and len(item) > 1),
            None,
        )
        return raw if isinstance(raw, bytes) else None

    def _fetch_body(self, conn: imaplib.IMAP4_SSL, uid: bytes, fallback: str) -> str:
        try:
            raw = self._fetch(conn, uid, "(RFC822)")
        except (imaplib.IMAP4.error, OSError) as exc:
            raise SourceUnavailable(f"IMAP error while fetching uid {uid!r}: {exc}") from exc
        if raw is None:
            _logger.warning("IMAP uid %r returned no message body", uid)
            return ""
        message, _parsed = parse_mail(raw, fallback_id=fallback)
        return message.body


__all__ = [
    "DEFAULT_AFTER",
    "DEFAULT_SENDER",
    "DEFAULT_SUBJECT",
    "EmlDirectoryMessageSource",
    "ImapMessageSource",
    "MailMessage",
    "MessageSource",
    "SearchQuery",
    "parse_mail",
]
