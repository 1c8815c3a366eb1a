"""Purchase extraction from credit-card notification bodies.

Public API:
    - :func:`extract`

The recognized template (case-insensitive, any whitespace between tokens)::

    compra por $19.790 con Tarjeta de Crédito ****0990 en PARIS VINA DEL MAR
    el 13/12/2025 17:01

Anything else is reported as :data:`~spend_tracker.models.NO_MATCH`; this
module never raises for unexpected input.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Final

from .logging_setup import get_logger
from .models import NO_MATCH, TIMESTAMP_FORMAT, ExtractionResult, PurchaseRecord

_logger = get_logger("spend_tracker.extract")

# Groups: amount, card last 4, merchant (lazy, may span lines), date, time.
# [0-9] rather than \d: only ASCII digits count.
_NOTIFICATION_RE: Final = re.compile(
    r"compra\s+por\s+\$([0-9.]+)"
    r"\s+con\s+Tarjeta\s+de\s+Cr[ée]dito\s+\*{4}([0-9]{4})"
    r"\s+en\s+([\s\S]+?)"
    r"\s+el\s+([0-9]{2}/[0-9]{2}/[0-9]{4})\s+([0-9]{2}:[0-9]{2})",
    re.IGNORECASE,
)

# Periods are the thousands separator in the notification locale.
_THOUSANDS_SEP: Final = "."

_LINE_BREAK_RE: Final = re.compile(r"[ \t]*[\r\n]+[ \t]*")


def _parse_amount(raw: str) -> int | None:
    digits = raw.replace(_THOUSANDS_SEP, "")
    if not digits.isdigit():
        return None
    return int(digits)


def _clean_merchant(raw: str) -> str:
    return _LINE_BREAK_RE.sub(" ", raw.strip())


def _valid_timestamp(date_str: str, time_str: str) -> str | None:
    stamp = f"{date_str} {time_str}"
    try:
        datetime.strptime(stamp, TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return stamp


def extract(body: Any, *, source_id: str = "") -> ExtractionResult:
    """Parse one notification body into an uncategorized purchase record.

    Parameters
    ----------
    body:
        Plain-text message body. Leading/trailing content is ignored and the
        merchant may span line breaks. Non-string values yield ``NO_MATCH``.
    source_id:
        Identifier of the originating message, copied onto the record.

    Returns
    -------
    PurchaseRecord | NoMatch
        A record with ``category=""`` built from the first occurrence of the
        template whose amount holds digits and whose date/time is a real
        calendar value; ``NO_MATCH`` when there is none.
    """

    if not isinstance(body, str) or not body:
        return NO_MATCH

    for match in _NOTIFICATION_RE.finditer(body):
        record = _to_record(match, source_id)
        if record is not None:
            return record
    return NO_MATCH


def _to_record(match: re.Match[str], source_id: str) -> PurchaseRecord | None:
    raw_amount, card_last4, raw_merchant, date_str, time_str = match.groups()

    amount = _parse_amount(raw_amount)
    if amount is None:
        _logger.debug("amount without digits in %r (source_id=%s)", match.group(0), source_id)
        return None

    timestamp = _valid_timestamp(date_str, time_str)
    if timestamp is None:
        _logger.debug("invalid date/time in %r (source_id=%s)", match.group(0), source_id)
        return None

    return PurchaseRecord(
        timestamp=timestamp,
        merchant=_clean_merchant(raw_merchant),
        amount=amount,
        category="",
        payment_method=f"Tarjeta ****{card_last4}",
        source_id=source_id,
        raw_text=match.group(0),
    )


__all__ = ["extract"]
