"""Exception types raised across ``spend_tracker``.

Only collaborator failures are exceptions. A body that does not look like a
purchase notification is not an error (see :data:`spend_tracker.models.NO_MATCH`),
and a missing rule table simply yields zero rules.
"""

from __future__ import annotations


class SpendTrackerError(Exception):
    """Base class for errors surfaced by this package."""


class SourceUnavailable(SpendTrackerError):
    """The message source could not be reached or read."""


class SinkUnavailable(SpendTrackerError):
    """The purchase store could not be read or written."""


class ConfigurationError(SpendTrackerError):
    """A configuration value is missing or malformed."""


__all__ = [
    "ConfigurationError",
    "SinkUnavailable",
    "SourceUnavailable",
    "SpendTrackerError",
]
