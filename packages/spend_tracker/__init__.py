"""Public interface for the ``spend_tracker`` package.

This module re-exports the pipeline entry points and the public models/types
as the stable import surface. There is no runtime logic here, only symbol
re-exports.
"""

from .categorize import categorize
from .errors import (
    ConfigurationError,
    SinkUnavailable,
    SourceUnavailable,
    SpendTrackerError,
)
from .extract import extract
from .models import (
    NO_MATCH,
    CategorizationRule,
    ExtractionResult,
    IngestOutcome,
    NoMatch,
    PurchaseRecord,
    StoredPurchase,
)
from .pipeline import run_ingestion
from .rules import load_rules
from .sweep import recategorize_uncategorized

__all__ = [
    # API
    "categorize",
    "extract",
    "load_rules",
    "recategorize_uncategorized",
    "run_ingestion",
    # Models / types
    "NO_MATCH",
    "CategorizationRule",
    "ExtractionResult",
    "IngestOutcome",
    "NoMatch",
    "PurchaseRecord",
    "StoredPurchase",
    # Errors
    "ConfigurationError",
    "SinkUnavailable",
    "SourceUnavailable",
    "SpendTrackerError",
]
