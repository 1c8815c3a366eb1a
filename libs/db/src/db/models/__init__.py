"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the spending models used by ``spend_tracker``.
"""

from .spending import Base, StKeywordRule, StPurchase

__all__ = [
    "Base",
    "StKeywordRule",
    "StPurchase",
]
