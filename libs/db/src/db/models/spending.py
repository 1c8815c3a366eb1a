from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: st_purchases
# ---------------------------


class StPurchase(Base):
    __tablename__ = "st_purchases"

    # Row key; insertion order is the table's row order.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    merchant: Mapped[str] = mapped_column(Text, nullable=False)
    # Whole pesos; the notification format carries no decimals.
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Empty string means "not categorized yet"; the sweep only fills those rows.
    category: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("''"), index=True
    )
    payment_method: Mapped[str] = mapped_column(String, nullable=False)
    source_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (CheckConstraint("amount >= 0", name="ck_st_purchase_amount_non_negative"),)


# ---------------------------
# Configuration: st_keyword_rules
# ---------------------------


class StKeywordRule(Base):
    __tablename__ = "st_keyword_rules"

    # Source order for equal-length keywords follows ``id``.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Stored as written; lower-casing happens when a snapshot is loaded.
    keyword: Mapped[str | None] = mapped_column(String, nullable=True)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


__all__ = [
    "Base",
    "StKeywordRule",
    "StPurchase",
]
