"""
SQLAlchemy ORM models for the trade journal database.

This module defines:
- Trades table (the journaled records, grouped by calendar and user)
- Trade embeddings table holding one derived representation per
  (trade_id, calendar_id, user_id), written with upsert semantics
"""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator, JSON


class JSONBType(TypeDecorator):
    """
    Custom JSONB type that works with both PostgreSQL and SQLite.

    Uses JSONB for PostgreSQL and JSON for other databases.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(JSON())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class Trade(Base):
    """
    Trades table stores journaled trades.

    Each trade belongs to a calendar and a user.
    """
    __tablename__ = "trades"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    calendar_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    trade_type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    date: Mapped[datetime] = mapped_column("trade_date", DateTime(timezone=True), nullable=False)

    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    session: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    entry: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    exit: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    risk_to_reward: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    partials_taken: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tags: Mapped[list] = mapped_column(JSONBType, nullable=False, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    economic_events: Mapped[list] = mapped_column(JSONBType, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow
    )

    __table_args__ = (
        Index("idx_trades_calendar_date", "calendar_id", "trade_date"),
    )

    def __repr__(self) -> str:
        return f"<Trade(id={self.id}, calendar_id={self.calendar_id}, type={self.trade_type})>"


class TradeEmbedding(Base):
    """
    Trade embeddings table stores the searchable text and vector for a trade.

    The composite key (trade_id, calendar_id, user_id) is unique; writes go
    through INSERT ... ON CONFLICT so a rerun overwrites instead of duplicating.
    Filter columns are denormalized from the trade for search-time filtering.
    """
    __tablename__ = "trade_embeddings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    trade_id: Mapped[str] = mapped_column(String, nullable=False)
    calendar_id: Mapped[str] = mapped_column(String, nullable=False)
    user_id: Mapped[str] = mapped_column(String, nullable=False)

    trade_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    trade_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    trade_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    trade_session: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    tags: Mapped[list] = mapped_column(JSONBType, nullable=False, default=list)

    embedding: Mapped[list] = mapped_column(JSONBType, nullable=False)
    embedded_content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("trade_id", "calendar_id", "user_id", name="uq_trade_embeddings_key"),
        Index("idx_trade_embeddings_owner", "user_id", "calendar_id"),
    )

    def __repr__(self) -> str:
        return f"<TradeEmbedding(trade_id={self.trade_id}, calendar_id={self.calendar_id})>"
