"""
Database package for PostgreSQL with SQLAlchemy ORM.

This package provides:
- SQLAlchemy models for Trades and TradeEmbeddings
- Connection management with Parameter Store integration
- The trade repository used as the record source for embedding jobs

EMBEDDING ARCHITECTURE:
- Embeddings are stored in the trade_embeddings table, one row per
  (trade_id, calendar_id, user_id)
- See retrieval/embedding_store.py for reads, upserts and similarity search
"""

from database_orm.models import Trade, TradeEmbedding, Base
from database_orm.connection import get_session, get_engine, init_connection, close_connection
from database_orm.repository import TradeRepository

__all__ = [
    "Trade",
    "TradeEmbedding",
    "Base",
    "get_session",
    "get_engine",
    "init_connection",
    "close_connection",
    "TradeRepository",
]
