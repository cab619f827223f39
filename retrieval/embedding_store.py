"""
Trade embedding store backed by the trade_embeddings table.

Writes are single INSERT ... ON CONFLICT statements keyed by
(trade_id, calendar_id, user_id), so the last write for a key wins and a
rerun never accumulates duplicates. Similarity is cosine, scored over the
owner's calendar after the SQL-side filters have narrowed the candidates.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from app.config import DEFAULT_MAX_RESULTS, DEFAULT_SIMILARITY_THRESHOLD
from database_orm.connection import get_engine, get_session
from database_orm.models import Base, TradeEmbedding
from models import EmbeddingKey, EmbeddingStats, SearchOptions, StoredEmbedding, TradeSearchResult
from utils.similarity import rank_by_similarity

logger = logging.getLogger(__name__)

KEY_COLUMNS = ("trade_id", "calendar_id", "user_id")
METADATA_COLUMNS = ("trade_type", "trade_amount", "trade_date", "trade_session", "tags")

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class TradeEmbeddingStore:
    """Reads, upserts and searches trade embeddings.

    Features:
    - Upsert keyed by (trade_id, calendar_id, user_id), last write wins
    - Owner/calendar isolation on every read
    - Cosine similarity search with threshold, result cap and
      trade type / date range / tag filters
    """

    def __init__(
        self,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        max_results: int = DEFAULT_MAX_RESULTS
    ):
        """Initialize the store.

        Args:
            session_factory: Context manager factory yielding sessions
            similarity_threshold: Default minimum similarity for searches
            max_results: Default result cap for searches
        """
        self._session_factory = session_factory
        self.similarity_threshold = similarity_threshold
        self.max_results = max_results

    @staticmethod
    def create_tables(engine=None) -> None:
        """Create the trades and trade_embeddings tables if missing."""
        engine = engine or get_engine()
        Base.metadata.create_all(engine)
        logger.info("Ensured trades and trade_embeddings tables exist")

    async def upsert(
        self,
        key: EmbeddingKey,
        content: str,
        embedding: Sequence[float],
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Insert or overwrite the embedding stored for key.

        Args:
            key: (trade_id, calendar_id, user_id)
            content: Embedded text
            embedding: Embedding vector
            metadata: Filter columns (see METADATA_COLUMNS)

        Raises:
            ValueError: On unknown metadata columns or unsupported database
        """
        await asyncio.to_thread(self._upsert_sync, key, content, list(embedding), dict(metadata or {}))

    def _upsert_sync(
        self,
        key: EmbeddingKey,
        content: str,
        embedding: List[float],
        metadata: Dict[str, Any]
    ) -> None:
        unknown = set(metadata) - set(METADATA_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown embedding metadata columns: {sorted(unknown)}")

        now = datetime.now(timezone.utc)
        values = {
            **key._asdict(),
            **metadata,
            "embedding": embedding,
            "embedded_content": content,
            "created_at": now,
            "updated_at": now,
        }
        if values.get("tags") is None:
            values["tags"] = []

        with self._session_factory() as session:
            dialect = session.get_bind().dialect.name
            insert = _DIALECT_INSERTS.get(dialect)
            if insert is None:
                raise ValueError(f"Upsert not supported for database dialect: {dialect}")

            stmt = insert(TradeEmbedding).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=list(KEY_COLUMNS),
                set_={
                    column: stmt.excluded[column]
                    for column in values
                    if column not in KEY_COLUMNS and column != "created_at"
                }
            )
            session.execute(stmt)

        logger.debug(f"Upserted embedding for trade {key.trade_id}")

    async def query(
        self,
        user_id: str,
        calendar_id: str,
        trade_ids: Optional[Iterable[str]] = None,
        limit: Optional[int] = None
    ) -> List[StoredEmbedding]:
        """Return stored embeddings of a calendar, ordered by trade date."""
        ids = list(trade_ids) if trade_ids is not None else None
        return await asyncio.to_thread(self._query_sync, user_id, calendar_id, ids, limit)

    def _query_sync(
        self,
        user_id: str,
        calendar_id: str,
        trade_ids: Optional[List[str]],
        limit: Optional[int]
    ) -> List[StoredEmbedding]:
        stmt = select(TradeEmbedding).where(
            TradeEmbedding.user_id == user_id,
            TradeEmbedding.calendar_id == calendar_id,
        )
        if trade_ids is not None:
            stmt = stmt.where(TradeEmbedding.trade_id.in_(trade_ids))
        stmt = stmt.order_by(TradeEmbedding.trade_date, TradeEmbedding.trade_id)
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._session_factory() as session:
            return [StoredEmbedding.model_validate(row) for row in session.scalars(stmt)]

    async def similarity_search_by_vector(
        self,
        query_embedding: Sequence[float],
        user_id: str,
        calendar_id: str,
        options: Optional[SearchOptions] = None
    ) -> List[TradeSearchResult]:
        """Rank a calendar's trades by cosine similarity to a query vector.

        Args:
            query_embedding: Query vector
            user_id: Owner
            calendar_id: Calendar
            options: Threshold, result cap and filters

        Returns:
            Results with similarity >= threshold, highest first, at most max_results
        """
        options = options or SearchOptions()
        return await asyncio.to_thread(
            self._similarity_search_sync, list(query_embedding), user_id, calendar_id, options
        )

    def _similarity_search_sync(
        self,
        query_embedding: List[float],
        user_id: str,
        calendar_id: str,
        options: SearchOptions
    ) -> List[TradeSearchResult]:
        threshold = (
            options.similarity_threshold
            if options.similarity_threshold is not None
            else self.similarity_threshold
        )
        limit = options.max_results or self.max_results

        stmt = select(TradeEmbedding).where(
            TradeEmbedding.user_id == user_id,
            TradeEmbedding.calendar_id == calendar_id,
        )
        if options.trade_types:
            stmt = stmt.where(TradeEmbedding.trade_type.in_(options.trade_types))
        if options.date_range:
            stmt = stmt.where(
                TradeEmbedding.trade_date >= options.date_range.start,
                TradeEmbedding.trade_date <= options.date_range.end,
            )

        with self._session_factory() as session:
            rows = list(session.scalars(stmt))

        if options.tags:
            wanted = set(options.tags)
            rows = [row for row in rows if wanted.intersection(row.tags or [])]

        ranked = rank_by_similarity(
            query_embedding,
            [(row, row.embedding) for row in rows],
            threshold=threshold,
            limit=limit
        )

        return [
            TradeSearchResult(
                trade_id=row.trade_id,
                similarity=score,
                trade_type=row.trade_type,
                trade_amount=row.trade_amount,
                trade_date=row.trade_date,
                trade_session=row.trade_session,
                tags=row.tags or [],
                embedded_content=row.embedded_content,
            )
            for row, score in ranked
        ]

    async def delete(self, key: EmbeddingKey) -> int:
        """Delete the embedding stored for key; returns rows deleted."""
        return await asyncio.to_thread(self._delete_sync, key)

    def _delete_sync(self, key: EmbeddingKey) -> int:
        with self._session_factory() as session:
            result = session.execute(
                delete(TradeEmbedding).where(
                    TradeEmbedding.trade_id == key.trade_id,
                    TradeEmbedding.calendar_id == key.calendar_id,
                    TradeEmbedding.user_id == key.user_id,
                )
            )
            return result.rowcount

    async def get_stats(self, user_id: str, calendar_id: str) -> EmbeddingStats:
        """Count embeddings of a calendar and report the latest update."""
        return await asyncio.to_thread(self._get_stats_sync, user_id, calendar_id)

    def _get_stats_sync(self, user_id: str, calendar_id: str) -> EmbeddingStats:
        stmt = select(
            func.count(TradeEmbedding.id),
            func.max(TradeEmbedding.updated_at),
        ).where(
            TradeEmbedding.user_id == user_id,
            TradeEmbedding.calendar_id == calendar_id,
        )
        with self._session_factory() as session:
            total, last_updated = session.execute(stmt).one()

        return EmbeddingStats(total_embeddings=total, last_updated=last_updated)

    async def existing_trade_ids(
        self,
        trade_ids: Iterable[str],
        user_id: str,
        calendar_id: str
    ) -> List[str]:
        """Return which of trade_ids already have a stored embedding."""
        ids = list(trade_ids)
        if not ids:
            return []
        rows = await self.query(user_id, calendar_id, trade_ids=ids)
        return [row.trade_id for row in rows]
