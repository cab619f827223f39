"""
Vector search service for trades.

Embeds natural language queries and ranks a calendar's stored trade
embeddings against them.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from embeddings import EmbeddingService
from models import EmbeddingKey, EmbeddingStats, SearchOptions, TradeRecord, TradeSearchResult
from retrieval.embedding_store import TradeEmbeddingStore
from utils.document_builder import embedding_metadata

logger = logging.getLogger(__name__)


class VectorSearchService:
    """Semantic search and embedding bookkeeping for trades."""

    def __init__(self, embedding_service: EmbeddingService, store: TradeEmbeddingStore):
        self.embedding_service = embedding_service
        self.store = store

    async def search_similar_trades(
        self,
        query: str,
        user_id: str,
        calendar_id: str,
        options: Optional[SearchOptions] = None
    ) -> List[TradeSearchResult]:
        """Search for similar trades using semantic similarity.

        Args:
            query: Natural language query
            user_id: Owner
            calendar_id: Calendar
            options: Threshold, result cap and filters

        Returns:
            Ranked results, highest similarity first
        """
        try:
            query_embedding = await self.embedding_service.generate_query_embedding(query)
            return await self.store.similarity_search_by_vector(
                query_embedding, user_id, calendar_id, options
            )
        except Exception as e:
            logger.error(f"Error in search_similar_trades for '{query}': {e}")
            raise

    async def store_trade_embedding(
        self,
        trade: TradeRecord,
        embedding: Sequence[float],
        content: str,
        user_id: str,
        calendar_id: str
    ) -> None:
        """Store (or overwrite) one trade's embedding."""
        try:
            await self.store.upsert(
                EmbeddingKey(trade.id, calendar_id, user_id),
                content,
                embedding,
                embedding_metadata(trade)
            )
            logger.info(f"Stored embedding for trade {trade.id}")
        except Exception as e:
            logger.error(f"Error storing trade embedding for {trade.id}: {e}")
            raise

    async def store_trade_embeddings(
        self,
        trade_embeddings: List[Tuple[TradeRecord, Sequence[float], str]],
        user_id: str,
        calendar_id: str
    ) -> None:
        """Store several (trade, embedding, content) triples."""
        for trade, embedding, content in trade_embeddings:
            await self.store_trade_embedding(trade, embedding, content, user_id, calendar_id)
        logger.info(f"Stored {len(trade_embeddings)} trade embeddings")

    async def delete_trade_embedding(self, trade_id: str, user_id: str, calendar_id: str) -> None:
        """Delete a trade's embedding."""
        try:
            await self.store.delete(EmbeddingKey(trade_id, calendar_id, user_id))
            logger.info(f"Deleted embedding for trade {trade_id}")
        except Exception as e:
            logger.error(f"Error deleting trade embedding {trade_id}: {e}")
            raise

    async def get_embedding_stats(self, user_id: str, calendar_id: str) -> EmbeddingStats:
        """Get embedding statistics for a calendar."""
        try:
            return await self.store.get_stats(user_id, calendar_id)
        except Exception as e:
            logger.error(f"Error getting embedding stats: {e}")
            raise

    async def check_embeddings_exist(
        self,
        trade_ids: List[str],
        user_id: str,
        calendar_id: str
    ) -> List[str]:
        """Return the subset of trade_ids that already have embeddings."""
        try:
            return await self.store.existing_trade_ids(trade_ids, user_id, calendar_id)
        except Exception as e:
            logger.error(f"Error checking embeddings: {e}")
            raise
