"""
Retrieval module for trade embedding storage and semantic search.

Components:
- embedding_store: trade_embeddings table access (upsert, query, cosine search)
- vector_search: query embedding + ranked search over a calendar
"""

from retrieval.embedding_store import TradeEmbeddingStore
from retrieval.vector_search import VectorSearchService

__all__ = [
    "TradeEmbeddingStore",
    "VectorSearchService",
]
