"""
Unit tests for VectorSearchService.
"""

from datetime import datetime
from unittest.mock import AsyncMock, Mock

import pytest

from models import EmbeddingKey, SearchOptions
from retrieval.embedding_store import TradeEmbeddingStore
from retrieval.vector_search import VectorSearchService
from utils.document_builder import trade_to_searchable_text


@pytest.fixture
def service(database, fake_embeddings):
    return VectorSearchService(fake_embeddings, TradeEmbeddingStore())


async def _store_trades(service, fake_embeddings, trades):
    for trade in trades:
        content = trade_to_searchable_text(trade)
        embedding = await fake_embeddings.generate_embedding(content)
        await service.store_trade_embedding(trade, embedding, content, "user-1", "cal-1")


class TestSearchSimilarTrades:

    @pytest.mark.asyncio
    async def test_monday_query_returns_monday_trades_ranked(self, service, fake_embeddings, make_trade):
        """Test 3 Monday and 2 Tuesday trades: only the Mondays come back, best first."""
        trades = [
            make_trade("mon-be", datetime(2024, 1, 1), trade_type="breakeven"),
            make_trade("mon-win", datetime(2024, 1, 8), trade_type="win"),
            make_trade("mon-loss", datetime(2024, 1, 15), trade_type="loss", partials_taken=True),
            make_trade("tue-1", datetime(2024, 1, 2)),
            make_trade("tue-2", datetime(2024, 1, 9)),
        ]
        await _store_trades(service, fake_embeddings, trades)

        results = await service.search_similar_trades(
            "monday trades",
            "user-1",
            "cal-1",
            SearchOptions(similarity_threshold=0.1, max_results=100)
        )

        assert [r.trade_id for r in results] == ["mon-be", "mon-win", "mon-loss"]
        assert results[0].similarity == pytest.approx(1.0)
        assert all("day monday" in r.embedded_content for r in results)

    @pytest.mark.asyncio
    async def test_search_errors_are_reraised(self, fake_embeddings):
        store = Mock()
        store.similarity_search_by_vector = AsyncMock(side_effect=RuntimeError("db down"))
        service = VectorSearchService(fake_embeddings, store)

        with pytest.raises(RuntimeError, match="db down"):
            await service.search_similar_trades("monday trades", "user-1", "cal-1")


class TestEmbeddingBookkeeping:

    @pytest.mark.asyncio
    async def test_store_stats_exist_and_delete(self, service, fake_embeddings, make_trade):
        trades = [make_trade("t1"), make_trade("t2")]
        await _store_trades(service, fake_embeddings, trades)

        stats = await service.get_embedding_stats("user-1", "cal-1")
        assert stats.total_embeddings == 2

        existing = await service.check_embeddings_exist(["t1", "t3"], "user-1", "cal-1")
        assert existing == ["t1"]

        await service.delete_trade_embedding("t1", "user-1", "cal-1")
        stats = await service.get_embedding_stats("user-1", "cal-1")
        assert stats.total_embeddings == 1

    @pytest.mark.asyncio
    async def test_store_trade_embeddings_batch(self, fake_embeddings, make_trade):
        store = Mock()
        store.upsert = AsyncMock()
        service = VectorSearchService(fake_embeddings, store)
        trade = make_trade("t1", session="London")

        await service.store_trade_embeddings(
            [(trade, [1.0], "content")], "user-1", "cal-1"
        )

        store.upsert.assert_awaited_once()
        key, content, embedding, metadata = store.upsert.await_args.args
        assert key == EmbeddingKey("t1", "cal-1", "user-1")
        assert content == "content"
        assert metadata["trade_session"] == "London"
