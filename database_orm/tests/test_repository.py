"""
Unit tests for the trade repository.
"""

from datetime import datetime

import pytest

from database_orm.repository import TradeRepository
from models import EconomicEvent


class TestTradeRepository:

    @pytest.mark.asyncio
    async def test_fetch_all_for_calendar_oldest_first(self, database, make_trade):
        repository = TradeRepository()
        await repository.add_trades([
            make_trade("late", datetime(2024, 2, 1)),
            make_trade("early", datetime(2024, 1, 1)),
            make_trade("other", datetime(2024, 1, 15), calendar_id="cal-2"),
        ], user_id="user-1")

        trades = await repository.fetch_all("cal-1")

        assert [t.id for t in trades] == ["early", "late"]
        assert trades[0].calendar_id == "cal-1"

    @pytest.mark.asyncio
    async def test_round_trips_trade_fields(self, database, make_trade):
        repository = TradeRepository()
        trade = make_trade(
            "t1",
            name="EURUSD long",
            session="London",
            entry=1.0845,
            exit="1.0900",
            risk_to_reward=2.5,
            partials_taken=True,
            tags=["breakout"],
            notes="clean retest",
            economic_events=[EconomicEvent(name="CPI", impact="High", currency="USD")],
        )
        await repository.add_trades([trade], user_id="user-1")

        [loaded] = await repository.fetch_all("cal-1")

        assert loaded.name == "EURUSD long"
        assert loaded.session == "London"
        assert str(loaded.entry) == "1.0845"
        assert loaded.partials_taken is True
        assert loaded.tags == ["breakout"]
        assert loaded.economic_events[0].name == "CPI"

    @pytest.mark.asyncio
    async def test_add_trades_replaces_existing(self, database, make_trade):
        repository = TradeRepository()
        await repository.add_trades([make_trade("t1", trade_type="loss")], user_id="user-1")
        await repository.add_trades([make_trade("t1", trade_type="win")], user_id="user-1")

        trades = await repository.fetch_all("cal-1")

        assert len(trades) == 1
        assert trades[0].trade_type == "win"

    @pytest.mark.asyncio
    async def test_empty_calendar(self, database):
        assert await TradeRepository().fetch_all("nothing-here") == []

    @pytest.mark.asyncio
    async def test_missing_calendar_rejected(self, database, make_trade):
        with pytest.raises(ValueError, match="no calendar_id"):
            await TradeRepository().add_trades([make_trade("t1", calendar_id="")], user_id="user-1")

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        def broken_session():
            raise ConnectionError("database unreachable")

        with pytest.raises(ConnectionError):
            await TradeRepository(session_factory=broken_session).fetch_all("cal-1")
