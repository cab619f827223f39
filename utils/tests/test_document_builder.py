"""
Unit tests for document_builder module.
"""

from datetime import datetime

import pytest

from models import EconomicEvent, TradeRecord
from utils.document_builder import embedding_metadata, trade_to_searchable_text


def _trade(**overrides) -> TradeRecord:
    fields = {
        "id": "t1",
        "trade_type": "win",
        "amount": 150.0,
        "date": datetime(2024, 1, 1, 10, 0),  # Monday
    }
    fields.update(overrides)
    return TradeRecord(**fields)


class TestTradeToSearchableText:
    """Tests for trade_to_searchable_text function."""

    def test_minimal_trade(self):
        """Test the fixed parts emitted for every trade."""
        text = trade_to_searchable_text(_trade())

        assert text == (
            "win trade amount 150 "
            "day monday month january year 2024 quarter 1 "
            "weekday season winter"
        )

    def test_complete_trade_field_order(self):
        """Test all optional fields appear once, in order."""
        trade = _trade(
            trade_type="loss",
            amount=-75.5,
            name="EURUSD",
            session="London",
            entry="1.0850",
            exit="1.0820",
            risk_to_reward=2.0,
            partials_taken=True,
            tags=["Breakout", "A+"],
            notes="Chased the move",
            economic_events=[EconomicEvent(name="CPI", impact="High", currency="USD")],
        )

        text = trade_to_searchable_text(trade)

        assert text.startswith(
            "loss trade amount 75.5 name eurusd session london entry 1.0850 "
            "exit 1.0820 risk reward ratio 2 partials taken tags breakout a+ "
            "notes chased the move economic events cpi high usd "
        )

    def test_amount_uses_absolute_value(self):
        text = trade_to_searchable_text(_trade(trade_type="loss", amount=-200.0))
        assert "amount 200 " in text
        assert "-200" not in text

    def test_weekend_and_season(self):
        """Test weekend detection and season/quarter mapping."""
        text = trade_to_searchable_text(_trade(date=datetime(2024, 7, 6)))  # Saturday

        assert "day saturday month july year 2024 quarter 3" in text
        assert "weekend" in text
        assert "weekday" not in text
        assert text.endswith("season summer")

    def test_fall_quarter_four(self):
        text = trade_to_searchable_text(_trade(date=datetime(2023, 10, 17)))  # Tuesday
        assert "day tuesday month october year 2023 quarter 4" in text
        assert text.endswith("weekday season fall")

    def test_falsy_optionals_are_skipped(self):
        """Test empty strings, zero ratio and empty lists are omitted."""
        text = trade_to_searchable_text(_trade(name="", risk_to_reward=0, tags=[], notes=None))

        assert "name" not in text
        assert "risk reward" not in text
        assert "tags" not in text
        assert "notes" not in text

    def test_output_is_lowercase(self):
        text = trade_to_searchable_text(_trade(name="NQ Futures", tags=["FOMC"]))
        assert text == text.lower()

    def test_none_trade_raises(self):
        with pytest.raises(ValueError, match="trade cannot be None"):
            trade_to_searchable_text(None)


class TestEmbeddingMetadata:
    """Tests for embedding_metadata function."""

    def test_metadata_columns(self):
        trade = _trade(session="NY", tags=["scalp"])

        metadata = embedding_metadata(trade)

        assert metadata == {
            "trade_type": "win",
            "trade_amount": 150.0,
            "trade_date": datetime(2024, 1, 1, 10, 0),
            "trade_session": "NY",
            "tags": ["scalp"],
        }

    def test_empty_session_becomes_none(self):
        assert embedding_metadata(_trade(session=""))["trade_session"] is None
