"""
Shared pytest fixtures.

Provides:
- A file-backed SQLite database with the trade tables created
- A deterministic keyword-based stand-in for the VoyageAI embedding service
- A trade factory
"""

import asyncio
from datetime import datetime

import pytest

from database_orm.connection import init_connection, close_connection
from database_orm.models import Base
from models import TradeRecord

# One dimension per keyword; a text's vector marks which keywords occur as words
KEYWORDS = [
    "monday", "tuesday", "wednesday", "thursday", "friday",
    "saturday", "sunday", "weekend", "win", "loss", "partials",
]


class FakeEmbeddingService:
    """Keyword-presence embeddings with call tracking and injectable failures."""

    def __init__(self):
        self.dimension = len(KEYWORDS)
        self.initialized = False
        self.initialize_calls = 0
        self.fail_on = set()          # substrings that make generate_embedding raise
        self.init_error = None        # exception raised by initialize()
        self.delay = 0.0              # seconds slept inside each embedding call
        self.in_flight = 0
        self.max_in_flight = 0
        self.embedded = []

    async def initialize(self):
        self.initialize_calls += 1
        if self.init_error is not None:
            raise self.init_error
        self.initialized = True

    async def close(self):
        self.initialized = False

    def is_ready(self):
        return self.initialized

    def vector_for(self, text: str) -> list:
        words = set(text.lower().replace("?", " ").split())
        return [1.0 if keyword in words else 0.0 for keyword in KEYWORDS]

    async def generate_embedding(self, text: str) -> list:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            for marker in self.fail_on:
                if marker in text:
                    raise RuntimeError(f"embedding backend rejected text containing '{marker}'")
            self.embedded.append(text)
            return self.vector_for(text)
        finally:
            self.in_flight -= 1

    async def generate_query_embedding(self, query: str) -> list:
        return self.vector_for(query)


@pytest.fixture
def fake_embeddings():
    """Deterministic embedding service stand-in."""
    return FakeEmbeddingService()


@pytest.fixture
def database(tmp_path):
    """Initialize a SQLite database file with all tables; closed after the test."""
    close_connection()
    engine = init_connection(f"sqlite:///{tmp_path / 'trade_journal.db'}")
    Base.metadata.create_all(engine)
    yield engine
    close_connection()


@pytest.fixture
def make_trade():
    """Factory for TradeRecord with sensible defaults."""
    def _make_trade(trade_id: str, date: datetime = None, **overrides) -> TradeRecord:
        fields = {
            "id": trade_id,
            "calendar_id": "cal-1",
            "trade_type": "win",
            "amount": 150.0,
            "date": date or datetime(2024, 1, 2, 9, 30),
        }
        fields.update(overrides)
        return TradeRecord(**fields)

    return _make_trade
