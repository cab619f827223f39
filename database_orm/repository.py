"""
Trade repository: the record source for embedding jobs.

Reads run in a worker thread so async callers never block the event loop
on the synchronous SQLAlchemy session.
"""

import asyncio
import logging
from typing import Callable, ContextManager, Iterable, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from database_orm.connection import get_session
from database_orm.models import Trade
from models import TradeRecord

logger = logging.getLogger(__name__)


class TradeRepository:
    """Loads and stores trades for a calendar."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]] = get_session):
        self._session_factory = session_factory

    async def fetch_all(self, calendar_id: str) -> List[TradeRecord]:
        """
        Fetch every trade of a calendar in a single query, oldest first.

        Args:
            calendar_id: Calendar identifier

        Returns:
            List of TradeRecord

        Raises:
            Exception: Database/transport errors propagate unchanged
        """
        return await asyncio.to_thread(self._fetch_all_sync, calendar_id)

    def _fetch_all_sync(self, calendar_id: str) -> List[TradeRecord]:
        with self._session_factory() as session:
            stmt = (
                select(Trade)
                .where(Trade.calendar_id == calendar_id)
                .order_by(Trade.date, Trade.id)
            )
            trades = [TradeRecord.model_validate(row) for row in session.scalars(stmt)]

        logger.info(f"Fetched {len(trades)} trades for calendar {calendar_id}")
        return trades

    async def add_trades(self, records: Iterable[TradeRecord], user_id: str) -> int:
        """
        Insert or replace trades (used for imports and seeding).

        Returns:
            Number of trades written
        """
        return await asyncio.to_thread(self._add_trades_sync, list(records), user_id)

    def _add_trades_sync(self, records: List[TradeRecord], user_id: str) -> int:
        with self._session_factory() as session:
            for record in records:
                if not record.calendar_id:
                    raise ValueError(f"Trade {record.id} has no calendar_id")
                session.merge(Trade(
                    id=record.id,
                    calendar_id=record.calendar_id,
                    user_id=user_id,
                    trade_type=record.trade_type,
                    amount=record.amount,
                    date=record.date,
                    name=record.name,
                    session=record.session,
                    entry=None if record.entry is None else str(record.entry),
                    exit=None if record.exit is None else str(record.exit),
                    risk_to_reward=record.risk_to_reward,
                    partials_taken=record.partials_taken,
                    tags=list(record.tags),
                    notes=record.notes,
                    economic_events=[event.model_dump() for event in record.economic_events],
                ))

        logger.info(f"Stored {len(records)} trades for user {user_id}")
        return len(records)
