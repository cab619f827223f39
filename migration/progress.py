"""
Progress tracking for re-embedding runs.

MigrationStats holds the run counters; ProgressLog is the append-only
message log plus latest stats snapshot that a UI or CLI polls or subscribes to.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class MigrationStats(BaseModel):
    """Run counters. processed == success + error after every batch."""
    total: int = 0
    processed: int = 0
    success: int = 0
    error: int = 0
    current_trade: Optional[str] = None  # first trade id of the batch in flight

    def record_batch(self, size: int, successes: int, errors: int) -> None:
        """
        Fold one batch result into the counters.

        Raises:
            ValueError: If the batch outcome does not add up or overruns total
        """
        if successes < 0 or errors < 0 or successes + errors != size:
            raise ValueError(
                f"Batch of {size} reported {successes} successes and {errors} errors"
            )
        if self.processed + size > self.total:
            raise ValueError(
                f"Batch of {size} would exceed total ({self.processed}/{self.total})"
            )

        self.processed += size
        self.success += successes
        self.error += errors

    @property
    def is_complete(self) -> bool:
        return self.processed == self.total

    @property
    def progress_percent(self) -> float:
        if self.total == 0:
            return 0.0
        return self.processed / self.total * 100


StatsListener = Callable[[MigrationStats], None]
MessageListener = Callable[[str], None]


class ProgressLog:
    """Timestamped messages and the latest stats snapshot of a run.

    Not persisted. Listeners are called synchronously after each append or
    stats update; a failing listener is logged and does not affect the run.
    """

    def __init__(self):
        self.messages: List[str] = []
        self.stats = MigrationStats()
        self._message_listeners: List[MessageListener] = []
        self._stats_listeners: List[StatsListener] = []

    def add_listener(
        self,
        on_message: Optional[MessageListener] = None,
        on_stats: Optional[StatsListener] = None
    ) -> None:
        if on_message:
            self._message_listeners.append(on_message)
        if on_stats:
            self._stats_listeners.append(on_stats)

    def log(self, message: str, level: int = logging.INFO) -> None:
        """Append a timestamped message and mirror it to the logger."""
        entry = f"{datetime.now().strftime('%H:%M:%S')}: {message}"
        self.messages.append(entry)
        logger.log(level, message)

        for listener in self._message_listeners:
            try:
                listener(entry)
            except Exception as e:
                logger.warning(f"Progress message listener failed: {e}")

    def update_stats(self, stats: MigrationStats) -> None:
        """Publish a copy of the current stats."""
        self.stats = stats.model_copy()

        for listener in self._stats_listeners:
            try:
                listener(self.stats)
            except Exception as e:
                logger.warning(f"Progress stats listener failed: {e}")

    def clear(self) -> None:
        self.messages = []
        self.stats = MigrationStats()
