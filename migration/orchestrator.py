"""
Re-embedding migration for a calendar's trades.

Regenerates the searchable text and embedding of every trade in a calendar,
replacing whatever was stored before. Trades are processed in sequential
batches; the trades inside a batch are embedded and written concurrently and
the batch waits for all of them, whether they succeed or fail.

State machine:
    IDLE -> RUNNING -> COMPLETED | STOPPED | ABORTED

ABORTED is reserved for failures to acquire the run's inputs (embedding
service initialization, fetching the trades). Individual trade failures are
counted in the stats and never abort the run.
"""

import asyncio
import enum
import logging
from typing import ClassVar, Optional, Set, Tuple

from app.config import DEFAULT_BATCH_DELAY_SECONDS, DEFAULT_BATCH_SIZE
from database_orm.repository import TradeRepository
from embeddings import EmbeddingService
from migration.concurrency import batched, settle_all
from migration.errors import (
    FetchError,
    InitializationError,
    MigrationInProgressError,
    RepresentationError,
)
from migration.progress import MigrationStats, ProgressLog
from migration.verification import MigrationVerifier, VerificationReport
from models import EmbeddingKey, TradeRecord
from retrieval.embedding_store import TradeEmbeddingStore
from utils.document_builder import embedding_metadata, trade_to_searchable_text

logger = logging.getLogger(__name__)


class MigrationState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ABORTED = "aborted"


class TradeEmbeddingMigration:
    """Batch orchestrator for rebuilding trade embeddings.

    Usage:
        migration = TradeEmbeddingMigration(repository, embedding_service, store, verifier)
        stats = await migration.run(user_id, calendar_id)
    """

    # (user_id, calendar_id) pairs with a run in progress, across instances
    _active_runs: ClassVar[Set[Tuple[str, str]]] = set()

    def __init__(
        self,
        trade_source: TradeRepository,
        embedding_service: EmbeddingService,
        store: TradeEmbeddingStore,
        verifier: Optional[MigrationVerifier] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY_SECONDS,
        progress: Optional[ProgressLog] = None
    ):
        """Initialize the orchestrator.

        Args:
            trade_source: Provides fetch_all(calendar_id)
            embedding_service: Initialized lazily at the start of run()
            store: Destination for upserted embeddings
            verifier: Runs the post-migration checks (skipped when None)
            batch_size: Trades processed concurrently per batch
            batch_delay: Seconds to pause between batches
            progress: Log/stats sink (a new one is created when None)
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if batch_delay < 0:
            raise ValueError(f"batch_delay cannot be negative, got {batch_delay}")

        self.trade_source = trade_source
        self.embedding_service = embedding_service
        self.store = store
        self.verifier = verifier
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.progress = progress or ProgressLog()

        self.state = MigrationState.IDLE
        self.stats = MigrationStats()
        self.verification: Optional[VerificationReport] = None
        self._stop_requested = False

    @property
    def is_running(self) -> bool:
        return self.state == MigrationState.RUNNING

    def stop(self) -> None:
        """Ask the running migration to stop before its next batch."""
        if self.is_running:
            self._stop_requested = True
            self.progress.log("Stop requested, finishing current batch...")

    async def run(self, user_id: str, calendar_id: str, verify: bool = True) -> MigrationStats:
        """
        Rebuild embeddings for every trade of a calendar.

        Args:
            user_id: Owner of the embeddings
            calendar_id: Calendar whose trades are re-embedded
            verify: Run the verification pass after the last batch

        Returns:
            Final MigrationStats (errors > 0 is still a completed run)

        Raises:
            ValueError: If user_id or calendar_id is missing
            MigrationInProgressError: If this instance or this calendar is already migrating
            InitializationError: If the embedding service cannot start
            FetchError: If the trades cannot be loaded
        """
        if not user_id or not calendar_id:
            raise ValueError("user_id and calendar_id are required")

        run_key = (user_id, calendar_id)
        if self.is_running:
            raise MigrationInProgressError(
                "This migration instance is already running; use a separate instance per calendar"
            )
        if run_key in self._active_runs:
            raise MigrationInProgressError(
                f"Migration already running for calendar {calendar_id}"
            )

        self._active_runs.add(run_key)
        self.state = MigrationState.RUNNING
        self._stop_requested = False
        self.verification = None
        self.stats = MigrationStats()
        self.progress.clear()

        try:
            self.progress.log("Starting trade embeddings migration")
            self.progress.log(f"User ID: {user_id}")
            self.progress.log(f"Calendar ID: {calendar_id}")

            await self._initialize_embedding_service()
            trades = await self._fetch_trades(calendar_id)

            self.stats.total = len(trades)
            self.progress.update_stats(self.stats)

            await self._process_batches(trades, user_id, calendar_id)

            if self.stats.processed < self.stats.total:
                self.state = MigrationState.STOPPED
                self.progress.log(
                    f"Migration stopped after {self.stats.processed} of {self.stats.total} trades"
                )
                return self.stats

            self.progress.log("Migration completed!")
            self.progress.log(f"  Total trades: {self.stats.total}")
            self.progress.log(f"  Successfully migrated: {self.stats.success}")
            self.progress.log(f"  Errors: {self.stats.error}")

            if verify and self.verifier is not None:
                self.verification = await self._verify(user_id, calendar_id)

            self.state = MigrationState.COMPLETED
            return self.stats

        except (InitializationError, FetchError) as e:
            self.state = MigrationState.ABORTED
            self.progress.log(f"Migration aborted: {e}", level=logging.ERROR)
            raise

        finally:
            if self.state == MigrationState.RUNNING:
                # Unexpected exception escaping the loop
                self.state = MigrationState.ABORTED
            self._active_runs.discard(run_key)
            self.stats.current_trade = None
            self.progress.update_stats(self.stats)

    async def _initialize_embedding_service(self) -> None:
        self.progress.log("Initializing embedding model...")
        try:
            await self.embedding_service.initialize()
        except Exception as e:
            raise InitializationError(f"Embedding service failed to initialize: {e}") from e
        self.progress.log("Embedding model ready")

    async def _fetch_trades(self, calendar_id: str) -> list:
        self.progress.log("Fetching all trades from calendar...")
        try:
            trades = await self.trade_source.fetch_all(calendar_id)
        except Exception as e:
            raise FetchError(f"Could not fetch trades for calendar {calendar_id}: {e}") from e
        self.progress.log(f"Total trades found: {len(trades)}")
        return trades

    async def _process_batches(self, trades: list, user_id: str, calendar_id: str) -> None:
        total = len(trades)
        start = 0

        for batch in batched(trades, self.batch_size):
            if self._stop_requested:
                break

            end = start + len(batch)
            self.stats.current_trade = batch[0].id
            self.progress.log(f"Processing trades {start + 1}-{end} of {total}...")

            outcomes = await settle_all(
                self.upsert_representation(trade, user_id, calendar_id) for trade in batch
            )
            successes = sum(1 for outcome in outcomes if outcome.ok and outcome.value)
            errors = len(batch) - successes

            self.stats.record_batch(len(batch), successes, errors)
            self.progress.update_stats(self.stats)

            start = end
            if start < total and self.batch_delay:
                await asyncio.sleep(self.batch_delay)

    async def upsert_representation(
        self,
        trade: TradeRecord,
        user_id: str,
        calendar_id: str
    ) -> bool:
        """
        Rebuild and store one trade's embedding.

        Returns:
            True if the embedding was written, False if any stage failed
            (the failure is logged as a RepresentationError)
        """
        try:
            await self._upsert_representation(trade, user_id, calendar_id)
            return True
        except RepresentationError as e:
            self.progress.log(str(e), level=logging.ERROR)
            return False

    async def _upsert_representation(
        self,
        trade: TradeRecord,
        user_id: str,
        calendar_id: str
    ) -> None:
        stage = "build_text"
        try:
            content = trade_to_searchable_text(trade)

            stage = "compute_vector"
            embedding = await self.embedding_service.generate_embedding(content)

            stage = "store_write"
            await self.store.upsert(
                EmbeddingKey(trade.id, calendar_id, user_id),
                content,
                embedding,
                embedding_metadata(trade)
            )
        except Exception as e:
            raise RepresentationError(trade.id, stage, e) from e

    async def test_migration(self, user_id: str, calendar_id: str) -> Optional[VerificationReport]:
        """Run the verification pass on its own (no re-embedding)."""
        if self.verifier is None:
            return None
        return await self.verifier.test_migration(user_id, calendar_id, progress=self.progress)

    async def _verify(self, user_id: str, calendar_id: str) -> Optional[VerificationReport]:
        try:
            return await self.test_migration(user_id, calendar_id)
        except Exception as e:
            # A broken verification pass does not change the run outcome
            self.progress.log(f"Verification failed: {e}", level=logging.ERROR)
            return None
