"""
Migration module for rebuilding trade embeddings.

Components:
- orchestrator: batched, progress-tracked re-embedding of a calendar
- verification: canned recall checks run after a migration
- progress: run counters and the timestamped progress log
- concurrency: settle-all join and batching helpers
- errors: fatal vs per-trade error taxonomy
"""

from migration.errors import (
    FetchError,
    InitializationError,
    MigrationError,
    MigrationInProgressError,
    RepresentationError,
    VerificationError,
)
from migration.orchestrator import MigrationState, TradeEmbeddingMigration
from migration.progress import MigrationStats, ProgressLog
from migration.verification import MigrationVerifier, VerificationReport

__all__ = [
    "FetchError",
    "InitializationError",
    "MigrationError",
    "MigrationInProgressError",
    "RepresentationError",
    "VerificationError",
    "MigrationState",
    "TradeEmbeddingMigration",
    "MigrationStats",
    "ProgressLog",
    "MigrationVerifier",
    "VerificationReport",
]
