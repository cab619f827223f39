"""Errors raised by the trade re-embedding migration."""

from typing import Optional


class MigrationError(Exception):
    """Base class for migration failures."""
    pass


class FetchError(MigrationError):
    """The trade set could not be loaded; the run is aborted."""
    pass


class InitializationError(MigrationError):
    """The embedding service failed to initialize; the run is aborted."""
    pass


class MigrationInProgressError(MigrationError):
    """A run for the same user and calendar is already active."""
    pass


class RepresentationError(MigrationError):
    """Rebuilding one trade's embedding failed.

    Recovered inside the batch loop: counted as an error, never raised past it.
    """

    def __init__(self, trade_id: str, stage: str, cause: Optional[BaseException] = None):
        self.trade_id = trade_id
        self.stage = stage
        self.cause = cause
        super().__init__(f"Trade {trade_id} failed at {stage}: {cause}")


class VerificationError(MigrationError):
    """A diagnostic query failed; recorded in the report only."""

    def __init__(self, query: str, cause: Optional[BaseException] = None):
        self.query = query
        self.cause = cause
        super().__init__(f"Verification query '{query}' failed: {cause}")
