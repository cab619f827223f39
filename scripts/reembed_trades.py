#!/usr/bin/env python3
"""
Re-embed every trade of a calendar.

Rebuilds the searchable text and VoyageAI embedding of each trade, upserts it
into trade_embeddings, then runs the verification queries.

Usage:
    # Use DATABASE_URL from environment or Parameter Store
    python scripts/reembed_trades.py --user-id USER --calendar-id CALENDAR

    # Specify a custom database URL
    python scripts/reembed_trades.py --user-id USER --calendar-id CALENDAR \\
        --database-url "postgresql://..."

    # Inspect stored content only, write the verification report
    python scripts/reembed_trades.py --user-id USER --calendar-id CALENDAR \\
        --inspect --report-output verification_report.md
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

from app.config import get_config
from database_orm.connection import init_connection, close_connection
from database_orm.repository import TradeRepository
from embeddings import EmbeddingService
from migration import (
    MigrationError,
    MigrationState,
    MigrationVerifier,
    ProgressLog,
    TradeEmbeddingMigration,
)
from retrieval.embedding_store import TradeEmbeddingStore
from retrieval.vector_search import VectorSearchService

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    config = get_config()
    migration_config = config.get_migration_config()

    parser = argparse.ArgumentParser(
        description="Regenerate trade embeddings for a calendar"
    )
    parser.add_argument("--user-id", required=True, help="Owner of the calendar")
    parser.add_argument("--calendar-id", required=True, help="Calendar to re-embed")
    parser.add_argument(
        "--database-url",
        help="Database URL (uses env/Parameter Store if not provided)"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=migration_config["batch_size"],
        help=f"Trades embedded concurrently per batch (default: {migration_config['batch_size']})"
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=migration_config["batch_delay"],
        help=f"Seconds between batches (default: {migration_config['batch_delay']})"
    )
    parser.add_argument(
        "--skip-verification",
        action="store_true",
        help="Do not run the verification queries after migrating"
    )
    parser.add_argument(
        "--inspect",
        action="store_true",
        help="Only sample stored content and probe the query embedding"
    )
    parser.add_argument(
        "--report-output",
        type=Path,
        help="Write the verification report (markdown) to this file"
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    """Run the migration; returns the process exit code."""
    search_config = get_config().get_vector_search_config()

    init_connection(database_url=args.database_url)
    embedding_service = EmbeddingService(model=search_config["embedding_model"])
    store = TradeEmbeddingStore(
        similarity_threshold=search_config["similarity_threshold"],
        max_results=search_config["max_results"]
    )
    verifier = MigrationVerifier(VectorSearchService(embedding_service, store), store)

    try:
        if args.inspect:
            await verifier.inspect_store(args.user_id, args.calendar_id)
            report = await verifier.test_migration(args.user_id, args.calendar_id)
            if args.report_output:
                args.report_output.write_text(report.generate_markdown())
                logger.info(f"Report written to {args.report_output}")
            return 0

        migration = TradeEmbeddingMigration(
            TradeRepository(),
            embedding_service,
            store,
            verifier=None if args.skip_verification else verifier,
            batch_size=args.batch_size,
            batch_delay=args.delay,
            progress=ProgressLog()
        )

        try:
            stats = await migration.run(args.user_id, args.calendar_id)
        except MigrationError as e:
            logger.error(f"Migration aborted: {e}")
            return 1

        print()
        print("=" * 70)
        print(f"Migration {migration.state.value}")
        print("=" * 70)
        print(f"Total trades: {stats.total}")
        print(f"Processed: {stats.processed}")
        print(f"Succeeded: {stats.success}")
        print(f"Errors: {stats.error}")

        if migration.verification is not None:
            print(f"Verification: {migration.verification}")
            if args.report_output:
                args.report_output.write_text(migration.verification.generate_markdown())
                logger.info(f"Report written to {args.report_output}")

        if migration.state != MigrationState.COMPLETED or stats.error > 0:
            return 1
        return 0

    finally:
        await embedding_service.close()
        close_connection()


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
