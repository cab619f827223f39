#!/usr/bin/env python3
"""
Database migration script to create the trades and trade_embeddings tables.

Usage:
    python scripts/setup_embedding_tables.py [--database-url URL]
"""

import argparse
import logging
import os
import sys

# Add parent directory to path to import project modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

from database_orm.connection import init_connection, close_connection
from retrieval.embedding_store import TradeEmbeddingStore

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def migrate(database_url: str = None):
    """Create the trade and embedding tables if they don't exist."""
    engine = init_connection(database_url=database_url)
    try:
        print("Creating trades and trade_embeddings tables...")
        TradeEmbeddingStore.create_tables(engine)
        print("Migration completed successfully")
    finally:
        close_connection()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create trade embedding tables")
    parser.add_argument("--database-url", help="Database URL (uses env/Parameter Store if not provided)")
    args = parser.parse_args()
    migrate(args.database_url)
