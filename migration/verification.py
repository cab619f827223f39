"""
Post-migration verification for trade embeddings.

Runs canned natural-language queries with a low threshold and a high result
cap, so recall problems show up, and cross-checks the hits against a ground
truth count taken straight from the stored embedded content. Read-only.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from migration.errors import VerificationError
from migration.progress import ProgressLog
from models import SearchOptions, StoredEmbedding, TradeSearchResult
from retrieval.embedding_store import TradeEmbeddingStore
from retrieval.vector_search import VectorSearchService

logger = logging.getLogger(__name__)

TEST_QUERIES = [
    ("how many monday trades do i have?", "Monday"),
    ("monday trades", "Monday"),
    ("tuesday trades", "Tuesday"),
    ("weekday trades", None),
    ("weekend trades", None),
]

VERIFICATION_MAX_RESULTS = 100
VERIFICATION_SIMILARITY_THRESHOLD = 0.1
TOP_RESULTS_SHOWN = 5


class QueryResult(BaseModel):
    """Outcome of one verification query."""
    query: str
    expected_day: Optional[str] = None
    result_count: int = 0
    day_matches: Optional[int] = None
    ground_truth: Optional[int] = None
    top_results: List[TradeSearchResult] = []
    error: Optional[str] = None


class VerificationReport:
    """Track verification results."""

    def __init__(self):
        self.checks = []
        self.query_results: List[QueryResult] = []
        self.day_counts: Dict[str, int] = {}
        self.start_time = datetime.now()
        self.end_time = None

    def add_check(self, name: str, passed: bool, details: str = ""):
        """Add a verification check result."""
        self.checks.append({
            'name': name,
            'passed': passed,
            'details': details
        })

    def passed_count(self) -> int:
        return sum(1 for c in self.checks if c['passed'])

    def failed_count(self) -> int:
        return sum(1 for c in self.checks if not c['passed'])

    def generate_markdown(self) -> str:
        """Generate markdown report."""
        self.end_time = self.end_time or datetime.now()
        duration = (self.end_time - self.start_time).total_seconds()

        md = f"""# Embedding Verification Report

**Generated**: {self.start_time.strftime('%Y-%m-%d %H:%M:%S')}
**Duration**: {duration:.2f} seconds
**Total Checks**: {len(self.checks)}
**Passed**: {self.passed_count()}
**Failed**: {self.failed_count()}

## Queries

| Query | Results | Day matches | Stored with day |
|-------|---------|-------------|-----------------|
"""
        for result in self.query_results:
            if result.error:
                md += f"| {result.query} | error: {result.error} | - | - |\n"
                continue
            day_matches = "-" if result.day_matches is None else result.day_matches
            ground_truth = "-" if result.ground_truth is None else result.ground_truth
            md += f"| {result.query} | {result.result_count} | {day_matches} | {ground_truth} |\n"

        if self.day_counts:
            md += "\n## Stored Trades by Day of Week\n\n"
            for day, count in sorted(self.day_counts.items()):
                md += f"- {day}: {count}\n"

        md += "\n## Detailed Results\n\n"
        for i, check in enumerate(self.checks, 1):
            status = "PASS" if check['passed'] else "FAIL"
            md += f"### {i}. {check['name']}\n\n"
            md += f"**Status**: {status}\n\n"
            if check['details']:
                md += f"{check['details']}\n\n"

        return md

    def __str__(self):
        return f"VerificationReport: {self.passed_count()}/{len(self.checks)} passed"


class MigrationVerifier:
    """Runs diagnostic searches against freshly migrated embeddings."""

    def __init__(self, search_service: VectorSearchService, store: TradeEmbeddingStore):
        self.search_service = search_service
        self.store = store

    async def test_migration(
        self,
        user_id: str,
        calendar_id: str,
        progress: Optional[ProgressLog] = None
    ) -> VerificationReport:
        """
        Run the canned queries and cross-check their recall.

        Query failures are recorded in the report as VerificationError
        details; this method does not raise for them.

        Args:
            user_id: Owner
            calendar_id: Calendar
            progress: Optional log to narrate into

        Returns:
            VerificationReport
        """
        progress = progress or ProgressLog()
        report = VerificationReport()
        progress.log("Testing migration with sample queries...")

        stored = await self._load_ground_truth(user_id, calendar_id, report, progress)

        options = SearchOptions(
            max_results=VERIFICATION_MAX_RESULTS,
            similarity_threshold=VERIFICATION_SIMILARITY_THRESHOLD
        )

        for query, expected_day in TEST_QUERIES:
            progress.log(f"Testing: \"{query}\"")
            try:
                results = await self.search_service.search_similar_trades(
                    query, user_id, calendar_id, options
                )
            except Exception as e:
                error = VerificationError(query, e)
                progress.log(f"  Test failed: {error}", level=logging.ERROR)
                report.query_results.append(QueryResult(
                    query=query, expected_day=expected_day, error=str(e)
                ))
                report.add_check(f"Query '{query}'", False, str(error))
                continue

            result = QueryResult(
                query=query,
                expected_day=expected_day,
                result_count=len(results),
                top_results=results[:TOP_RESULTS_SHOWN],
            )
            progress.log(f"  Found {len(results)} total results")

            if expected_day:
                needle = f"day {expected_day.lower()}"
                result.day_matches = sum(
                    1 for r in results if needle in r.embedded_content.lower()
                )
                if stored is not None:
                    result.ground_truth = sum(
                        1 for row in stored if needle in row.embedded_content.lower()
                    )
                    report.add_check(
                        f"Recall for '{query}'",
                        result.day_matches == result.ground_truth,
                        f"{result.day_matches} of {result.ground_truth} stored "
                        f"{expected_day} trades returned ({len(results)} results total)"
                    )
                progress.log(f"  {result.day_matches} results contain \"{needle}\"")
            else:
                report.add_check(f"Query '{query}'", True, f"{len(results)} results")

            for index, hit in enumerate(result.top_results, 1):
                progress.log(
                    f"    {index}. Similarity: {hit.similarity:.3f} - {hit.embedded_content[:50]}..."
                )
            if len(results) > TOP_RESULTS_SHOWN:
                progress.log(f"    ... and {len(results) - TOP_RESULTS_SHOWN} more results")

            report.query_results.append(result)

        if stored is not None:
            report.day_counts = dict(Counter(
                row.trade_date.strftime("%A") for row in stored if row.trade_date
            ))
            progress.log(f"Total trades in store: {len(stored)}")
            for day, count in sorted(report.day_counts.items()):
                progress.log(f"   {day}: {count} trades")

        report.end_time = datetime.now()
        progress.log(f"Testing completed: {report}")
        return report

    async def _load_ground_truth(
        self,
        user_id: str,
        calendar_id: str,
        report: VerificationReport,
        progress: ProgressLog
    ) -> Optional[List[StoredEmbedding]]:
        try:
            return await self.store.query(user_id, calendar_id)
        except Exception as e:
            error = VerificationError("stored embeddings", e)
            progress.log(f"Ground truth query failed: {error}", level=logging.ERROR)
            report.add_check("Load stored embeddings", False, str(error))
            return None

    async def inspect_store(
        self,
        user_id: str,
        calendar_id: str,
        limit: int = 5,
        progress: Optional[ProgressLog] = None
    ) -> dict:
        """
        Sample stored content and probe the query embedding path.

        Returns:
            Dict with samples (trade_id, day, content preview) and the
            probe query's embedding dimension (None if the probe failed)
        """
        progress = progress or ProgressLog()
        progress.log("Checking database content...")

        rows = await self.store.query(user_id, calendar_id, limit=limit)
        progress.log(f"Found {len(rows)} sample embeddings in database")

        samples = []
        for index, row in enumerate(rows, 1):
            day = row.trade_date.strftime("%A") if row.trade_date else "unknown"
            preview = row.embedded_content[:100]
            samples.append({"trade_id": row.trade_id, "day": day, "content": preview})
            progress.log(f"  {index}. Trade {row.trade_id} ({day}): {preview}...")

        dimension = None
        probe_query = "monday trades"
        try:
            vector = await self.search_service.embedding_service.generate_query_embedding(probe_query)
            dimension = len(vector)
            progress.log(f"Generated embedding for \"{probe_query}\" (dimension: {dimension})")
        except Exception as e:
            error = VerificationError(probe_query, e)
            progress.log(f"Query embedding probe failed: {error}", level=logging.ERROR)

        return {"samples": samples, "query_dimension": dimension}
