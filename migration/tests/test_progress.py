"""
Unit tests for MigrationStats and ProgressLog.
"""

import re

import pytest

from migration.progress import MigrationStats, ProgressLog


class TestMigrationStats:

    def test_record_batch(self):
        stats = MigrationStats(total=12)

        stats.record_batch(5, 5, 0)
        stats.record_batch(5, 4, 1)

        assert (stats.processed, stats.success, stats.error) == (10, 9, 1)
        assert stats.processed == stats.success + stats.error
        assert not stats.is_complete

        stats.record_batch(2, 2, 0)
        assert stats.is_complete
        assert stats.progress_percent == pytest.approx(100.0)

    def test_inconsistent_batch_rejected(self):
        stats = MigrationStats(total=10)

        with pytest.raises(ValueError):
            stats.record_batch(5, 3, 1)

        assert stats.processed == 0

    def test_overrun_rejected(self):
        stats = MigrationStats(total=3)

        with pytest.raises(ValueError, match="exceed total"):
            stats.record_batch(5, 5, 0)

    def test_empty_run_progress(self):
        stats = MigrationStats()
        assert stats.is_complete
        assert stats.progress_percent == 0.0


class TestProgressLog:

    def test_messages_are_timestamped(self):
        progress = ProgressLog()

        progress.log("Fetching trades")

        assert len(progress.messages) == 1
        assert re.match(r"^\d{2}:\d{2}:\d{2}: Fetching trades$", progress.messages[0])

    def test_update_stats_snapshots(self):
        progress = ProgressLog()
        stats = MigrationStats(total=5)

        progress.update_stats(stats)
        stats.record_batch(5, 5, 0)

        assert progress.stats.processed == 0

    def test_listeners(self):
        progress = ProgressLog()
        messages, snapshots = [], []
        progress.add_listener(on_message=messages.append, on_stats=snapshots.append)

        progress.log("hello")
        progress.update_stats(MigrationStats(total=3))

        assert messages[0].endswith("hello")
        assert snapshots[0].total == 3

    def test_failing_listener_is_contained(self):
        progress = ProgressLog()

        def broken(_):
            raise RuntimeError("ui gone")

        progress.add_listener(on_message=broken)
        progress.log("still recorded")

        assert progress.messages[-1].endswith("still recorded")

    def test_clear(self):
        progress = ProgressLog()
        progress.log("x")
        progress.update_stats(MigrationStats(total=4))

        progress.clear()

        assert progress.messages == []
        assert progress.stats.total == 0
