"""
Tests for the re-embedding command line entry point.
"""

from datetime import datetime
from unittest.mock import patch

import pytest

from database_orm.repository import TradeRepository
from scripts.reembed_trades import parse_args, run


class TestParseArgs:

    def test_defaults_from_config(self):
        args = parse_args(["--user-id", "user-1", "--calendar-id", "cal-1"])

        assert args.batch_size >= 1
        assert args.delay >= 0
        assert not args.skip_verification
        assert not args.inspect
        assert args.report_output is None

    def test_ids_required(self):
        with pytest.raises(SystemExit):
            parse_args(["--user-id", "user-1"])


class TestRun:

    @pytest.mark.asyncio
    async def test_full_run_writes_report(self, database, fake_embeddings, make_trade, tmp_path):
        await TradeRepository().add_trades(
            [make_trade(f"t{i}", datetime(2024, 1, i + 1)) for i in range(7)],
            user_id="user-1"
        )
        report_path = tmp_path / "report.md"
        args = parse_args([
            "--user-id", "user-1",
            "--calendar-id", "cal-1",
            "--delay", "0",
            "--report-output", str(report_path),
        ])

        with patch("scripts.reembed_trades.EmbeddingService", return_value=fake_embeddings):
            exit_code = await run(args)

        assert exit_code == 0
        assert len(fake_embeddings.embedded) == 7
        assert "# Embedding Verification Report" in report_path.read_text()

    @pytest.mark.asyncio
    async def test_errors_give_nonzero_exit(self, database, fake_embeddings, make_trade):
        await TradeRepository().add_trades(
            [make_trade("ok"), make_trade("bad", name="poison")], user_id="user-1"
        )
        fake_embeddings.fail_on = {"poison"}
        args = parse_args([
            "--user-id", "user-1", "--calendar-id", "cal-1", "--delay", "0", "--skip-verification",
        ])

        with patch("scripts.reembed_trades.EmbeddingService", return_value=fake_embeddings):
            assert await run(args) == 1

    @pytest.mark.asyncio
    async def test_abort_gives_nonzero_exit(self, database, fake_embeddings):
        fake_embeddings.init_error = RuntimeError("no key")
        args = parse_args(["--user-id", "user-1", "--calendar-id", "cal-1"])

        with patch("scripts.reembed_trades.EmbeddingService", return_value=fake_embeddings):
            assert await run(args) == 1
