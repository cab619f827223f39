"""
Unit tests for settle_all and batched.
"""

import asyncio
import math

import pytest

from migration.concurrency import Settled, batched, settle_all


class TestSettleAll:

    @pytest.mark.asyncio
    async def test_mixed_outcomes_in_input_order(self):
        async def ok(value):
            await asyncio.sleep(0)
            return value

        async def fail():
            raise RuntimeError("boom")

        outcomes = await settle_all([ok(1), fail(), ok(3)])

        assert [o.ok for o in outcomes] == [True, False, True]
        assert outcomes[0].value == 1
        assert outcomes[2].value == 3
        assert isinstance(outcomes[1].error, RuntimeError)

    @pytest.mark.asyncio
    async def test_failure_does_not_cancel_siblings(self):
        finished = []

        async def slow(name):
            await asyncio.sleep(0.01)
            finished.append(name)
            return name

        async def fail_fast():
            raise ValueError("early")

        outcomes = await settle_all([slow("a"), fail_fast(), slow("b")])

        assert sorted(finished) == ["a", "b"]
        assert sum(1 for o in outcomes if o.ok) == 2

    @pytest.mark.asyncio
    async def test_empty(self):
        assert await settle_all([]) == []

    @pytest.mark.asyncio
    async def test_runs_concurrently(self):
        running = 0
        peak = 0

        async def task():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await settle_all(task() for _ in range(5))

        assert peak == 5

    def test_settled_defaults(self):
        assert Settled(value=False).ok
        assert not Settled(error=RuntimeError()).ok


class TestBatched:

    @pytest.mark.parametrize("count,size", [(12, 5), (10, 5), (1, 5), (0, 5), (7, 1)])
    def test_batch_count_and_bounds(self, count, size):
        items = list(range(count))

        batches = list(batched(items, size))

        assert len(batches) == math.ceil(count / size)
        for i, batch in enumerate(batches):
            assert batch == items[i * size:min((i + 1) * size, count)]

    def test_twelve_by_five(self):
        assert [len(b) for b in batched(list(range(12)), 5)] == [5, 5, 2]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            list(batched([1, 2], 0))
