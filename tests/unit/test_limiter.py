"""Tests for the concurrency limiter."""

import asyncio
import random

import pytest

from booklens.concurrency.limiter import ConcurrencyLimiter


class Probe:
    """Records how many probed operations overlap."""

    def __init__(self):
        self.active = 0
        self.peak = 0
        self.started: list[int] = []

    def operation(self, ident: int, delay: float = 0.01, fail: bool = False):
        async def run():
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.started.append(ident)
            try:
                await asyncio.sleep(delay)
                if fail:
                    raise RuntimeError(f"operation {ident} failed")
                return ident
            finally:
                self.active -= 1

        return run


class TestConcurrencyLimiter:
    """Tests for ConcurrencyLimiter."""

    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError, match="must be positive"):
            ConcurrencyLimiter(0)

    @pytest.mark.asyncio
    async def test_never_exceeds_limit(self):
        """Random arrival pattern and durations stay under the cap."""
        limiter = ConcurrencyLimiter(3)
        probe = Probe()
        rng = random.Random(7)
        futures = []
        for i in range(30):
            futures.append(limiter.submit(probe.operation(i, rng.uniform(0, 0.02))))
            if rng.random() < 0.3:
                await asyncio.sleep(rng.uniform(0, 0.01))

        results = await asyncio.gather(*futures)

        assert results == list(range(30))
        assert probe.peak <= 3
        assert limiter.peak_active <= 3
        assert limiter.active == 0
        assert limiter.admitted_total == 30

    @pytest.mark.asyncio
    async def test_admits_in_submission_order(self):
        limiter = ConcurrencyLimiter(2)
        probe = Probe()

        futures = [limiter.submit(probe.operation(i)) for i in range(8)]
        await asyncio.gather(*futures)

        assert probe.started == list(range(8))

    @pytest.mark.asyncio
    async def test_immediate_admission_below_limit(self):
        limiter = ConcurrencyLimiter(2)
        gate = asyncio.Event()

        async def blocked():
            await gate.wait()

        first = limiter.submit(blocked)
        second = limiter.submit(blocked)
        third = limiter.submit(blocked)

        assert limiter.active == 2
        assert limiter.pending == 1

        gate.set()
        await asyncio.gather(first, second, third)
        assert limiter.active == 0
        assert limiter.pending == 0

    @pytest.mark.asyncio
    async def test_failure_releases_slot(self):
        """A failing operation frees its slot; queued ones still run."""
        limiter = ConcurrencyLimiter(1)
        probe = Probe()

        failing = limiter.submit(probe.operation(0, fail=True))
        following = limiter.submit(probe.operation(1))

        with pytest.raises(RuntimeError, match="operation 0 failed"):
            await failing
        assert await following == 1
        assert limiter.active == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_leak_slot(self):
        limiter = ConcurrencyLimiter(1)
        gate = asyncio.Event()

        async def blocked():
            await gate.wait()
            return "first"

        first = limiter.submit(blocked)
        queued = limiter.submit(blocked)
        last = limiter.submit(lambda: asyncio.sleep(0, result="last"))
        await asyncio.sleep(0)

        queued.cancel()
        gate.set()

        assert await first == "first"
        assert await last == "last"
        with pytest.raises(asyncio.CancelledError):
            await queued
        assert limiter.active == 0
        assert limiter.pending == 0

    @pytest.mark.asyncio
    async def test_slot_context_manager(self):
        limiter = ConcurrencyLimiter(1)
        order = []

        async def worker(name):
            async with limiter.slot():
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert limiter.peak_active == 1

    @pytest.mark.asyncio
    async def test_concurrent_submitters(self):
        """Many coroutines submitting at once share one bound."""
        limiter = ConcurrencyLimiter(4)
        probe = Probe()

        async def submitter(base):
            futures = [limiter.submit(probe.operation(base + i, 0.005)) for i in range(5)]
            return await asyncio.gather(*futures)

        results = await asyncio.gather(*(submitter(n * 10) for n in range(6)))

        assert sum(len(r) for r in results) == 30
        assert probe.peak <= 4
