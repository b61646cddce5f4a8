"""Tests for the bounded worker pool."""

import asyncio

import orjson
import pytest

from booklens.concurrency.pool import BoundedWorkerPool, run_unit
from booklens.errors import UnitExecutionError
from booklens.models import ErrorType, Paragraph, TaskState
from booklens.models.tasks import Task
from booklens.storage import ArtifactRepository, InMemoryArtifactStore


def paragraph_tasks(count: int, chapter_index: int = 1) -> list[Task]:
    return [
        Task.for_paragraph(chapter_index, Paragraph(index=i, text=f"paragraph {i}"))
        for i in range(1, count + 1)
    ]


class Processor:
    """Records calls and overlap; fails for chosen paragraph indices."""

    def __init__(self, fail_on=(), delay: float = 0.005):
        self.fail_on = set(fail_on)
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.peak = 0

    async def __call__(self, task: Task):
        self.calls.append(task.unit_id)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            if task.sub_index in self.fail_on:
                raise UnitExecutionError(ErrorType.PARSE_ERROR, "bad output", attempts=1)
            return {"id": task.sub_index}
        finally:
            self.active -= 1


@pytest.fixture
def repository(memory_store) -> ArtifactRepository:
    return ArtifactRepository(memory_store, "book")


class TestRunUnit:
    """Tests for run_unit."""

    @pytest.mark.asyncio
    async def test_computes_and_saves(self, repository, memory_store):
        task = paragraph_tasks(1)[0]

        computed = await run_unit(task, Processor(), repository)

        assert computed is True
        assert task.state is TaskState.COMPLETED
        assert orjson.loads(memory_store.data["book/chapter_1/p_1.json"]) == {"id": 1}

    @pytest.mark.asyncio
    async def test_loads_cached_result(self, repository, memory_store):
        memory_store.data["book/chapter_1/p_1.json"] = b'{"id": 1, "cached": true}'
        task = paragraph_tasks(1)[0]
        processor = Processor()

        computed = await run_unit(task, processor, repository)

        assert computed is False
        assert task.from_cache is True
        assert task.result == {"id": 1, "cached": True}
        assert processor.calls == []

    @pytest.mark.asyncio
    async def test_failure_recorded_on_task(self, repository, memory_store):
        task = paragraph_tasks(1)[0]

        computed = await run_unit(task, Processor(fail_on={1}), repository)

        assert computed is False
        assert task.state is TaskState.FAILED
        assert task.error.type is ErrorType.PARSE_ERROR
        assert task.error.unit == "c1.p1"
        assert task.error.attempts == 1
        assert memory_store.writes == []

    @pytest.mark.asyncio
    async def test_storage_failure_is_a_unit_failure(self):
        class BrokenStore(InMemoryArtifactStore):
            async def write(self, key, data):
                raise PermissionError(f"read-only: {key}")

        task = paragraph_tasks(1)[0]

        await run_unit(task, Processor(), ArtifactRepository(BrokenStore(), "book"))

        assert task.state is TaskState.FAILED
        assert task.error.type is ErrorType.STORAGE_ERROR


class TestBoundedWorkerPool:
    """Tests for BoundedWorkerPool.run_all."""

    def test_rejects_non_positive_concurrency(self):
        with pytest.raises(ValueError):
            BoundedWorkerPool(0)

    @pytest.mark.asyncio
    async def test_processes_all_with_bounded_concurrency(self, repository):
        tasks = paragraph_tasks(10)
        processor = Processor()
        pool = BoundedWorkerPool(3, repository)

        results = await pool.run_all(tasks, processor)

        assert results == [{"id": i} for i in range(1, 11)]
        assert processor.peak <= 3
        assert pool.limiter.peak_active <= 3
        assert sorted(processor.calls) == sorted(t.unit_id for t in tasks)

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_siblings(self, repository):
        tasks = paragraph_tasks(6)
        pool = BoundedWorkerPool(2, repository)

        results = await pool.run_all(tasks, Processor(fail_on={3}))

        assert [r["id"] for r in results] == [1, 2, 4, 5, 6]
        assert tasks[2].state is TaskState.FAILED
        assert all(t.state is TaskState.COMPLETED for t in tasks if t.sub_index != 3)

    @pytest.mark.asyncio
    async def test_cached_tasks_skip_processing(self, repository, memory_store):
        memory_store.data["book/chapter_1/p_2.json"] = b'{"id": 2}'
        tasks = paragraph_tasks(3)
        processor = Processor()

        results = await BoundedWorkerPool(2, repository).run_all(tasks, processor)

        assert len(results) == 3
        assert "c1.p2" not in processor.calls
        assert tasks[1].from_cache

    @pytest.mark.asyncio
    async def test_pauses_only_after_computed_results(self, repository, memory_store):
        for i in range(1, 4):
            memory_store.data[f"book/chapter_1/p_{i}.json"] = orjson.dumps({"id": i})
        pool = BoundedWorkerPool(1, repository, pause_seconds=10.0)

        # Would take 30s if cached results paused
        results = await asyncio.wait_for(pool.run_all(paragraph_tasks(3), Processor()), 1.0)

        assert len(results) == 3

    @pytest.mark.asyncio
    async def test_fewer_tasks_than_workers(self, repository):
        results = await BoundedWorkerPool(8, repository).run_all(paragraph_tasks(2), Processor())

        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_empty_task_list(self, repository):
        assert await BoundedWorkerPool(3, repository).run_all([], Processor()) == []

    @pytest.mark.asyncio
    async def test_stop_skips_unpulled_tasks(self, repository):
        stop = False
        processor = Processor()

        async def process(task):
            nonlocal stop
            result = await processor(task)
            stop = True
            return result

        tasks = paragraph_tasks(5)
        pool = BoundedWorkerPool(1, repository, should_stop=lambda: stop)

        results = await pool.run_all(tasks, process)

        assert len(results) == 1
        skipped = [t for t in tasks if t.state is TaskState.SKIPPED]
        assert len(skipped) == 4
        assert all(t.error.type is ErrorType.CANCELLED for t in skipped)
