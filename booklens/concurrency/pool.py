"""Bounded Worker Pool - drain a queue of same-kind tasks.

``min(concurrency, len(tasks))`` workers pull from one shared queue until
it is empty. Each task is looked up in the artifact store first; only
missing results are computed, then written back before the worker moves
on. A failing task is logged and recorded on the task itself; it never
stops its worker or the others.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from booklens.concurrency.limiter import ConcurrencyLimiter
from booklens.errors import UnitCancelledError
from booklens.models.schemas import PipelineError
from booklens.models.tasks import Task, TaskState
from booklens.storage.artifacts import ArtifactRepository

logger = logging.getLogger(__name__)

Processor = Callable[[Task], Awaitable[Any]]


def cancelled_error(task: Task, reason: str = "run cancelled before the unit started") -> PipelineError:
    return PipelineError.from_exception(UnitCancelledError(reason), task.unit_id, task.kind.value)


async def run_unit(
    task: Task,
    process: Processor,
    repository: ArtifactRepository | None = None,
) -> bool:
    """Run one task: cache lookup, compute, persist.

    Settles the task (completed or failed) and never raises for a unit
    failure.

    Returns:
        True if the result was computed (not loaded from the store)
    """
    task.mark_running()
    try:
        if repository is not None:
            cached = await repository.load(task)
            if cached is not None:
                logger.debug(f"Skipping {task.unit_id} (already exists)")
                task.complete(cached, from_cache=True)
                return False

        logger.info(f"Analyzing {task.kind.value} {task.unit_id}...")
        result = await process(task)

        if repository is not None:
            await repository.save(task, result)
    except asyncio.CancelledError:
        task.fail(cancelled_error(task, "interrupted"))
        raise
    except Exception as e:
        logger.error(f"Error in {task.unit_id}: {e}")
        task.fail(PipelineError.from_exception(e, task.unit_id, task.kind.value))
        return False

    task.complete(result)
    return True


class BoundedWorkerPool:
    """Processes tasks with at most ``concurrency`` in flight.

    Args:
        concurrency: Worker count (and cap on simultaneous processing)
        repository: Artifact repository for cache lookups and writes
        pause_seconds: Delay after each computed (non-cached) result
        should_stop: Checked before each pull; True stops scheduling
        name: Label for the internal limiter and logs
    """

    def __init__(
        self,
        concurrency: int,
        repository: ArtifactRepository | None = None,
        pause_seconds: float = 0.0,
        should_stop: Callable[[], bool] | None = None,
        name: str = "pool",
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self.concurrency = concurrency
        self.repository = repository
        self.pause_seconds = pause_seconds
        self.should_stop = should_stop or (lambda: False)
        self.limiter = ConcurrencyLimiter(concurrency, name=name)

    async def _worker(self, queue: asyncio.Queue, process: Processor) -> None:
        while not self.should_stop():
            try:
                task = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            async with self.limiter.slot():
                computed = await run_unit(task, process, self.repository)
            if computed and self.pause_seconds:
                await asyncio.sleep(self.pause_seconds)

    async def run_all(self, tasks: Iterable[Task], process: Processor) -> list[Any]:
        """Process every task.

        Args:
            tasks: Tasks to run (all PENDING)
            process: Computes a task's result

        Returns:
            Results of completed tasks in input order; failed tasks are
            omitted (the task records why)
        """
        tasks = list(tasks)
        queue: asyncio.Queue[Task] = asyncio.Queue()
        for task in tasks:
            queue.put_nowait(task)

        workers = [
            asyncio.create_task(self._worker(queue, process))
            for _ in range(min(self.concurrency, len(tasks)))
        ]
        try:
            await asyncio.gather(*workers)
        except asyncio.CancelledError:
            for worker in workers:
                worker.cancel()
            raise

        # Anything left was never pulled because the run was stopped
        for task in tasks:
            if task.state is TaskState.PENDING:
                task.skip("cancelled", cancelled_error(task))

        return [t.result for t in tasks if t.state is TaskState.COMPLETED]


__all__ = ["BoundedWorkerPool", "cancelled_error", "run_unit"]
