"""Analysis units and the dependency graph between them.

Each Task owns a future that settles when the task reaches a terminal
state. Dependents wait on ``join`` over the specific tasks they need
instead of indexing into a list of pending results.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from booklens.models.documents import Chapter, Paragraph, UnitKind
from booklens.models.schemas import PipelineError


class TaskState(str, Enum):
    """Lifecycle of a task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"  # never started (dependency failed, cancelled)

    @property
    def terminal(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.FAILED, TaskState.SKIPPED)


@dataclass(eq=False)
class Task:
    """A schedulable unit of analysis.

    Attributes:
        unit_id: Unique id within a run ("c3.p7", "c3", "c2-c3")
        kind: Unit kind
        chapter_index: Chapter the unit belongs to (first chapter for pairs)
        sub_index: Paragraph index, or the second chapter for pairs
        depends_on: Ids of tasks that must complete first
        payload: Input for the unit (paragraph, chapter)
    """

    unit_id: str
    kind: UnitKind
    chapter_index: int
    sub_index: int | None = None
    depends_on: frozenset[str] = field(default_factory=frozenset)
    payload: Any = None

    state: TaskState = TaskState.PENDING
    result: Any = None
    error: PipelineError | None = None
    from_cache: bool = False
    started_at: float | None = None
    finished_at: float | None = None
    skip_reason: str | None = None
    _done: asyncio.Future | None = field(default=None, repr=False)

    @classmethod
    def for_paragraph(cls, chapter_index: int, paragraph: Paragraph) -> "Task":
        return cls(
            unit_id=f"c{chapter_index}.p{paragraph.index}",
            kind=UnitKind.PARAGRAPH,
            chapter_index=chapter_index,
            sub_index=paragraph.index,
            payload=paragraph,
        )

    @classmethod
    def for_chapter(cls, chapter: Chapter) -> "Task":
        return cls(
            unit_id=f"c{chapter.index}",
            kind=UnitKind.CHAPTER,
            chapter_index=chapter.index,
            payload=chapter,
        )

    @classmethod
    def for_chapter_pair(cls, previous: "Task", current: "Task") -> "Task":
        return cls(
            unit_id=f"c{previous.chapter_index}-c{current.chapter_index}",
            kind=UnitKind.INTER_CHAPTER,
            chapter_index=previous.chapter_index,
            sub_index=current.chapter_index,
            depends_on=frozenset({previous.unit_id, current.unit_id}),
        )

    def _future(self) -> asyncio.Future:
        if self._done is None:
            self._done = asyncio.get_running_loop().create_future()
        return self._done

    @property
    def done(self) -> bool:
        return self.state.terminal

    def mark_running(self) -> None:
        if self.state is not TaskState.PENDING:
            raise RuntimeError(f"Task {self.unit_id} cannot start from {self.state.value}")
        self.state = TaskState.RUNNING
        self.started_at = time.monotonic()

    def complete(self, result: Any, from_cache: bool = False) -> None:
        self.result = result
        self.from_cache = from_cache
        self._settle(TaskState.COMPLETED)

    def fail(self, error: PipelineError) -> None:
        self.error = error
        self._settle(TaskState.FAILED)

    def skip(self, reason: str, error: PipelineError | None = None) -> None:
        self.skip_reason = reason
        self.error = error
        self._settle(TaskState.SKIPPED)

    def _settle(self, state: TaskState) -> None:
        if self.state.terminal:
            raise RuntimeError(f"Task {self.unit_id} already {self.state.value}")
        self.state = state
        self.finished_at = time.monotonic()
        # Waiters create the future; nobody waiting means nothing to resolve
        if self._done is not None and not self._done.done():
            self._done.set_result(self)

    async def wait(self) -> "Task":
        """Wait until the task settles. Never raises for a failed task."""
        if self.state.terminal:
            return self
        return await asyncio.shield(self._future())


async def join(*tasks: Task) -> bool:
    """Wait for all tasks to settle.

    Returns:
        True if every task completed successfully
    """
    settled = await asyncio.gather(*(t.wait() for t in tasks))
    return all(t.state is TaskState.COMPLETED for t in settled)


class TaskGraph:
    """Registry of a run's tasks and their dependencies."""

    def __init__(self):
        self._tasks: dict[str, Task] = {}

    def add(self, task: Task) -> Task:
        if task.unit_id in self._tasks:
            raise ValueError(f"Duplicate task id: {task.unit_id}")
        missing = [dep for dep in task.depends_on if dep not in self._tasks]
        if missing:
            raise ValueError(
                f"Task {task.unit_id} depends on unknown task(s): {', '.join(sorted(missing))}"
            )
        self._tasks[task.unit_id] = task
        return task

    def __getitem__(self, unit_id: str) -> Task:
        return self._tasks[unit_id]

    def __contains__(self, unit_id: str) -> bool:
        return unit_id in self._tasks

    def __iter__(self):
        return iter(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    def dependencies(self, task: Task) -> list[Task]:
        return [self._tasks[dep] for dep in sorted(task.depends_on)]

    async def wait_for_dependencies(self, task: Task) -> bool:
        """Join on the task's dependencies; True when all completed."""
        deps = self.dependencies(task)
        if not deps:
            return True
        return await join(*deps)

    def of_kind(self, kind: UnitKind) -> list[Task]:
        return [t for t in self._tasks.values() if t.kind is kind]

    def in_state(self, state: TaskState, kind: UnitKind | None = None) -> list[Task]:
        return [
            t
            for t in self._tasks.values()
            if t.state is state and (kind is None or t.kind is kind)
        ]

    def failures(self) -> list[PipelineError]:
        return [t.error for t in self._tasks.values() if t.error is not None]
