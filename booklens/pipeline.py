"""Pipeline Orchestrator - dependency-aware scheduling of a whole document.

Per chapter: paragraph units through a bounded worker pool, then one
chapter unit. Chapter jobs are admitted through a chapter-level limiter.
Each adjacent pair of chapters gets an inter-chapter unit that joins on
exactly those two chapter tasks. Unit failures are recorded on their
tasks and gathered into the run summary; only a FatalRunError escapes.

Example:
    >>> summary = await run_pipeline("dracula.txt", "output/", {"chapter_limit": 3})
    >>> summary.chapters_processed
    3
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from booklens.analysis import AnalysisService
from booklens.concurrency.limiter import ConcurrencyLimiter
from booklens.concurrency.pool import BoundedWorkerPool, cancelled_error, run_unit
from booklens.config import PipelineConfig
from booklens.errors import FatalRunError
from booklens.executor import RetryingExecutor
from booklens.inference import InferenceClient, LangChainInferenceClient
from booklens.models.documents import Document, UnitKind
from booklens.models.schemas import RunSummary
from booklens.models.tasks import Task, TaskGraph, TaskState
from booklens.segmenter import load_document
from booklens.storage.artifacts import ArtifactRepository, ArtifactStore, LocalArtifactStore
from booklens.utils.prompts import PromptProvider

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Schedules every analysis unit of a document.

    Args:
        client: Inference client shared by all units
        store: Artifact store for cache lookups and results
        config: Run settings
        prompts: Prompt provider (defaults to config.prompts_dir)
    """

    def __init__(
        self,
        client: InferenceClient,
        store: ArtifactStore,
        config: PipelineConfig | None = None,
        prompts: PromptProvider | None = None,
    ):
        self.config = config or PipelineConfig()
        self.store = store
        self.executor = RetryingExecutor(client, self.config)
        self.prompts = prompts or PromptProvider(self.config.prompts_dir)
        self.analysis = AnalysisService(self.executor, self.prompts, self.config)
        self.chapter_limiter = ConcurrencyLimiter(self.config.chapter_concurrency, name="chapters")
        # Paragraph pools of the last run, by chapter index
        self.paragraph_pools: dict[int, BoundedWorkerPool] = {}
        self.graph = TaskGraph()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop scheduling new units; units already running finish."""
        if not self._cancelled:
            logger.warning("Cancellation requested: no new units will be started")
        self._cancelled = True

    def load_document(self, path: str | Path) -> Document:
        return load_document(path, self.config.delimiter_pattern, self.config.skip_preamble)

    def build_graph(self, document: Document) -> TaskGraph:
        """Create every task of the run.

        Chapters beyond ``chapter_limit`` are left out, and so are
        paragraphs shorter than ``min_paragraph_length``.
        """
        chapters = list(document.chapters)
        if self.config.chapter_limit is not None:
            chapters = chapters[: self.config.chapter_limit]

        graph = TaskGraph()
        chapter_tasks = []
        for chapter in chapters:
            for paragraph in chapter.analyzable_paragraphs(self.config.min_paragraph_length):
                graph.add(Task.for_paragraph(chapter.index, paragraph))
            chapter_tasks.append(graph.add(Task.for_chapter(chapter)))

        # Pairs follow the filtered, renumbered chapter sequence
        for previous, current in zip(chapter_tasks, chapter_tasks[1:]):
            graph.add(Task.for_chapter_pair(previous, current))
        return graph

    async def run(self, source: str | Path | Document) -> RunSummary:
        """Analyze a document.

        Args:
            source: Document, or a path to load it from

        Returns:
            Summary of the run, including every unit failure

        Raises:
            FatalRunError: If the document cannot be loaded or segmented
        """
        started = time.monotonic()
        document = source if isinstance(source, Document) else self.load_document(source)
        repository = ArtifactRepository(self.store, document.id)

        graph = self.graph = self.build_graph(document)
        self.paragraph_pools = {}
        chapter_tasks = graph.of_kind(UnitKind.CHAPTER)
        paragraphs_by_chapter: dict[int, list[Task]] = {t.chapter_index: [] for t in chapter_tasks}
        for task in graph.of_kind(UnitKind.PARAGRAPH):
            paragraphs_by_chapter[task.chapter_index].append(task)

        logger.info(
            f"🚀 Analyzing '{document.id}': {len(chapter_tasks)} chapters, "
            f"{len(graph.of_kind(UnitKind.PARAGRAPH))} paragraphs "
            f"(chapters x{self.config.chapter_concurrency}, "
            f"paragraphs x{self.config.paragraph_concurrency})"
        )

        chapter_jobs = [
            self.chapter_limiter.submit(
                lambda task=task: self._chapter_job(
                    task, paragraphs_by_chapter[task.chapter_index], repository
                )
            )
            for task in chapter_tasks
        ]
        link_jobs = [
            asyncio.create_task(self._inter_chapter_job(graph, task, repository))
            for task in graph.of_kind(UnitKind.INTER_CHAPTER)
        ]
        await asyncio.gather(*chapter_jobs, *link_jobs)

        summary = self._summarize(document, graph, time.monotonic() - started)
        logger.info(
            f"Finished '{document.id}': {summary.chapters_processed} chapters, "
            f"{summary.paragraphs_processed} paragraphs, "
            f"{summary.inter_chapter_links_processed} links, "
            f"{len(summary.failures)} failures in {summary.duration_seconds:.1f}s"
        )
        return summary

    def _skip_cancelled(self, *tasks: Task) -> None:
        for task in tasks:
            if task.state is TaskState.PENDING:
                task.skip("cancelled", cancelled_error(task))

    async def _chapter_job(
        self,
        task: Task,
        paragraph_tasks: list[Task],
        repository: ArtifactRepository,
    ) -> Task:
        if self._cancelled:
            self._skip_cancelled(*paragraph_tasks, task)
            return task

        chapter = task.payload
        pool = BoundedWorkerPool(
            self.config.paragraph_concurrency,
            repository,
            pause_seconds=self.config.paragraph_pause,
            should_stop=lambda: self._cancelled,
            name=f"chapter {chapter.index} paragraphs",
        )
        self.paragraph_pools[chapter.index] = pool

        await pool.run_all(paragraph_tasks, lambda t: self.analysis.analyze_paragraph(t.payload))
        # Workers finish in any order; chapter analysis reads paragraph order
        done = sorted(
            (t for t in paragraph_tasks if t.state is TaskState.COMPLETED),
            key=lambda t: t.sub_index,
        )
        results = [t.result for t in done]
        logger.info(
            f"Chapter {chapter.index}: {len(results)}/{len(paragraph_tasks)} paragraphs analyzed"
        )

        if self._cancelled:
            self._skip_cancelled(task)
            return task

        await run_unit(
            task,
            lambda t: self.analysis.analyze_chapter(chapter, results),
            repository,
        )
        return task

    async def _inter_chapter_job(
        self,
        graph: TaskGraph,
        task: Task,
        repository: ArtifactRepository,
    ) -> Task:
        ready = await graph.wait_for_dependencies(task)
        if self._cancelled:
            self._skip_cancelled(task)
            return task
        if not ready:
            logger.warning(f"Skipping {task.unit_id}: a chapter it depends on did not complete")
            task.skip("dependency failed")
            return task

        previous = graph[f"c{task.chapter_index}"]
        current = graph[f"c{task.sub_index}"]
        await run_unit(
            task,
            lambda t: self.analysis.analyze_inter_chapter(
                previous.chapter_index, current.chapter_index, previous.result, current.result
            ),
            repository,
        )
        return task

    def _summarize(self, document: Document, graph: TaskGraph, duration: float) -> RunSummary:
        def completed(kind: UnitKind) -> int:
            return len(graph.in_state(TaskState.COMPLETED, kind))

        included = {t.unit_id for t in graph.of_kind(UnitKind.CHAPTER)}
        paragraphs_skipped = sum(
            len(c.paragraphs) - len(c.analyzable_paragraphs(self.config.min_paragraph_length))
            for c in document.chapters
            if f"c{c.index}" in included
        )
        links_skipped = [
            t
            for t in graph.in_state(TaskState.SKIPPED, UnitKind.INTER_CHAPTER)
            if t.error is None
        ]

        return RunSummary(
            document_id=document.id,
            chapters_processed=completed(UnitKind.CHAPTER),
            paragraphs_processed=completed(UnitKind.PARAGRAPH),
            inter_chapter_links_processed=completed(UnitKind.INTER_CHAPTER),
            paragraphs_skipped=paragraphs_skipped,
            inter_chapter_links_skipped=len(links_skipped),
            cached_units=sum(1 for t in graph if t.from_cache),
            failures=graph.failures(),
            cancelled=self._cancelled,
            duration_seconds=round(duration, 3),
        )


def _resolve_config(options: PipelineConfig | dict[str, Any] | None) -> PipelineConfig:
    if isinstance(options, PipelineConfig):
        return options
    try:
        return PipelineConfig(**(options or {}))
    except ValidationError as e:
        raise FatalRunError(f"Invalid pipeline options: {e}") from e


async def run_pipeline(
    document_path: str | Path,
    output_location: str | Path,
    options: PipelineConfig | dict[str, Any] | None = None,
    client: InferenceClient | None = None,
    provider: str | None = None,
    model: str | None = None,
) -> RunSummary:
    """Analyze a document file and write artifacts under output_location.

    Args:
        document_path: Path to the book text
        output_location: Root directory for artifacts
        options: PipelineConfig, or a dict of its fields (delimiter_pattern,
            skip_preamble, chapter_concurrency, paragraph_concurrency,
            chapter_limit, ...)
        client: Inference client (defaults to a LangChain client)
        provider: LLM provider for the default client
        model: Model name for the default client

    Returns:
        Run summary

    Raises:
        FatalRunError: On invalid options or an unreadable/unsegmentable document
    """
    config = _resolve_config(options)
    orchestrator = PipelineOrchestrator(
        client or LangChainInferenceClient(provider, model, timeout=config.request_timeout),
        LocalArtifactStore(output_location),
        config,
    )
    return await orchestrator.run(document_path)


__all__ = ["PipelineOrchestrator", "run_pipeline"]
