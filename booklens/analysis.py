"""Analysis requests for each unit kind.

Builds the prompts for paragraph, chapter and inter-chapter units and
sends them through the retrying executor. Nothing here touches the
artifact store; the worker pool and orchestrator persist what these
methods return.
"""

import asyncio
import logging
from typing import Any

import orjson

from booklens.config import PipelineConfig
from booklens.errors import UnitExecutionError
from booklens.executor import AnalysisRequest, RetryingExecutor
from booklens.models.documents import Chapter, Paragraph
from booklens.models.schemas import ErrorType
from booklens.utils.prompts import PromptProvider

logger = logging.getLogger(__name__)

CHAPTER_PROMPT = "chapter_analysis"
INTER_CHAPTER_PROMPT = "inter_chapter_analysis"


def compact_samples(paragraph_results: list[dict], limit: int) -> list[dict]:
    """Reduce paragraph results to the fields chapter analysis needs.

    Keeps the first ``limit`` results, each as ``{"mood", "themes"}``.
    Missing fields come through as None.

    Examples:
        >>> compact_samples([{"id": 1, "analysis": {"atmosphere": {"mood": "tense"}}}], 20)
        [{'mood': 'tense', 'themes': None}]
    """
    samples = []
    for result in paragraph_results[:limit]:
        analysis = result.get("analysis") or {}
        samples.append(
            {
                "mood": _lookup(analysis, "atmosphere", "mood"),
                "themes": _lookup(analysis, "genre", "type"),
            }
        )
    return samples


def _lookup(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def to_json(value: Any) -> str:
    return orjson.dumps(value, option=orjson.OPT_INDENT_2).decode("utf-8")


class AnalysisService:
    """Runs the analysis prompts for each unit kind.

    Args:
        executor: Retrying executor used for every request
        prompts: Provider for the named prompt templates
        config: Run settings (facets, temperatures, compaction limits)
    """

    def __init__(
        self,
        executor: RetryingExecutor,
        prompts: PromptProvider,
        config: PipelineConfig | None = None,
    ):
        self.executor = executor
        self.prompts = prompts
        self.config = config or executor.config

    async def _run_prompt(
        self,
        name: str,
        substitutions: dict[str, Any],
        temperature: float,
        delay: float = 0.0,
    ) -> Any:
        if delay:
            await asyncio.sleep(delay)
        try:
            prompt = self.prompts.get(name, substitutions)
        except (FileNotFoundError, ValueError) as e:
            raise UnitExecutionError(ErrorType.PROMPT_ERROR, str(e), attempts=0) from e
        request = AnalysisRequest.from_prompt(prompt, temperature=temperature)
        return await self.executor.execute(request)

    async def analyze_paragraph(self, paragraph: Paragraph) -> dict:
        """Run every paragraph facet and merge the results.

        Facets start ``facet_stagger`` seconds apart. All of them are
        allowed to settle; the first failure is then re-raised, so one
        bad facet fails the whole paragraph.

        Returns:
            ``{"id": index, "text": text, "analysis": merged}``
        """
        substitutions = {"text": paragraph.text, "accent_mode": self.config.accent_mode}
        facets = self.config.paragraph_facets
        outcomes = await asyncio.gather(
            *(
                self._run_prompt(
                    facet,
                    substitutions,
                    self.config.temperature,
                    delay=i * self.config.facet_stagger,
                )
                for i, facet in enumerate(facets)
            ),
            return_exceptions=True,
        )

        merged: dict[str, Any] = {}
        for facet, outcome in zip(facets, outcomes):
            if isinstance(outcome, BaseException):
                raise outcome
            if isinstance(outcome, dict):
                merged.update(outcome)
            else:
                merged[facet] = outcome

        return {"id": paragraph.index, "text": paragraph.text, "analysis": merged}

    async def analyze_chapter(self, chapter: Chapter, paragraph_results: list[dict]) -> Any:
        """Analyze a chapter from its (truncated) text and paragraph samples.

        Args:
            chapter: The chapter
            paragraph_results: Paragraph results in paragraph order
        """
        samples = compact_samples(paragraph_results, self.config.chapter_sample_size)
        logger.debug(
            f"Chapter {chapter.index}: {len(samples)} of {len(paragraph_results)} "
            f"paragraph results sampled"
        )
        return await self._run_prompt(
            CHAPTER_PROMPT,
            {
                "chapter_text": chapter.raw_content[: self.config.chapter_text_limit],
                "samples": to_json(samples),
            },
            self.config.chapter_temperature,
        )

    async def analyze_inter_chapter(
        self,
        previous_index: int,
        current_index: int,
        previous_analysis: Any,
        current_analysis: Any,
    ) -> Any:
        """Relate two consecutive chapters through their chapter analyses."""
        return await self._run_prompt(
            INTER_CHAPTER_PROMPT,
            {
                "previous_chapter": previous_index,
                "current_chapter": current_index,
                "previous_analysis": to_json(previous_analysis),
                "current_analysis": to_json(current_analysis),
            },
            self.config.temperature,
        )


__all__ = ["AnalysisService", "compact_samples"]
