"""Retrying Request Executor - one inference request with timeout and retry.

Wraps a single call to the inference client with a bounded timeout,
structured-output parsing and validation, and backoff between retryable
failures. Results are returned, never persisted here.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError

from booklens.config import SLOW_REQUEST_SECONDS, PipelineConfig
from booklens.errors import InferenceError, ResponseParseError, UnitExecutionError
from booklens.executor_base import delay_for, exponential_backoff, is_retryable
from booklens.inference import InferenceClient
from booklens.models.schemas import ErrorType
from booklens.utils.json_extract import parse_structured
from booklens.utils.prompts import RenderedPrompt

logger = logging.getLogger(__name__)

__all__ = ["AnalysisRequest", "RetryingExecutor"]


@dataclass(frozen=True)
class AnalysisRequest:
    """One request to the inference service.

    Attributes:
        system_prompt: System message text
        user_prompt: User message text
        temperature: Sampling temperature
        expect_structured: Parse the response as JSON
        output_model: Optional Pydantic model the parsed JSON must satisfy
        label: Name used in log messages
    """

    system_prompt: str
    user_prompt: str
    temperature: float = 0.7
    expect_structured: bool = True
    output_model: type[BaseModel] | None = None
    label: str = "request"

    @classmethod
    def from_prompt(cls, prompt: RenderedPrompt, **kwargs) -> "AnalysisRequest":
        kwargs.setdefault("label", prompt.name)
        return cls(system_prompt=prompt.system, user_prompt=prompt.user, **kwargs)


class RetryingExecutor:
    """Executes requests with exponential backoff retry.

    Attempts count the first call: ``max_retries=3`` means at most three
    calls to the client.
    """

    def __init__(
        self,
        client: InferenceClient,
        config: PipelineConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.config = config or PipelineConfig()
        self._sleep = sleep

    def default_schedule(self, max_retries: int) -> list[float]:
        if self.config.backoff_schedule is not None:
            return list(self.config.backoff_schedule)
        return exponential_backoff(
            max_retries, self.config.retry_base_delay, self.config.retry_max_delay
        )

    async def _attempt(self, request: AnalysisRequest) -> Any:
        started = time.monotonic()
        content = await asyncio.wait_for(
            self.client.complete(
                request.system_prompt,
                request.user_prompt,
                request.temperature,
                request.expect_structured,
            ),
            timeout=self.config.request_timeout,
        )
        duration = time.monotonic() - started
        if duration > SLOW_REQUEST_SECONDS:
            logger.info(f"LLM request '{request.label}' took {duration:.1f}s")

        if not request.expect_structured:
            return content

        parsed = parse_structured(content)
        if request.output_model is not None:
            return request.output_model.model_validate(parsed)
        return parsed

    async def execute(
        self,
        request: AnalysisRequest,
        max_retries: int | None = None,
        backoff_schedule: list[float] | None = None,
    ) -> Any:
        """Execute a request, retrying transient failures.

        Args:
            request: The request to send
            max_retries: Maximum attempts (defaults to config.max_retries)
            backoff_schedule: Delays before each retry; the last one repeats

        Returns:
            Parsed JSON (or validated model) when structured, else raw text

        Raises:
            UnitExecutionError: On a terminal failure or when attempts run out
        """
        attempts_allowed = max_retries if max_retries is not None else self.config.max_retries
        if attempts_allowed < 1:
            raise ValueError("max_retries must be at least 1")
        schedule = (
            backoff_schedule
            if backoff_schedule is not None
            else self.default_schedule(attempts_allowed)
        )

        for attempt in range(1, attempts_allowed + 1):
            try:
                return await self._attempt(request)
            except ResponseParseError as e:
                logger.error(f"Unparseable response for '{request.label}': {e.content[:200]!r}")
                raise UnitExecutionError(
                    ErrorType.PARSE_ERROR, str(e), attempts=attempt
                ) from e
            except ValidationError as e:
                raise UnitExecutionError(
                    ErrorType.VALIDATION_ERROR,
                    f"Response failed validation: {e}",
                    attempts=attempt,
                ) from e
            except Exception as e:
                status = getattr(e, "status", None) if isinstance(e, InferenceError) else None
                code = getattr(e, "code", None) if isinstance(e, InferenceError) else None
                message = str(e) or type(e).__name__

                if not is_retryable(e):
                    raise UnitExecutionError(
                        ErrorType.LLM_ERROR,
                        message,
                        attempts=attempt,
                        status=status,
                        code=code,
                    ) from e

                if attempt == attempts_allowed:
                    raise UnitExecutionError(
                        ErrorType.RETRIES_EXHAUSTED,
                        f"Gave up after {attempt} attempt(s): {message}",
                        attempts=attempt,
                        retryable=True,
                        status=status,
                        code=code,
                    ) from e

                delay = delay_for(schedule, attempt - 1)
                logger.warning(
                    f"LLM call '{request.label}' failed "
                    f"(attempt {attempt}/{attempts_allowed}, {status or code or type(e).__name__}): "
                    f"{message}. Retrying in {delay:.1f}s..."
                )
                await self._sleep(delay)

        # Unreachable: the loop either returns or raises
        raise RuntimeError("retry loop exited without a result")
