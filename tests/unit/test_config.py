"""Tests for configuration and the error/summary models."""

import pytest
from pydantic import ValidationError

from booklens.config import (
    CHAPTER_TEMPERATURE,
    DEFAULT_CHAPTER_PATTERN,
    PARAGRAPH_FACETS,
    PipelineConfig,
)
from booklens.errors import ResponseParseError, UnitCancelledError, UnitExecutionError
from booklens.models.schemas import ErrorType, PipelineError, RunSummary


class TestPipelineConfig:
    """Tests for PipelineConfig validation."""

    def test_defaults(self):
        config = PipelineConfig()

        assert config.delimiter_pattern == DEFAULT_CHAPTER_PATTERN
        assert config.skip_preamble is True
        assert config.chapter_limit is None
        assert config.chapter_temperature == CHAPTER_TEMPERATURE
        assert config.paragraph_facets == PARAGRAPH_FACETS

    def test_invalid_regex(self):
        with pytest.raises(ValidationError, match="Invalid delimiter pattern"):
            PipelineConfig(delimiter_pattern="Chapter (")

    @pytest.mark.parametrize(
        "field", ["chapter_concurrency", "paragraph_concurrency", "max_retries", "chapter_limit"]
    )
    def test_positive_integers(self, field):
        with pytest.raises(ValidationError):
            PipelineConfig(**{field: 0})

    def test_negative_delay_rejected(self):
        with pytest.raises(ValidationError):
            PipelineConfig(paragraph_pause=-1)

    def test_backoff_must_not_decrease(self):
        with pytest.raises(ValidationError, match="non-decreasing"):
            PipelineConfig(backoff_schedule=[2.0, 1.0])

    def test_backoff_must_not_be_negative(self):
        with pytest.raises(ValidationError, match="non-negative"):
            PipelineConfig(backoff_schedule=[-1.0, 1.0])

    def test_accepts_valid_schedule(self):
        assert PipelineConfig(backoff_schedule=[1.0, 1.0, 5.0]).backoff_schedule == [1.0, 1.0, 5.0]


class TestPipelineError:
    """Tests for PipelineError.from_exception."""

    def test_from_unit_execution_error(self):
        error = UnitExecutionError(
            ErrorType.RETRIES_EXHAUSTED, "gave up", attempts=4, retryable=True, status=503
        )

        record = PipelineError.from_exception(error, "c2.p3", "paragraph")

        assert record.type is ErrorType.RETRIES_EXHAUSTED
        assert record.attempts == 4
        assert record.retryable is True
        assert record.details["status"] == 503
        assert record.unit == "c2.p3"

    @pytest.mark.parametrize(
        "exception, expected",
        [
            (UnitCancelledError("stopped"), ErrorType.CANCELLED),
            (ResponseParseError("bad"), ErrorType.PARSE_ERROR),
            (PermissionError("read-only"), ErrorType.STORAGE_ERROR),
            (KeyError("text"), ErrorType.PROMPT_ERROR),
            (ValueError("unexpected end of data"), ErrorType.UNKNOWN_ERROR),
            (RuntimeError("??"), ErrorType.UNKNOWN_ERROR),
        ],
    )
    def test_classification(self, exception, expected):
        assert PipelineError.from_exception(exception, "c1", "chapter").type is expected

    def test_explicit_type_wins(self):
        record = PipelineError.from_exception(
            RuntimeError("x"), "c1", "chapter", error_type=ErrorType.STORAGE_ERROR
        )

        assert record.type is ErrorType.STORAGE_ERROR


class TestRunSummary:
    """Tests for RunSummary."""

    def test_ok_without_failures(self):
        assert RunSummary(document_id="book").ok

    def test_not_ok_with_failures(self):
        failure = PipelineError(type=ErrorType.LLM_ERROR, message="x", unit="c1", kind="chapter")

        summary = RunSummary(document_id="book", failures=[failure])

        assert not summary.ok
        assert summary.model_dump(mode="json")["failures"][0]["type"] == "llm_error"
