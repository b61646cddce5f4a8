"""Pydantic models for errors and run summaries.

These models are what a caller sees after a run: the structured
failure records and the aggregate summary.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Error Types
# =============================================================================


class ErrorType(str, Enum):
    """Types of errors that can occur in the pipeline."""

    LLM_ERROR = "llm_error"  # Terminal inference error (4xx, auth, bad request)
    RETRIES_EXHAUSTED = "retries_exhausted"  # Retryable errors until out of attempts
    PARSE_ERROR = "parse_error"  # Malformed structured response
    VALIDATION_ERROR = "validation_error"  # Pydantic validation failures
    PROMPT_ERROR = "prompt_error"  # Missing prompt, template errors
    STORAGE_ERROR = "storage_error"  # Artifact read/write failures
    CANCELLED = "cancelled"  # Not started because the run was cancelled
    UNKNOWN_ERROR = "unknown_error"  # Catch-all


class PipelineError(BaseModel):
    """Structured error information for a failed unit."""

    type: ErrorType = Field(description="Category of error")
    message: str = Field(description="Human-readable error message")
    unit: str = Field(description="Unit where the error occurred")
    kind: str = Field(description="Unit kind: paragraph, chapter or inter_chapter")
    attempts: int = Field(default=0, description="Inference attempts made")
    timestamp: datetime = Field(default_factory=datetime.now)
    retryable: bool = Field(default=False, description="Whether the last failure was transient")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional error context")

    @classmethod
    def from_exception(
        cls,
        e: Exception,
        unit: str,
        kind: str,
        error_type: ErrorType | None = None,
    ) -> "PipelineError":
        """Create a PipelineError from an exception.

        Args:
            e: The exception that occurred
            unit: Identifier of the failed unit
            kind: Kind of the failed unit
            error_type: Optional explicit error type

        Returns:
            PipelineError instance
        """
        # Imported here to avoid a cycle (errors imports ErrorType)
        from booklens.errors import (
            ResponseParseError,
            UnitCancelledError,
            UnitExecutionError,
        )

        attempts = 0
        retryable = False
        details: dict[str, Any] = {"exception_type": type(e).__name__}

        if isinstance(e, UnitExecutionError):
            error_type = error_type or e.error_type
            attempts = e.attempts
            retryable = e.retryable
            if e.status is not None:
                details["status"] = e.status
            if e.code is not None:
                details["code"] = e.code
        elif error_type is None:
            exc_name = type(e).__name__.lower()
            if isinstance(e, UnitCancelledError):
                error_type = ErrorType.CANCELLED
            elif isinstance(e, ResponseParseError):
                error_type = ErrorType.PARSE_ERROR
            elif "validation" in exc_name:
                error_type = ErrorType.VALIDATION_ERROR
            elif isinstance(e, OSError):
                error_type = ErrorType.STORAGE_ERROR
            elif "prompt" in exc_name or "template" in exc_name or isinstance(e, KeyError):
                error_type = ErrorType.PROMPT_ERROR
            else:
                error_type = ErrorType.UNKNOWN_ERROR

        return cls(
            type=error_type,
            message=str(e),
            unit=unit,
            kind=kind,
            attempts=attempts,
            retryable=retryable,
            details=details,
        )


# =============================================================================
# Run Summary
# =============================================================================


class RunSummary(BaseModel):
    """Outcome of one pipeline run, produced even with partial failures."""

    document_id: str = Field(description="Identifier of the analyzed document")
    chapters_processed: int = Field(default=0)
    paragraphs_processed: int = Field(default=0)
    inter_chapter_links_processed: int = Field(default=0)
    paragraphs_skipped: int = Field(default=0, description="Below minimum length")
    inter_chapter_links_skipped: int = Field(default=0, description="A dependency failed")
    cached_units: int = Field(default=0, description="Units loaded from the artifact store")
    failures: list[PipelineError] = Field(default_factory=list)
    cancelled: bool = Field(default=False)
    duration_seconds: float = Field(default=0.0)

    @property
    def ok(self) -> bool:
        """True when no unit failed."""
        return not self.failures
