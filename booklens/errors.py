"""Exception hierarchy for booklens.

Inference clients raise ``InferenceError``; the retrying executor turns
whatever it gives up on into ``UnitExecutionError``. ``FatalRunError``
aborts a run before any unit is scheduled.
"""

from booklens.models.schemas import ErrorType


class BookLensError(Exception):
    """Base class for all booklens errors."""


class InferenceError(BookLensError):
    """A failed call to the inference service.

    Attributes:
        status: HTTP status reported by the service, if any
        code: Transport or provider error code (e.g. ECONNRESET), if any
    """

    def __init__(self, message: str, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status = status
        self.code = code


class ResponseParseError(BookLensError):
    """Structured response could not be parsed after fence stripping."""

    def __init__(self, message: str, content: str = ""):
        super().__init__(message)
        self.content = content


class UnitExecutionError(BookLensError):
    """A request the executor gave up on.

    Attributes:
        error_type: Classification of the final failure
        attempts: Number of attempts made
        retryable: Whether the last failure was of a retryable kind
        status: HTTP status of the last failure, if any
        code: Error code of the last failure, if any
    """

    def __init__(
        self,
        error_type: ErrorType,
        message: str,
        attempts: int,
        retryable: bool = False,
        status: int | None = None,
        code: str | None = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.attempts = attempts
        self.retryable = retryable
        self.status = status
        self.code = code


class FatalRunError(BookLensError):
    """Run-level failure raised before any scheduling begins."""


class UnitCancelledError(BookLensError):
    """Unit was not started because the run was cancelled."""
