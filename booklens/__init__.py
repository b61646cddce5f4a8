"""booklens - concurrent LLM analysis of books.

Splits a book into chapters and paragraphs and schedules paragraph,
chapter and inter-chapter analysis with bounded concurrency, retries
and resumable artifact storage.
"""

from booklens.analysis import AnalysisService
from booklens.concurrency import BoundedWorkerPool, ConcurrencyLimiter
from booklens.config import PipelineConfig
from booklens.errors import FatalRunError, InferenceError, UnitExecutionError
from booklens.executor import AnalysisRequest, RetryingExecutor
from booklens.inference import InferenceClient, LangChainInferenceClient
from booklens.models import ErrorType, PipelineError, RunSummary, Task, TaskGraph, join
from booklens.pipeline import PipelineOrchestrator, run_pipeline
from booklens.segmenter import load_document, segment
from booklens.storage import (
    ArtifactRepository,
    InMemoryArtifactStore,
    LocalArtifactStore,
    artifact_key,
)
from booklens.utils.prompts import PromptProvider

__all__ = [
    # Pipeline
    "PipelineOrchestrator",
    "run_pipeline",
    "AnalysisService",
    # Configuration
    "PipelineConfig",
    # Segmentation
    "load_document",
    "segment",
    # Execution
    "AnalysisRequest",
    "RetryingExecutor",
    "InferenceClient",
    "LangChainInferenceClient",
    "PromptProvider",
    # Concurrency
    "BoundedWorkerPool",
    "ConcurrencyLimiter",
    "Task",
    "TaskGraph",
    "join",
    # Storage
    "ArtifactRepository",
    "InMemoryArtifactStore",
    "LocalArtifactStore",
    "artifact_key",
    # Errors
    "ErrorType",
    "FatalRunError",
    "InferenceError",
    "PipelineError",
    "RunSummary",
    "UnitExecutionError",
]
