"""Data models for documents, tasks, errors and summaries."""

from booklens.models.documents import Chapter, Document, Paragraph, UnitKind
from booklens.models.schemas import ErrorType, PipelineError, RunSummary
from booklens.models.tasks import Task, TaskGraph, TaskState, join

__all__ = [
    # Documents
    "Chapter",
    "Document",
    "Paragraph",
    "UnitKind",
    # Errors and summaries
    "ErrorType",
    "PipelineError",
    "RunSummary",
    # Tasks
    "Task",
    "TaskGraph",
    "TaskState",
    "join",
]
