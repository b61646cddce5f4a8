"""Concurrency primitives: admission limiter and bounded worker pool."""

from booklens.concurrency.limiter import ConcurrencyLimiter
from booklens.concurrency.pool import BoundedWorkerPool, run_unit

__all__ = ["BoundedWorkerPool", "ConcurrencyLimiter", "run_unit"]
