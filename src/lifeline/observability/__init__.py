"""Observability: structured logging and metrics hooks for lifeline."""

from __future__ import annotations

from .logger import JobLoggerAdapter, StructuredFormatter, get_logger, job_logger
from .metrics import MetricsHook, NoopMetricsHook, resolve_metrics, timed

__all__ = [
    "JobLoggerAdapter",
    "MetricsHook",
    "NoopMetricsHook",
    "StructuredFormatter",
    "get_logger",
    "job_logger",
    "resolve_metrics",
    "timed",
]
