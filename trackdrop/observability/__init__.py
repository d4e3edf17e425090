"""Observability: structured logging and metrics."""

from .logging_config import setup_logging, JsonFormatter, SecretRedactionFilter
from .metrics import MetricsCollector, get_metrics

__all__ = [
    "setup_logging",
    "JsonFormatter",
    "SecretRedactionFilter",
    "MetricsCollector",
    "get_metrics",
]
