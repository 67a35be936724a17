"""Observability layer - logging and metrics."""

from research_feed.observability.logging import setup_logging
from research_feed.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
