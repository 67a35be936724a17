"""
Prometheus metrics for the feed aggregation engine.

Defines and exposes metrics for:
- Aggregation passes
- Per-adapter fetch outcomes and latency
- Size of the merged resource list
- Subscription mutations

Metrics are observational only; nothing here is persisted.
"""

import logging

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from research_feed.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the aggregation engine.

    Usage:
        metrics = get_metrics()
        metrics.record_adapter_fetch("blog", success=True, latency=0.4)
    """

    def __init__(self):
        self.aggregation_passes = Counter(
            "research_feed_aggregation_passes_total",
            "Total number of completed aggregation passes",
        )

        self.adapter_fetches = Counter(
            "research_feed_adapter_fetches_total",
            "Adapter fetch calls by outcome",
            ["adapter", "status"],  # status: success, error
        )

        self.adapter_latency = Histogram(
            "research_feed_adapter_latency_seconds",
            "Time for one adapter fetch call",
            ["adapter"],
            buckets=LATENCY_BUCKETS,
        )

        self.resources_visible = Gauge(
            "research_feed_resources_visible",
            "Number of resources produced by the last aggregation pass",
        )

        self.subscription_mutations = Counter(
            "research_feed_subscription_mutations_total",
            "Subscription store mutations",
            ["operation"],  # add, remove, toggle, filters
        )

        self._server_started = False

    def record_adapter_fetch(self, adapter: str, success: bool, latency: float) -> None:
        """Record the outcome and latency of one adapter call."""
        status = "success" if success else "error"
        self.adapter_fetches.labels(adapter=adapter, status=status).inc()
        self.adapter_latency.labels(adapter=adapter).observe(latency)

    def record_pass(self, resource_count: int) -> None:
        """Record a completed aggregation pass."""
        self.aggregation_passes.inc()
        self.resources_visible.set(resource_count)

    def record_mutation(self, operation: str) -> None:
        self.subscription_mutations.labels(operation=operation).inc()

    def start_server(self, port: int | None = None) -> None:
        """Expose metrics over HTTP for Prometheus scraping."""
        if self._server_started:
            return
        port = port or get_settings().metrics_port
        start_http_server(port)
        self._server_started = True
        logger.info(f"Metrics server started on port {port}")


_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
