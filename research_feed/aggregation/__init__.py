"""Aggregation orchestrator - fan-out to adapters, merge by recency."""

from research_feed.aggregation.service import (
    DISPATCH_ORDER,
    AggregationService,
    create_default_adapters,
)

__all__ = ["DISPATCH_ORDER", "AggregationService", "create_default_adapters"]
