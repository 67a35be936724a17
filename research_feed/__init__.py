"""Research feed: subscription sync and feed aggregation engine."""

__version__ = "0.1.0"
