"""Data ingestion module - canonical schema and source adapters."""

from research_feed.ingestion.base_adapter import BaseAdapter
from research_feed.ingestion.blog_adapter import BlogFeedAdapter
from research_feed.ingestion.government_adapter import GovernmentNoticeAdapter
from research_feed.ingestion.legislative_adapter import LegislativeAdapter
from research_feed.ingestion.news_adapter import NewsAdapter
from research_feed.ingestion.schemas import AdapterKind, CanonicalResource

__all__ = [
    "AdapterKind",
    "BaseAdapter",
    "BlogFeedAdapter",
    "CanonicalResource",
    "GovernmentNoticeAdapter",
    "LegislativeAdapter",
    "NewsAdapter",
]
