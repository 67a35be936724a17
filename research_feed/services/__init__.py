"""Identity-scoped services."""

from research_feed.services.dashboard_service import DashboardService

__all__ = ["DashboardService"]
