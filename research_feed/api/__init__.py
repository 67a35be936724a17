"""Relay API - FastAPI application serving the relay endpoints."""

from research_feed.api.app import create_app

__all__ = ["create_app"]
