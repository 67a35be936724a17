"""
Pydantic models for API request/response schemas.
"""

from pydantic import BaseModel, Field


class ComponentHealth(BaseModel):
    """Health of one infrastructure component."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = Field(default=None, description="Check latency")
    details: dict[str, str] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy, degraded, or unhealthy",
    )
    document_store_backend: str = Field(..., description="Configured backend (redis or memory)")
    upstreams_configured: dict[str, bool] = Field(
        default_factory=dict,
        description="Which upstream credentials the relay holds",
    )
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    version: str = Field(..., description="Service version")


class RepostRequest(BaseModel):
    """Body of POST /repost-bluesky. Both fields are checked by the handler."""

    uri: str | None = None
    cid: str | None = None
