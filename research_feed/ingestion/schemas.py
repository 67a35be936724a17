"""
Canonical resource schema for the feed aggregation engine.

CRITICAL: Every adapter MUST output this exact structure. The orchestrator
sorts on published_at, and the presentation layer reads native_data for
source-specific display, so field names are part of the contract.

Wire format (relay JSON, document store) uses camelCase keys
(pluginId, externalId, publishedAt, ...); Python code uses snake_case.
"""

from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

PLUGIN_ID = "feed-aggregator"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a source-reported timestamp into a UTC-aware datetime.

    Accepts datetimes, dates, Unix timestamps (seconds), ISO-8601 strings
    (with or without a Z suffix, date-only included) and RFC 822 strings
    as used by RSS pubDate.

    Raises:
        ValueError: If the value cannot be interpreted as an instant.
    """
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValueError(f"Timestamp out of range: {value!r}") from e
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty timestamp")
        try:
            return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
        try:
            return _as_utc(parsedate_to_datetime(text))
        except (TypeError, ValueError, IndexError):
            pass
    raise ValueError(f"Unparsable timestamp: {value!r}")


class AdapterKind(str, Enum):
    """Closed set of adapter variants, in dispatch priority order."""

    NEWS = "news"
    GOVERNMENT = "government"
    LEGISLATIVE = "legislative"
    BLOG = "blog"


class CanonicalResource(BaseModel):
    """
    CANONICAL RESOURCE SCHEMA

    One external item normalized independently of its origin source.
    Resources are derived, in-memory values recomputed on every
    aggregation pass; they are never persisted by this engine.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    plugin_id: str = Field(
        default=PLUGIN_ID,
        description="Constant tag identifying the aggregator as origin",
    )
    external_id: str = Field(
        default="",
        description="Source-native identifier (guid, bill number, document URL)",
    )
    title: str = Field(..., description="Display title")
    url: str | None = Field(default=None, description="Link to the original item")
    summary: str | None = Field(default=None, description="Plain-text snippet")

    # Timestamps
    ingested_at: datetime = Field(
        default_factory=_utc_now,
        description="UTC time the aggregation pass fetched this item",
    )
    published_at: datetime | None = Field(
        default=None,
        description="Source-reported publication time",
    )

    status: Literal["new", "saved", "archived"] = "new"
    native_data: dict[str, Any] = Field(
        default_factory=dict,
        description="Source-specific fields kept for display",
    )
    source_url: str | None = Field(
        default=None,
        description="Subscription URL that produced this resource",
    )

    @field_validator("ingested_at", mode="before")
    @classmethod
    def resolve_ingested_at(cls, v: Any) -> datetime:
        if v is None or v == "":
            return _utc_now()
        try:
            return parse_timestamp(v)
        except ValueError:
            return _utc_now()

    @field_validator("published_at", mode="before")
    @classmethod
    def resolve_published_at(cls, v: Any) -> datetime | None:
        """Absent dates resolve later to ingested_at; garbage sorts as the epoch."""
        if v is None or v == "":
            return None
        try:
            return parse_timestamp(v)
        except ValueError:
            return EPOCH

    @model_validator(mode="after")
    def default_published_to_ingested(self) -> "CanonicalResource":
        if self.published_at is None:
            self.published_at = self.ingested_at
        return self

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "CanonicalResource":
        """Build a resource from a relay JSON item (camelCase keys)."""
        return cls.model_validate(data)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape the relay returns."""
        return self.model_dump(by_alias=True, mode="json", exclude={"source_url"})

    @property
    def sort_key(self) -> datetime:
        """Recency key; missing dates sort as the Unix epoch."""
        return self.published_at or EPOCH
