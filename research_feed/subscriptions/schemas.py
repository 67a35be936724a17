"""Data models for the subscriptions module."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from research_feed.ingestion.schemas import parse_timestamp

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Subscription:
    """One external source a user polls.

    `url` is the unique key within a user's subscription set.
    """

    url: str
    name: str | None = None
    is_active: bool = True
    added_at: datetime = field(default_factory=_utc_now)
    keywords: list[str] | None = None

    def to_record(self) -> dict[str, Any]:
        """Persisted (camelCase) shape of this subscription."""
        record: dict[str, Any] = {
            "url": self.url,
            "isActive": self.is_active,
            "addedAt": self.added_at.isoformat(),
        }
        if self.name is not None:
            record["name"] = self.name
        if self.keywords is not None:
            record["keywords"] = list(self.keywords)
        return record

    @classmethod
    def from_record(cls, record: str | dict[str, Any]) -> "Subscription":
        """Build a Subscription from a persisted entry.

        Legacy entries are bare URL strings; they become active
        subscriptions added now.
        """
        if isinstance(record, str):
            return cls(url=record)

        added_at = _utc_now()
        raw_added = record.get("addedAt")
        if raw_added is not None:
            try:
                added_at = parse_timestamp(raw_added)
            except ValueError:
                logger.warning(f"Unparsable addedAt {raw_added!r} for {record.get('url')}")

        return cls(
            url=record["url"],
            name=record.get("name"),
            is_active=_parse_active(record.get("isActive", True)),
            added_at=added_at,
            keywords=_parse_keywords(record.get("keywords")),
        )


def _parse_active(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    logger.warning(f"Unrecognized isActive {value!r}; treating as active")
    return True


def _parse_keywords(value: Any) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [k for k in value if isinstance(k, str)]
    logger.warning(f"Ignoring malformed keywords {value!r}")
    return None


def normalize_feeds(raw: list[Any] | None) -> tuple[list[Subscription], bool]:
    """Upgrade a persisted feed list to Subscriptions.

    Legacy string entries are migrated, malformed entries dropped and
    duplicate URLs collapsed (first occurrence wins).

    Returns:
        (subscriptions, migrated) where `migrated` is True if the
        persisted form differs from what a rewrite would produce.
    """
    subscriptions: list[Subscription] = []
    seen: set[str] = set()
    migrated = False

    for entry in raw or []:
        if isinstance(entry, str):
            migrated = True
        elif not isinstance(entry, dict) or not entry.get("url"):
            logger.warning(f"Dropping malformed subscription entry: {entry!r}")
            migrated = True
            continue

        subscription = Subscription.from_record(entry)
        if subscription.url in seen:
            migrated = True
            continue
        seen.add(subscription.url)
        subscriptions.append(subscription)

    return subscriptions, migrated


EventKind = Literal["changed", "removed"]


@dataclass
class SubscriptionEvent:
    """Emitted by the subscription store.

    `changed` follows every remote sync and carries the full list;
    `removed` follows a successful remove and names the removed URL.
    """

    kind: EventKind
    subscriptions: list[Subscription]
    url: str | None = None
