"""Configuration for the subscription store."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SubscriptionsConfig(BaseSettings):
    """Where per-identity subscription documents live in the document store."""

    model_config = SettingsConfigDict(
        env_prefix="SUBSCRIPTIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    user_collection: str = Field(
        default="users",
        description="Path prefix of per-identity documents (<prefix>/<uid>)",
    )
    feeds_field: str = Field(
        default="feeds",
        description="Document key holding the subscription list",
    )
