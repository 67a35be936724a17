"""Public library entry schema."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from research_feed.ingestion.schemas import parse_timestamp

LIBRARY_COLLECTION = "public_library"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PublicLibraryEntry(BaseModel):
    """
    A subscription shared to every identity.

    Stored camelCase (url, description, sharedBy, sharedAt, likes); the
    id is the collection key and is not part of the stored document.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str = ""
    url: str
    description: str = ""
    shared_by: str | None = None
    shared_at: datetime = Field(default_factory=_utc_now)
    likes: int = Field(default=0, ge=0)

    @field_validator("shared_at", mode="before")
    @classmethod
    def parse_shared_at(cls, v: Any) -> datetime:
        if v is None or v == "":
            return _utc_now()
        return parse_timestamp(v)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "PublicLibraryEntry":
        return cls.model_validate({**data, "id": doc_id})

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude={"id"})
