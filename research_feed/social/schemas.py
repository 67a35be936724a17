"""Data models for social network posts."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class SocialAuthor(BaseModel):
    """Author of a social post."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    handle: str
    display_name: str = ""
    avatar: str | None = None


class SocialPost(BaseModel):
    """
    A normalized social post as returned by the social search relay.

    `id` is the post URI; `cid` is the content id needed for reposting.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    cid: str = ""
    image: str | None = None
    author: SocialAuthor
    content: str = ""
    created_at: str | None = None
    url: str | None = None
    likes: int = Field(default=0, ge=0)
    reposts: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def default_cid_to_id(self) -> "SocialPost":
        if not self.cid:
            self.cid = self.id
        return self


def extract_image(embed: dict[str, Any] | None) -> str | None:
    """
    First thumbnail in a post embed.

    Direct image embeds win over images attached to a quoted or reposted
    record (media-with-record embeds). Returns None when neither exists.
    """
    if not embed:
        return None

    images = embed.get("images") or []
    if images:
        return images[0].get("thumb")

    media_images = (embed.get("media") or {}).get("images") or []
    if media_images:
        return media_images[0].get("thumb")

    return None


def post_from_bluesky(post: dict[str, Any]) -> SocialPost:
    """Normalize one app.bsky.feed.searchPosts result."""
    author = post.get("author") or {}
    handle = author.get("handle", "")
    uri = post.get("uri", "")
    record = post.get("record") or {}

    return SocialPost(
        id=uri,
        cid=post.get("cid") or "",
        image=extract_image(post.get("embed")),
        author=SocialAuthor(
            handle=handle,
            display_name=author.get("displayName") or handle,
            avatar=author.get("avatar"),
        ),
        content=record.get("text", ""),
        created_at=record.get("createdAt"),
        url=f"https://bsky.app/profile/{handle}/post/{uri.rsplit('/', 1)[-1]}",
        likes=post.get("likeCount") or 0,
        reposts=post.get("repostCount") or 0,
    )
