"""Social network search and repost."""

from research_feed.social.client import SocialClient
from research_feed.social.monitor import RepostError, SocialMonitor
from research_feed.social.schemas import SocialAuthor, SocialPost, extract_image

__all__ = [
    "RepostError",
    "SocialAuthor",
    "SocialClient",
    "SocialMonitor",
    "SocialPost",
    "extract_image",
]
