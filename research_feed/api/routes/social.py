"""
Social relay endpoints: /fetch-bluesky and /repost-bluesky.
"""

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from research_feed.api.dependencies import get_relay_settings
from research_feed.api.models import RepostRequest
from research_feed.config.settings import Settings
from research_feed.relay import upstream
from research_feed.relay.upstream import SocialCredentialsRequiredError

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/fetch-bluesky", summary="Search Bluesky posts")
async def fetch_bluesky(
    q: str | None = Query(default=None, description="Search query"),
    settings: Settings = Depends(get_relay_settings),
) -> Response:
    if not q:
        return PlainTextResponse("Missing query parameter 'q'", status_code=400)

    try:
        posts = await upstream.search_bluesky(q, settings)
    except SocialCredentialsRequiredError as e:
        return JSONResponse(status_code=403, content={"error": str(e)})
    except Exception as e:
        logger.error("Bluesky search failed", query=q, error=str(e))
        return JSONResponse(status_code=500, content={"error": str(e) or "Internal Server Error"})

    return JSONResponse(content=[post.model_dump(by_alias=True) for post in posts])


@router.post("/repost-bluesky", summary="Repost a Bluesky post")
async def repost_bluesky(
    request: RepostRequest,
    settings: Settings = Depends(get_relay_settings),
) -> Response:
    if not request.uri or not request.cid:
        return PlainTextResponse("Missing 'uri' or 'cid'", status_code=400)

    try:
        result = await upstream.repost_bluesky(request.uri, request.cid, settings)
    except SocialCredentialsRequiredError as e:
        return PlainTextResponse(str(e), status_code=403)
    except Exception as e:
        logger.error("Bluesky repost failed", uri=request.uri, error=str(e))
        return JSONResponse(status_code=500, content={"error": str(e)})

    return JSONResponse(content=result)
