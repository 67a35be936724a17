"""
Feed relay endpoints: /fetch-feed, /fetch-nyt, /fetch-guardian, /fetch-congress.

Upstream failures become HTTP 500 with a JSON {"error": ...} body; a
missing server-side API key becomes HTTP 500 with a plain-text message.
"""

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from research_feed.api.dependencies import get_relay_settings
from research_feed.config.settings import Settings
from research_feed.relay import upstream
from research_feed.relay.upstream import MissingCredentialsError

router = APIRouter()
logger = structlog.get_logger(__name__)


def _upstream_failure(source: str, error: Exception) -> Response:
    if isinstance(error, MissingCredentialsError):
        return PlainTextResponse(str(error), status_code=500)
    logger.error("Upstream fetch failed", source=source, error=str(error))
    return JSONResponse(status_code=500, content={"error": str(error)})


@router.get("/fetch-feed", summary="Fetch a feed document (CORS relay)")
async def fetch_feed(
    url: str | None = Query(default=None, description="Feed URL to fetch"),
    settings: Settings = Depends(get_relay_settings),
) -> Response:
    if not url:
        return PlainTextResponse("Missing query parameter 'url'", status_code=400)
    try:
        document = await upstream.fetch_feed(url, settings)
    except Exception as e:
        return _upstream_failure("feed", e)
    return Response(content=document.body, media_type=document.content_type)


@router.get("/fetch-nyt", summary="Latest New York Times articles")
async def fetch_nyt(settings: Settings = Depends(get_relay_settings)) -> Response:
    try:
        items = await upstream.fetch_nyt(settings)
    except Exception as e:
        return _upstream_failure("nyt", e)
    return JSONResponse(content=items)


@router.get("/fetch-guardian", summary="Latest Guardian environment articles")
async def fetch_guardian(settings: Settings = Depends(get_relay_settings)) -> Response:
    try:
        items = await upstream.fetch_guardian(settings)
    except Exception as e:
        return _upstream_failure("guardian", e)
    return JSONResponse(content=items)


@router.get("/fetch-congress", summary="Keyword-filtered bills")
async def fetch_congress(
    keywords: str | None = Query(default=None, description="Comma-separated filter terms"),
    settings: Settings = Depends(get_relay_settings),
) -> Response:
    try:
        items = await upstream.fetch_congress(keywords, settings)
    except Exception as e:
        return _upstream_failure("congress", e)
    return JSONResponse(content=items)
