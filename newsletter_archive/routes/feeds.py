"""
Feed routes: RSS 2.0 and embeddable HTML fragment.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, Response

from ..config import config, get_db
from ..database import Database
from ..feeds import generate_embed, generate_rss

router = APIRouter(tags=["feeds"])

RSS_ITEM_LIMIT = 50


@router.get("/feed.xml")
async def rss_feed(
    db: Annotated[Database, Depends(get_db)],
) -> Response:
    """RSS 2.0 feed of the most recent issues."""
    issues, _ = db.get_issues_paged(1, RSS_ITEM_LIMIT)
    xml = generate_rss(
        issues,
        title=config.FEED_TITLE,
        link=config.SITE_URL,
        description=config.FEED_DESCRIPTION,
    )
    return Response(content=xml, media_type="application/rss+xml")


@router.get("/embed", response_class=HTMLResponse)
async def embed(
    db: Annotated[Database, Depends(get_db)],
    limit: int = Query(default=5, ge=1, le=20),
) -> HTMLResponse:
    """HTML fragment listing the latest issues, for embedding on other sites."""
    issues, _ = db.get_issues_paged(1, limit)
    return HTMLResponse(content=generate_embed(issues, limit=limit, title=config.FEED_TITLE))
