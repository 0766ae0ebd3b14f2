"""
Issue routes: paginated list, search, detail.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..config import get_db
from ..database import Database
from ..exceptions import require_issue
from ..schemas import IssueDetailResponse, PaginatedIssuesResponse

router = APIRouter(prefix="/issues", tags=["issues"])


@router.get("")
async def list_issues(
    db: Annotated[Database, Depends(get_db)],
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> PaginatedIssuesResponse:
    """List archived issues, newest first."""
    issues, total = db.get_issues_paged(page, limit)
    return PaginatedIssuesResponse.from_db(issues, total, page, limit)


@router.get("/search")
async def search_issues(
    db: Annotated[Database, Depends(get_db)],
    q: str = "",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> PaginatedIssuesResponse:
    """Search titles, descriptions and content. An empty query lists everything."""
    query = q.strip()
    if not query:
        issues, total = db.get_issues_paged(page, limit)
    else:
        issues, total = db.search_issues(query, page, limit)
    return PaginatedIssuesResponse.from_db(issues, total, page, limit)


@router.get("/{issue_id}")
async def get_issue(
    issue_id: int,
    db: Annotated[Database, Depends(get_db)],
) -> IssueDetailResponse:
    """Get a single issue with its extracted content."""
    issue = require_issue(db.get_issue(issue_id))
    return IssueDetailResponse.from_db(issue)
