"""
Pydantic models for API request/response validation.
"""

from pydantic import BaseModel, Field

from .database import DBIssue, DBSubscription
from .pipeline import IngestionResult, RetryResult, RunRecord


# ─────────────────────────────────────────────────────────────
# Issue Schemas
# ─────────────────────────────────────────────────────────────

class IssueResponse(BaseModel):
    """Issue for list view."""
    id: int
    title: str
    date: str
    url: str
    description: str | None
    thumbnail: str | None
    has_details: bool

    @classmethod
    def from_db(cls, issue: DBIssue) -> "IssueResponse":
        return cls(
            id=issue.id,
            title=issue.title,
            date=issue.issue_date.isoformat(),
            url=issue.url,
            description=issue.description,
            thumbnail=issue.thumbnail,
            has_details=issue.has_details,
        )


class IssueDetailResponse(IssueResponse):
    """Issue with full extracted text."""
    content: str | None
    last_checked: str | None

    @classmethod
    def from_db(cls, issue: DBIssue) -> "IssueDetailResponse":
        return cls(
            id=issue.id,
            title=issue.title,
            date=issue.issue_date.isoformat(),
            url=issue.url,
            description=issue.description,
            thumbnail=issue.thumbnail,
            has_details=issue.has_details,
            content=issue.content,
            last_checked=issue.last_checked.isoformat() if issue.last_checked else None,
        )


class PaginatedIssuesResponse(BaseModel):
    """A page of issues plus the total match count."""
    items: list[IssueResponse]
    total: int
    page: int
    limit: int

    @classmethod
    def from_db(cls, issues: list[DBIssue], total: int, page: int, limit: int) -> "PaginatedIssuesResponse":
        return cls(
            items=[IssueResponse.from_db(i) for i in issues],
            total=total,
            page=page,
            limit=limit,
        )


# ─────────────────────────────────────────────────────────────
# Subscription Schemas
# ─────────────────────────────────────────────────────────────

class SubscriptionKeys(BaseModel):
    auth: str = Field(min_length=1)
    p256dh: str = Field(min_length=1)


class SubscribeRequest(BaseModel):
    """Browser PushSubscription JSON as produced by PushSubscription.toJSON()."""
    endpoint: str = Field(min_length=1)
    keys: SubscriptionKeys


class SubscriptionResponse(BaseModel):
    id: int
    endpoint: str
    newsletter_notifications: bool
    welcome_sent: bool | None = None

    @classmethod
    def from_db(cls, subscription: DBSubscription, welcome_sent: bool | None = None) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            endpoint=subscription.endpoint,
            newsletter_notifications=subscription.newsletter_notifications is not False,
            welcome_sent=welcome_sent,
        )


class NotificationSettingsRequest(BaseModel):
    newsletter_notifications: bool


# ─────────────────────────────────────────────────────────────
# Ingestion Schemas
# ─────────────────────────────────────────────────────────────

class IngestionResponse(BaseModel):
    imported_count: int
    updated_count: int
    candidates: int
    failed_details: int
    awaiting_details: int = 0
    notifications_succeeded: int | None = None
    notifications_failed: int | None = None

    @classmethod
    def from_result(cls, result: IngestionResult) -> "IngestionResponse":
        return cls(
            imported_count=result.imported_count,
            updated_count=result.updated_count,
            candidates=result.candidates,
            failed_details=result.failed_details,
            awaiting_details=result.awaiting_details,
            notifications_succeeded=result.notifications.succeeded if result.notifications else None,
            notifications_failed=result.notifications.failed if result.notifications else None,
        )


class RetryDetailsResponse(BaseModel):
    updated_count: int
    attempted: int

    @classmethod
    def from_result(cls, result: RetryResult) -> "RetryDetailsResponse":
        return cls(updated_count=result.updated_count, attempted=result.attempted)


class RunRecordResponse(BaseModel):
    kind: str
    status: str
    started_at: str
    finished_at: str | None
    error: str | None
    detail: dict

    @classmethod
    def from_record(cls, record: RunRecord) -> "RunRecordResponse":
        return cls(
            kind=record.kind,
            status=record.status,
            started_at=record.started_at.isoformat(),
            finished_at=record.finished_at.isoformat() if record.finished_at else None,
            error=record.error,
            detail=record.detail,
        )
