"""
Database models - dataclasses for database entities.
"""

from dataclasses import dataclass
from datetime import date, datetime


@dataclass
class DBIssue:
    id: int
    title: str
    issue_date: date
    url: str
    description: str | None = None
    thumbnail: str | None = None
    content: str | None = None
    has_details: bool = False
    last_checked: datetime | None = None
    created_at: datetime | None = None


@dataclass
class DBSubscription:
    id: int
    endpoint: str
    auth: str
    p256dh: str
    created_at: datetime | None = None
    # None when the subscription has no settings row
    newsletter_notifications: bool | None = None
