"""
Database row converters - convert SQLite rows to dataclasses.
"""

import sqlite3
from datetime import date, datetime

from .models import DBIssue, DBSubscription


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def row_to_issue(row: sqlite3.Row) -> DBIssue:
    """Convert a database row to a DBIssue."""
    return DBIssue(
        id=row["id"],
        title=row["title"],
        issue_date=date.fromisoformat(row["issue_date"]),
        url=row["url"],
        description=row["description"],
        thumbnail=row["thumbnail"],
        content=row["content"],
        has_details=bool(row["has_details"]),
        last_checked=_parse_datetime(row["last_checked"]),
        created_at=_parse_datetime(row["created_at"]),
    )


def row_to_subscription(row: sqlite3.Row) -> DBSubscription:
    """Convert a database row (optionally joined with settings) to a DBSubscription."""
    # Handle the settings column - absent when not joined
    try:
        enabled = row["newsletter_notifications"]
    except (IndexError, KeyError):
        enabled = None

    return DBSubscription(
        id=row["id"],
        endpoint=row["endpoint"],
        auth=row["auth"],
        p256dh=row["p256dh"],
        created_at=_parse_datetime(row["created_at"]),
        newsletter_notifications=bool(enabled) if enabled is not None else None,
    )
