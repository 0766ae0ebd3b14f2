"""
Database facade - provides unified access to all repositories.
"""

from pathlib import Path

from .connection import DatabaseConnection
from .issue_repository import IssueRepository
from .subscription_repository import SubscriptionRepository, POLICY_OPT_OUT
from .models import DBIssue, DBSubscription


class Database:
    """
    Unified database access facade.

    Pipeline and route code talk to this class; the repositories hold the SQL.
    """

    def __init__(self, db_path: Path):
        self._connection = DatabaseConnection(db_path)

        # Initialize repositories
        self.issues = IssueRepository(self._connection)
        self.subscriptions = SubscriptionRepository(self._connection)

    # ─────────────────────────────────────────────────────────────
    # Issue operations (delegated to IssueRepository)
    # ─────────────────────────────────────────────────────────────

    def get_all_issues(self) -> list[DBIssue]:
        return self.issues.get_all()

    def get_issues_without_details(self) -> list[DBIssue]:
        return self.issues.get_without_details()

    def get_issue(self, issue_id: int) -> DBIssue | None:
        return self.issues.get(issue_id)

    def get_issue_by_url(self, url: str) -> DBIssue | None:
        return self.issues.get_by_url(url)

    def get_issues_paged(self, page: int = 1, limit: int = 20) -> tuple[list[DBIssue], int]:
        return self.issues.get_paged(page, limit)

    def search_issues(self, query: str, page: int = 1, limit: int = 20) -> tuple[list[DBIssue], int]:
        return self.issues.search(query, page, limit)

    def insert_issue(
        self,
        title: str,
        issue_date: str,
        url: str,
        description: str | None = None,
        thumbnail: str | None = None,
        content: str | None = None,
        has_details: bool = False,
    ) -> int:
        return self.issues.insert(title, issue_date, url, description, thumbnail, content, has_details)

    def insert_issues(self, rows: list[dict]) -> list[int]:
        return self.issues.insert_many(rows)

    def overwrite_issue(self, url: str, fields: dict) -> bool:
        return self.issues.overwrite_by_url(url, fields)

    def update_issue_details(self, issue_id: int, fields: dict) -> bool:
        return self.issues.update_details(issue_id, fields)

    def count_issues(self) -> int:
        return self.issues.count()

    # ─────────────────────────────────────────────────────────────
    # Subscription operations (delegated to SubscriptionRepository)
    # ─────────────────────────────────────────────────────────────

    def add_subscription(self, endpoint: str, auth: str, p256dh: str) -> int:
        return self.subscriptions.add(endpoint, auth, p256dh)

    def get_subscription(self, subscription_id: int) -> DBSubscription | None:
        return self.subscriptions.get(subscription_id)

    def get_subscriptions(self) -> list[DBSubscription]:
        return self.subscriptions.get_all()

    def get_active_subscriptions(self, policy: str = POLICY_OPT_OUT) -> list[DBSubscription]:
        return self.subscriptions.get_active(policy)

    def set_notifications_enabled(self, subscription_id: int, enabled: bool):
        return self.subscriptions.set_notifications_enabled(subscription_id, enabled)

    def delete_subscription(self, subscription_id: int):
        return self.subscriptions.delete(subscription_id)
