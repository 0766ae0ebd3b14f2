"""
Database module - SQLite storage for newsletter issues and push subscriptions.

Uses repository pattern for better separation of concerns.
"""

from .connection import DatabaseConnection
from .models import DBIssue, DBSubscription
from .issue_repository import IssueRepository
from .subscription_repository import SubscriptionRepository, POLICY_OPT_IN, POLICY_OPT_OUT
from .database import Database

__all__ = [
    "Database",
    "DatabaseConnection",
    "DBIssue",
    "DBSubscription",
    "IssueRepository",
    "SubscriptionRepository",
    "POLICY_OPT_IN",
    "POLICY_OPT_OUT",
]
