"""
Error taxonomy for the ingestion pipeline, plus HTTP helpers for common
404 patterns in route handlers.
"""

from typing import TypeVar

from fastapi import HTTPException

T = TypeVar("T")


class ArchiveError(Exception):
    """Base class for newsletter archive errors."""


class NetworkError(ArchiveError):
    """
    Timeout, connection reset, or non-2xx response from upstream.

    `retryable` marks transient failures (timeouts, resets, 429, 5xx)
    that the retry loop may re-attempt.
    """

    def __init__(self, url: str, message: str, status: int | None = None, retryable: bool = False):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.status = status
        self.retryable = retryable


class ChallengeDetected(ArchiveError):
    """Upstream served an anti-bot interstitial instead of content."""

    def __init__(self, url: str):
        super().__init__(f"Bot challenge detected at {url}")
        self.url = url


class EmptyListingError(ArchiveError):
    """The archive listing parsed to zero candidates."""

    def __init__(self, message: str, excerpt: str = ""):
        super().__init__(message)
        self.excerpt = excerpt


class DetailExtractionFailure(ArchiveError):
    """An issue page could not be turned into thumbnail/content."""


class DispatchFailure(ArchiveError):
    """A push endpoint rejected or failed to receive a notification."""

    def __init__(self, endpoint: str, message: str, status: int | None = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status


class IngestionInProgressError(ArchiveError):
    """Another ingestion run holds the run-in-progress flag."""


def require_resource(resource: T | None, detail: str = "Resource not found") -> T:
    """
    Raise 404 if resource is None, otherwise return the resource.

    Usage:
        issue = require_resource(db.get_issue(id), "Issue not found")
    """
    if resource is None:
        raise HTTPException(status_code=404, detail=detail)
    return resource


def require_issue(issue: T | None) -> T:
    """Raise 404 if issue is None."""
    return require_resource(issue, "Issue not found")


def require_subscription(subscription: T | None) -> T:
    """Raise 404 if subscription is None."""
    return require_resource(subscription, "Subscription not found")
