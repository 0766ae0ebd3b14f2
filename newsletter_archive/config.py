"""
Configuration and application state management.
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from fastapi import HTTPException

if TYPE_CHECKING:
    from .database import Database
    from .fetcher import HtmlFetcher
    from .jobs import JobQueue
    from .notifier import Notifier
    from .pipeline import IngestionPipeline
    from .scheduler import IngestionScheduler

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration from environment."""
    DB_PATH: Path = Path(os.getenv("DB_PATH", "./data/newsletters.db"))
    PORT: int = int(os.getenv("PORT", "5005"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Upstream archive
    ARCHIVE_URL: str = os.getenv(
        "ARCHIVE_URL", "https://app.robly.com/public/archives?a=b31b32385b5904b5"
    )
    ARCHIVE_BASE_URL: str = os.getenv("ARCHIVE_BASE_URL", "https://app.robly.com")
    LISTING_TIMEOUT: float = float(os.getenv("LISTING_TIMEOUT", "10"))  # seconds
    ISSUE_TIMEOUT: float = float(os.getenv("ISSUE_TIMEOUT", "15"))  # seconds

    # Anti-bot / retry policy
    CHALLENGE_MARKER: str = os.getenv(
        "CHALLENGE_MARKER", "AwsWafIntegration.checkForceRefresh"
    )
    CHALLENGE_RETRY_DELAY: float = float(os.getenv("CHALLENGE_RETRY_DELAY", "1.0"))
    FETCH_MAX_ATTEMPTS: int = int(os.getenv("FETCH_MAX_ATTEMPTS", "3"))
    FETCH_BACKOFF_BASE: float = float(os.getenv("FETCH_BACKOFF_BASE", "1.0"))
    FETCH_BACKOFF_CAP: float = float(os.getenv("FETCH_BACKOFF_CAP", "1.0"))

    # Storage
    INSERT_CHUNK_SIZE: int = int(os.getenv("INSERT_CHUNK_SIZE", "50"))

    # Scheduling
    ENABLE_SCHEDULER: bool = _parse_bool(os.getenv("ENABLE_SCHEDULER"), default=True)
    INGEST_INTERVAL_HOURS: float = float(os.getenv("INGEST_INTERVAL_HOURS", "6"))

    # Web Push (VAPID keys are provisioned externally)
    VAPID_PUBLIC_KEY: str = os.getenv("VAPID_PUBLIC_KEY", "")
    VAPID_PRIVATE_KEY: str = os.getenv("VAPID_PRIVATE_KEY", "")
    VAPID_SUBJECT: str = os.getenv("VAPID_SUBJECT", "mailto:admin@example.com")
    NOTIFICATION_ICON: str = os.getenv("NOTIFICATION_ICON", "/icon.png")

    # "opt_out": subscriptions without a settings row receive pushes
    # "opt_in": only subscriptions with an enabled settings row receive pushes
    ACTIVE_SUBSCRIPTION_POLICY: str = os.getenv("ACTIVE_SUBSCRIPTION_POLICY", "opt_out")

    # Security
    AUTH_API_KEY: str = os.getenv("AUTH_API_KEY", "")
    RATE_LIMIT_PER_MINUTE: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))
    INGEST_RATE_LIMIT_PER_MINUTE: int = int(os.getenv("INGEST_RATE_LIMIT_PER_MINUTE", "5"))

    # Public feed metadata
    SITE_URL: str = os.getenv("SITE_URL", "http://localhost:5005")
    FEED_TITLE: str = os.getenv("FEED_TITLE", "Newsletter Archive")
    FEED_DESCRIPTION: str = os.getenv(
        "FEED_DESCRIPTION", "Archived newsletter issues"
    )

    @classmethod
    def has_vapid_keys(cls) -> bool:
        """Check if Web Push can be signed."""
        return bool(cls.VAPID_PUBLIC_KEY and cls.VAPID_PRIVATE_KEY)


config = Config()


class AppState:
    """Shared application state."""
    db: "Database | None" = None
    fetcher: "HtmlFetcher | None" = None
    notifier: "Notifier | None" = None
    pipeline: "IngestionPipeline | None" = None
    job_queue: "JobQueue | None" = None
    scheduler: "IngestionScheduler | None" = None


state = AppState()


def get_db() -> "Database":
    """Dependency to get database instance."""
    if not state.db:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return state.db


def get_pipeline() -> "IngestionPipeline":
    """Dependency to get the ingestion pipeline."""
    if not state.pipeline:
        raise HTTPException(status_code=500, detail="Ingestion pipeline not initialized")
    return state.pipeline
