"""
Newsletter Archive API Server

FastAPI application providing endpoints for:
- Issue listing and search
- RSS feed and embeddable HTML
- Push subscription management
- Manual ingestion triggers

On startup it also runs the background job queue and the periodic
ingestion scheduler.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .config import config, state
from .database import Database
from .exceptions import (
    ChallengeDetected,
    EmptyListingError,
    IngestionInProgressError,
    NetworkError,
)
from .fetcher import HtmlFetcher, RetryPolicy
from .jobs import JobQueue
from .notifier import Notifier, WebPushTransport
from .pipeline import IngestionPipeline
from .rate_limit import setup_rate_limiting
from .scheduler import INGEST_JOB, RETRY_DETAILS_JOB, IngestionScheduler
from .routes import (
    issues_router,
    feeds_router,
    subscriptions_router,
    ingestion_router,
    misc_router,
)

logger = logging.getLogger(__name__)


def build_pipeline(db: Database, fetcher: HtmlFetcher, notifier: Notifier | None) -> IngestionPipeline:
    """Assemble the ingestion pipeline from configuration."""
    policy = RetryPolicy(
        max_attempts=config.FETCH_MAX_ATTEMPTS,
        base_delay=config.FETCH_BACKOFF_BASE,
        max_delay=config.FETCH_BACKOFF_CAP,
        challenge_delay=config.CHALLENGE_RETRY_DELAY,
    )
    return IngestionPipeline(
        db=db,
        fetcher=fetcher,
        notifier=notifier,
        archive_url=config.ARCHIVE_URL,
        base_url=config.ARCHIVE_BASE_URL,
        listing_timeout=config.LISTING_TIMEOUT,
        issue_timeout=config.ISSUE_TIMEOUT,
        policy=policy,
        chunk_size=config.INSERT_CHUNK_SIZE,
    )


def build_job_queue(pipeline: IngestionPipeline) -> JobQueue:
    """Job queue with the pipeline entry points registered as handlers."""
    queue = JobQueue()

    async def ingest(_payload: dict) -> dict:
        result = await pipeline.run_ingestion()
        return {"imported_count": result.imported_count}

    async def retry_details(_payload: dict) -> dict:
        result = await pipeline.retry_missing_details()
        return {"updated_count": result.updated_count}

    # Run-level failures wait for the next scheduled trigger
    queue.register(
        INGEST_JOB,
        ingest,
        no_retry=(IngestionInProgressError, EmptyListingError, NetworkError, ChallengeDetected),
    )
    queue.register(RETRY_DETAILS_JOB, retry_details, no_retry=(IngestionInProgressError,))
    return queue


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup application resources."""
    # Startup - skip if already initialized (e.g., by tests)
    if state.db is None:
        logging.basicConfig(
            level=config.LOG_LEVEL.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        state.db = Database(config.DB_PATH)
        state.fetcher = HtmlFetcher(
            timeout=config.ISSUE_TIMEOUT,
            challenge_marker=config.CHALLENGE_MARKER,
        )

        transport = None
        if config.has_vapid_keys():
            transport = WebPushTransport(config.VAPID_PRIVATE_KEY, config.VAPID_SUBJECT)
        else:
            logger.warning(
                "VAPID keys not configured. Set VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY. "
                "Push notifications disabled."
            )
        state.notifier = Notifier(
            state.db,
            transport,
            icon=config.NOTIFICATION_ICON,
            policy=config.ACTIVE_SUBSCRIPTION_POLICY,
        )
        state.pipeline = build_pipeline(state.db, state.fetcher, state.notifier)
        state.job_queue = build_job_queue(state.pipeline)
        await state.job_queue.start()

        if config.ENABLE_SCHEDULER:
            state.scheduler = IngestionScheduler(
                state.job_queue, interval_hours=config.INGEST_INTERVAL_HOURS
            )
            await state.scheduler.start()

    yield

    # Shutdown
    if state.scheduler:
        await state.scheduler.stop()
    if state.job_queue:
        await state.job_queue.stop()


app = FastAPI(
    title="Newsletter Archive API",
    version=__version__,
    lifespan=lifespan
)

setup_rate_limiting(app)

# Include routers
app.include_router(misc_router)
app.include_router(issues_router)
app.include_router(feeds_router)
app.include_router(subscriptions_router)
app.include_router(ingestion_router)
