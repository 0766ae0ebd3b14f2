"""
Ingestion pipeline - fetch the archive listing, enrich, reconcile, notify.

Runs are single-flow: candidates and their detail pages are processed one
at a time in listing order, since the upstream penalizes rapid or parallel
requests. Only the notification fan-out at the end is concurrent.

Overlapping runs (a manual trigger while a scheduled run is in flight) are
rejected with IngestionInProgressError rather than queued.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from .enricher import DetailEnricher, derive_description
from .exceptions import IngestionInProgressError
from .fetcher import HtmlFetcher, RetryPolicy, fetch_with_retry
from .listing_parser import ListingParser
from .notifier import DispatchSummary, Notifier
from .reconciler import CandidateRecord, Reconciler

if TYPE_CHECKING:
    from .database import Database

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    imported_count: int = 0
    updated_count: int = 0
    candidates: int = 0
    failed_details: int = 0
    awaiting_details: int = 0
    notifications: DispatchSummary | None = None


@dataclass
class RetryResult:
    updated_count: int = 0
    attempted: int = 0


@dataclass
class RunRecord:
    """Outcome of the most recent run of a pipeline entry point."""
    kind: str
    started_at: datetime
    finished_at: datetime | None = None
    status: str = "running"  # running, succeeded, failed
    detail: dict = field(default_factory=dict)
    error: str | None = None


class IngestionPipeline:
    """Wires fetcher, parser, enricher, reconciler and notifier into one run."""

    def __init__(
        self,
        db: "Database",
        fetcher: HtmlFetcher,
        notifier: Notifier | None,
        archive_url: str,
        base_url: str,
        listing_timeout: float = 10,
        issue_timeout: float = 15,
        policy: RetryPolicy | None = None,
        chunk_size: int = 50,
    ):
        self.db = db
        self.fetcher = fetcher
        self.notifier = notifier
        self.archive_url = archive_url
        self.listing_timeout = listing_timeout
        self.policy = policy or RetryPolicy()
        self.parser = ListingParser(base_url)
        self.enricher = DetailEnricher(fetcher, timeout=issue_timeout, policy=self.policy)
        self.reconciler = Reconciler(db, self.enricher, chunk_size=chunk_size)
        self._lock = asyncio.Lock()
        self.last_runs: dict[str, RunRecord] = {}

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_ingestion(self) -> IngestionResult:
        """
        Scrape the archive and store new or changed issues.

        Raises:
            IngestionInProgressError: If another run is active
            EmptyListingError: If the listing yielded no candidates
            NetworkError / ChallengeDetected: If the listing couldn't be fetched
        """
        async with self._guard("ingestion") as record:
            logger.info("Processing newsletter update job...")
            html = await fetch_with_retry(
                self.fetcher, self.archive_url, timeout=self.listing_timeout, policy=self.policy
            )
            stubs = self.parser.parse(html)

            result = IngestionResult(candidates=len(stubs))
            candidates: list[CandidateRecord] = []
            for stub in stubs:
                details = await self.enricher.enrich_issue(stub.url)
                if not details.has_details:
                    result.failed_details += 1
                candidates.append(CandidateRecord(
                    title=stub.title,
                    issue_date=stub.issue_date,
                    url=stub.url,
                    description=derive_description(details.content),
                    thumbnail=details.thumbnail,
                    content=details.content,
                    has_details=details.has_details,
                ))
                logger.debug(f"Processed newsletter: {stub.title}")

            plan = self.reconciler.reconcile(candidates)
            applied = self.reconciler.apply(plan)
            result.imported_count = applied.inserted
            result.updated_count = applied.updated
            result.awaiting_details = applied.awaiting_details
            logger.info(
                f"Scraped {len(candidates)} newsletters: {applied.inserted} new, "
                f"{applied.updated} updated, {result.failed_details} without details, "
                f"{applied.awaiting_details} stored issues still awaiting details"
            )

            if result.imported_count > 0 and self.notifier is not None:
                logger.info(f"Found {result.imported_count} new newsletters, sending notifications...")
                result.notifications = await self.notifier.notify_new_issues(result.imported_count)

            record.detail = {
                "imported_count": result.imported_count,
                "updated_count": result.updated_count,
                "candidates": result.candidates,
                "failed_details": result.failed_details,
                "awaiting_details": result.awaiting_details,
            }
            return result

    async def retry_missing_details(self) -> RetryResult:
        """Backfill details for stored issues that don't have them yet."""
        async with self._guard("retry_details") as record:
            issues = self.db.get_issues_without_details()
            logger.info(f"Retrying details for {len(issues)} newsletters")
            updated = await self.reconciler.retry_missing_details(issues)
            result = RetryResult(updated_count=len(updated), attempted=len(issues))
            record.detail = {"updated_count": result.updated_count, "attempted": result.attempted}
            return result

    def _guard(self, kind: str) -> "_RunGuard":
        if self._lock.locked():
            raise IngestionInProgressError("An ingestion run is already in progress")
        return _RunGuard(self, kind)


class _RunGuard:
    """Holds the pipeline lock for one run and records its outcome."""

    def __init__(self, pipeline: IngestionPipeline, kind: str):
        self.pipeline = pipeline
        self.record = RunRecord(kind=kind, started_at=datetime.now())

    async def __aenter__(self) -> RunRecord:
        await self.pipeline._lock.acquire()
        self.pipeline.last_runs[self.record.kind] = self.record
        return self.record

    async def __aexit__(self, exc_type, exc, tb):
        self.record.finished_at = datetime.now()
        if exc is None:
            self.record.status = "succeeded"
        else:
            self.record.status = "failed"
            self.record.error = str(exc)
            logger.error(f"{self.record.kind} run failed: {exc}")
        self.pipeline._lock.release()
        return False
