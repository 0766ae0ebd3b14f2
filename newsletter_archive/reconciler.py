"""
Reconciler - Diff freshly scraped candidates against stored issues and persist changes.

Every candidate is classified by URL (the unique key):
- new: URL not stored yet -> insert
- changed: stored, but title/date differ or the scrape produced details the
  stored row lacks (or different ones) -> overwrite in place
- needs_details: stored without details and the scrape didn't fix that ->
  left for the retry sweep
- unchanged: nothing to write

The URL unique constraint is the only concurrency guard. An insert that
collides with a row written by someone else since the diff is turned into
an overwrite, so repeated or overlapping imports stay idempotent.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enricher import DetailEnricher, derive_description

if TYPE_CHECKING:
    from .database import Database, DBIssue

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 50


@dataclass
class CandidateRecord:
    """A scraped issue on its way into storage."""
    title: str
    issue_date: str  # ISO YYYY-MM-DD
    url: str
    description: str | None = None
    thumbnail: str | None = None
    content: str | None = None
    has_details: bool = False

    def scraped_fields(self) -> dict:
        """Fields to write when overwriting a stored row."""
        fields = {"title": self.title, "issue_date": self.issue_date}
        # A failed detail scrape must not wipe details stored earlier
        if self.has_details:
            fields.update(
                description=self.description,
                thumbnail=self.thumbnail,
                content=self.content,
                has_details=True,
            )
        return fields

    def as_row(self) -> dict:
        return {
            "title": self.title,
            "issue_date": self.issue_date,
            "url": self.url,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "content": self.content,
            "has_details": self.has_details,
        }


@dataclass
class ReconcilePlan:
    """Store mutations implied by one scrape."""
    to_insert: list[CandidateRecord] = field(default_factory=list)
    to_update: list[CandidateRecord] = field(default_factory=list)
    needs_details: list[CandidateRecord] = field(default_factory=list)
    unchanged: list[CandidateRecord] = field(default_factory=list)


@dataclass
class ReconcileResult:
    inserted: int = 0
    updated: int = 0
    awaiting_details: int = 0


def _has_changes(candidate: CandidateRecord, existing: "DBIssue") -> bool:
    if candidate.title != existing.title:
        return True
    if candidate.issue_date != existing.issue_date.isoformat():
        return True
    if candidate.has_details:
        if not existing.has_details:
            return True
        return (candidate.content, candidate.thumbnail) != (existing.content, existing.thumbnail)
    return False


def reconcile(
    candidates: list[CandidateRecord],
    existing_by_url: dict[str, "DBIssue"],
) -> ReconcilePlan:
    """Classify candidates against stored issues keyed by URL."""
    plan = ReconcilePlan()
    for candidate in candidates:
        existing = existing_by_url.get(candidate.url)
        if existing is None:
            plan.to_insert.append(candidate)
        elif _has_changes(candidate, existing):
            plan.to_update.append(candidate)
        elif not existing.has_details:
            plan.needs_details.append(candidate)
        else:
            plan.unchanged.append(candidate)
    return plan


class Reconciler:
    """Applies reconcile plans to storage and runs the missing-details sweep."""

    def __init__(
        self,
        db: "Database",
        enricher: DetailEnricher | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.db = db
        self.enricher = enricher
        self.chunk_size = max(1, chunk_size)

    def reconcile(self, candidates: list[CandidateRecord]) -> ReconcilePlan:
        """Diff candidates against everything currently stored."""
        existing_by_url = {issue.url: issue for issue in self.db.get_all_issues()}
        return reconcile(candidates, existing_by_url)

    def apply(self, plan: ReconcilePlan) -> ReconcileResult:
        """
        Persist a plan. Inserts go in fixed-size chunks.

        Returns how many rows were newly inserted, how many were updated and
        how many stored rows are still waiting on the details sweep.
        """
        result = ReconcileResult(awaiting_details=len(plan.needs_details))

        for start in range(0, len(plan.to_insert), self.chunk_size):
            chunk = plan.to_insert[start:start + self.chunk_size]
            try:
                self.db.insert_issues([candidate.as_row() for candidate in chunk])
                result.inserted += len(chunk)
            except sqlite3.IntegrityError:
                # Someone stored one of these URLs since the diff; go row by row
                logger.info("URL conflict in insert chunk, falling back to per-row import")
                for candidate in chunk:
                    if self._import_one(candidate):
                        result.inserted += 1
                    else:
                        result.updated += 1

        for candidate in plan.to_update:
            if self.db.overwrite_issue(candidate.url, candidate.scraped_fields()):
                logger.info(f"Updated existing newsletter: {candidate.title}")
                result.updated += 1

        return result

    def _import_one(self, candidate: CandidateRecord) -> bool:
        """Insert a single candidate, overwriting on URL conflict. Returns True if inserted."""
        try:
            self.db.insert_issue(**candidate.as_row())
            return True
        except sqlite3.IntegrityError:
            self.db.overwrite_issue(candidate.url, candidate.scraped_fields())
            logger.info(f"Updated existing newsletter: {candidate.title}")
            return False

    async def retry_missing_details(self, issues: list["DBIssue"]) -> list[int]:
        """
        Re-enrich issues that lack details, one at a time.

        Only successful retries are written; failures stay untouched for the
        next sweep. Returns the IDs of updated issues.
        """
        if self.enricher is None:
            raise RuntimeError("Reconciler has no enricher configured")

        updated: list[int] = []
        for issue in issues:
            if issue.has_details:
                continue
            details = await self.enricher.enrich_issue(issue.url)
            if not details.has_details:
                logger.debug(f"Details still unavailable for {issue.url}")
                continue

            self.db.update_issue_details(issue.id, {
                "thumbnail": details.thumbnail,
                "content": details.content,
                "description": derive_description(details.content),
                "has_details": True,
            })
            updated.append(issue.id)
            logger.info(f"Backfilled details for newsletter: {issue.title}")

        return updated
