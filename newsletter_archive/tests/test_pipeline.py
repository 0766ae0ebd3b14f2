"""
End-to-end tests for ingestion runs over canned pages.
"""

import asyncio
import json

import pytest

from newsletter_archive.exceptions import EmptyListingError, IngestionInProgressError, NetworkError

from .helpers import ARCHIVE_URL, FakeFetcher, issue_page, issue_url, listing_page

ENTRIES = [
    ("1", "March 21, 2017 - Spring Update"),
    ("2", "April 3, 2017 - Plant Sale"),
    ("3", "May 5, 2017 - Garden Tour"),
]


def _serve_archive(fetcher: FakeFetcher, entries=ENTRIES, skip=()):
    fetcher.pages[ARCHIVE_URL] = listing_page(entries)
    for issue_id, text in entries:
        if issue_id not in skip:
            fetcher.pages[issue_url(issue_id)] = issue_page(f"Body of {text}")


class TestRunIngestion:
    """Tests for a full scrape-and-store run."""

    @pytest.mark.asyncio
    async def test_imports_all_issues(self, pipeline, fake_fetcher, test_db):
        _serve_archive(fake_fetcher)

        result = await pipeline.run_ingestion()

        assert result.imported_count == 3
        assert result.candidates == 3
        assert result.failed_details == 0
        stored = test_db.get_issue_by_url(issue_url(1))
        assert stored.title == "Spring Update"
        assert stored.issue_date.isoformat() == "2017-03-21"
        assert stored.has_details is True
        assert stored.description == f"{stored.content[:200]}..."

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, pipeline, fake_fetcher, test_db):
        _serve_archive(fake_fetcher)

        first = await pipeline.run_ingestion()
        second = await pipeline.run_ingestion()

        assert first.imported_count == 3
        assert second.imported_count == 0
        assert second.updated_count == 0
        assert test_db.count_issues() == 3

    @pytest.mark.asyncio
    async def test_detail_pages_fetched_in_listing_order(self, pipeline, fake_fetcher):
        _serve_archive(fake_fetcher)

        await pipeline.run_ingestion()

        assert fake_fetcher.requests == [
            ARCHIVE_URL, issue_url(1), issue_url(2), issue_url(3)
        ]

    @pytest.mark.asyncio
    async def test_unreachable_issue_does_not_abort_run(self, pipeline, fake_fetcher, test_db):
        _serve_archive(fake_fetcher, skip={"2"})

        result = await pipeline.run_ingestion()

        assert result.imported_count == 3
        assert result.failed_details == 1
        broken = test_db.get_issue_by_url(issue_url(2))
        assert broken.has_details is False
        assert broken.content is None
        assert test_db.get_issue_by_url(issue_url(3)).has_details is True

    @pytest.mark.asyncio
    async def test_rerun_reports_issues_still_awaiting_details(self, pipeline, fake_fetcher):
        _serve_archive(fake_fetcher, skip={"2"})
        await pipeline.run_ingestion()

        result = await pipeline.run_ingestion()

        assert result.imported_count == 0
        assert result.updated_count == 0
        assert result.awaiting_details == 1
        assert pipeline.last_runs["ingestion"].detail["awaiting_details"] == 1

    @pytest.mark.asyncio
    async def test_changed_title_updates_row(self, pipeline, fake_fetcher, test_db):
        _serve_archive(fake_fetcher)
        await pipeline.run_ingestion()

        _serve_archive(fake_fetcher, entries=[
            ("1", "March 21, 2017 - Spring Update (revised)"),
            *ENTRIES[1:],
        ])
        result = await pipeline.run_ingestion()

        assert result.imported_count == 0
        assert result.updated_count == 1
        assert test_db.count_issues() == 3
        stored = test_db.get_issue_by_url(issue_url(1))
        assert stored.title == "Spring Update (revised)"
        assert stored.last_checked is not None

    @pytest.mark.asyncio
    async def test_empty_listing_raises_and_writes_nothing(self, pipeline, fake_fetcher, test_db):
        fake_fetcher.pages[ARCHIVE_URL] = "<html><body>Maintenance</body></html>"

        with pytest.raises(EmptyListingError):
            await pipeline.run_ingestion()

        assert test_db.count_issues() == 0
        assert pipeline.last_runs["ingestion"].status == "failed"

    @pytest.mark.asyncio
    async def test_listing_fetch_failure_propagates(self, pipeline, fake_fetcher):
        fake_fetcher.pages[ARCHIVE_URL] = NetworkError(ARCHIVE_URL, "HTTP 403", status=403)

        with pytest.raises(NetworkError):
            await pipeline.run_ingestion()

        assert pipeline.is_running is False

    @pytest.mark.asyncio
    async def test_run_record_on_success(self, pipeline, fake_fetcher):
        _serve_archive(fake_fetcher)

        await pipeline.run_ingestion()

        record = pipeline.last_runs["ingestion"]
        assert record.status == "succeeded"
        assert record.detail["imported_count"] == 3
        assert record.finished_at is not None


class TestNotifications:
    """Notifications go out only when a run imports something new."""

    @pytest.mark.asyncio
    async def test_new_issues_notify_subscribers(self, pipeline, fake_fetcher, fake_transport, test_db):
        test_db.add_subscription("https://push.test/a", "auth", "key")
        _serve_archive(fake_fetcher)

        result = await pipeline.run_ingestion()

        assert result.notifications.succeeded == 1
        assert json.loads(fake_transport.sent[0][1])["body"] == "3 new newsletters published!"

    @pytest.mark.asyncio
    async def test_no_new_issues_no_notification(self, pipeline, fake_fetcher, fake_transport, test_db):
        _serve_archive(fake_fetcher)
        await pipeline.run_ingestion()
        test_db.add_subscription("https://push.test/a", "auth", "key")

        result = await pipeline.run_ingestion()

        assert result.notifications is None
        assert fake_transport.sent == []


class TestRetryMissingDetails:
    """Tests for the backfill entry point."""

    @pytest.mark.asyncio
    async def test_backfills_recovered_pages(self, pipeline, fake_fetcher, test_db):
        _serve_archive(fake_fetcher, skip={"2"})
        await pipeline.run_ingestion()

        fake_fetcher.pages[issue_url(2)] = issue_page("Late body")
        result = await pipeline.retry_missing_details()

        assert result.attempted == 1
        assert result.updated_count == 1
        assert test_db.get_issue_by_url(issue_url(2)).content == "Late body"


class _BlockingFetcher(FakeFetcher):
    """Holds the listing request open until released."""

    def __init__(self, pages):
        super().__init__(pages)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch_page(self, url, headers=None, timeout=None):
        if url == ARCHIVE_URL:
            self.started.set()
            await self.release.wait()
        return await super().fetch_page(url, headers, timeout)


class TestOverlap:
    """A second run while one is in flight is rejected."""

    @pytest.mark.asyncio
    async def test_concurrent_run_rejected(self, pipeline):
        fetcher = _BlockingFetcher({})
        _serve_archive(fetcher)
        pipeline.fetcher = fetcher
        pipeline.enricher.fetcher = fetcher

        first = asyncio.create_task(pipeline.run_ingestion())
        await fetcher.started.wait()

        assert pipeline.is_running is True
        with pytest.raises(IngestionInProgressError):
            await pipeline.run_ingestion()
        with pytest.raises(IngestionInProgressError):
            await pipeline.retry_missing_details()

        fetcher.release.set()
        result = await first
        assert result.imported_count == 3
        assert pipeline.is_running is False
