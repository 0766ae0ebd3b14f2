"""
Tests for manual ingestion triggers.
"""

from unittest.mock import AsyncMock

from newsletter_archive.config import config, state
from newsletter_archive.exceptions import IngestionInProgressError

from .helpers import ARCHIVE_URL, issue_page, issue_url, listing_page


def _serve_archive(fake_fetcher):
    fake_fetcher.pages[ARCHIVE_URL] = listing_page([
        ("1", "March 21, 2017 - Spring Update"),
        ("2", "April 3, 2017 - Plant Sale"),
    ])
    fake_fetcher.pages[issue_url(1)] = issue_page("Spring body")


class TestRunIngestion:
    """Tests for POST /ingest."""

    def test_imports_issues(self, client, fake_fetcher):
        _serve_archive(fake_fetcher)

        response = client.post("/ingest")

        assert response.status_code == 200
        data = response.json()
        assert data["imported_count"] == 2
        assert data["candidates"] == 2
        assert data["failed_details"] == 1
        assert client.get("/issues").json()["total"] == 2

    def test_second_trigger_imports_nothing(self, client, fake_fetcher):
        _serve_archive(fake_fetcher)

        client.post("/ingest")
        data = client.post("/ingest").json()

        assert data["imported_count"] == 0
        assert data["updated_count"] == 0

    def test_unreachable_archive_is_bad_gateway(self, client):
        response = client.post("/ingest")
        assert response.status_code == 502
        assert "Archive unavailable" in response.json()["detail"]

    def test_empty_listing_is_bad_gateway(self, client, fake_fetcher):
        fake_fetcher.pages[ARCHIVE_URL] = "<html><body>Nothing here</body></html>"

        response = client.post("/ingest")

        assert response.status_code == 502

    def test_overlapping_run_is_conflict(self, client, pipeline, monkeypatch):
        monkeypatch.setattr(
            pipeline, "run_ingestion",
            AsyncMock(side_effect=IngestionInProgressError("already running")),
        )

        response = client.post("/ingest")

        assert response.status_code == 409

    def test_rate_limited(self, client, fake_fetcher, monkeypatch):
        monkeypatch.setattr(config, "INGEST_RATE_LIMIT_PER_MINUTE", 1)
        _serve_archive(fake_fetcher)

        assert client.post("/ingest").status_code == 200
        response = client.post("/ingest")

        assert response.status_code == 429
        assert "Retry-After" in response.headers


class TestRetryDetails:
    """Tests for POST /ingest/retry-details."""

    def test_backfills_missing_details(self, client, fake_fetcher):
        _serve_archive(fake_fetcher)
        client.post("/ingest")
        fake_fetcher.pages[issue_url(2)] = issue_page("Plant sale body")

        response = client.post("/ingest/retry-details")

        assert response.status_code == 200
        assert response.json() == {"updated_count": 1, "attempted": 1}


class TestEnqueue:
    """Tests for POST /ingest/enqueue."""

    def test_without_job_queue(self, client):
        assert client.post("/ingest/enqueue").status_code == 503

    def test_enqueues_both_jobs(self, client, monkeypatch):
        queue = AsyncMock()
        queue.enqueue.side_effect = [AsyncMock(id=1), AsyncMock(id=2)]
        monkeypatch.setattr(state, "job_queue", queue)

        response = client.post("/ingest/enqueue")

        assert response.status_code == 202
        assert response.json() == {"success": True, "job_ids": [1, 2]}
        assert [c.args[0] for c in queue.enqueue.call_args_list] == ["ingest", "retry_details"]
