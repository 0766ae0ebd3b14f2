"""
Pytest fixtures for archive tests.
"""

import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from newsletter_archive.config import state
from newsletter_archive.database import Database
from newsletter_archive.notifier import Notifier
from newsletter_archive.pipeline import IngestionPipeline
from newsletter_archive.rate_limit import limiter
from newsletter_archive.server import app

from .helpers import ARCHIVE_URL, BASE_URL, FAST_POLICY, FakeFetcher, FakeTransport, issue_url


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        yield Path(f.name)
    # Cleanup
    if os.path.exists(f.name):
        os.unlink(f.name)


@pytest.fixture
def test_db(temp_db_path):
    """Create a test database instance."""
    db = Database(temp_db_path)
    yield db


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def pipeline(test_db, fake_fetcher, fake_transport):
    """Pipeline over the test database, canned pages, and a recording push transport."""
    return IngestionPipeline(
        db=test_db,
        fetcher=fake_fetcher,
        notifier=Notifier(test_db, fake_transport),
        archive_url=ARCHIVE_URL,
        base_url=BASE_URL,
        policy=FAST_POLICY,
    )


@pytest.fixture
def client(test_db, pipeline):
    """Create a test client with isolated database and pipeline."""
    # Store original state
    original_db = state.db
    original_fetcher = state.fetcher
    original_notifier = state.notifier
    original_pipeline = state.pipeline
    original_job_queue = state.job_queue
    original_scheduler = state.scheduler

    # Set up test state with fresh instances
    state.db = test_db
    state.fetcher = pipeline.fetcher
    state.notifier = pipeline.notifier
    state.pipeline = pipeline
    state.job_queue = None
    state.scheduler = None
    limiter.reset()

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    # Restore original state
    state.db = original_db
    state.fetcher = original_fetcher
    state.notifier = original_notifier
    state.pipeline = original_pipeline
    state.job_queue = original_job_queue
    state.scheduler = original_scheduler


@pytest.fixture
def client_with_data(client, test_db):
    """Test client with some sample issues pre-populated."""
    ids = [
        test_db.insert_issue(
            title="Spring Update",
            issue_date="2017-03-21",
            url=issue_url(1),
            content="Gardens are blooming and the plant sale is coming up.",
            description="Gardens are blooming...",
            thumbnail=f"{BASE_URL}/images/photo1.png",
            has_details=True,
        ),
        test_db.insert_issue(
            title="Summer Picnic",
            issue_date="2017-06-02",
            url=issue_url(2),
            content="Join us for the annual picnic in the park.",
            description="Join us for the annual picnic...",
            has_details=True,
        ),
        test_db.insert_issue(
            title="Winter Recap",
            issue_date="2016-12-15",
            url=issue_url(3),
        ),
    ]
    return client, {"issue_ids": ids}
