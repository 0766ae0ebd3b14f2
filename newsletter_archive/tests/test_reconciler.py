"""
Tests for diffing scraped candidates against storage.
"""

import pytest

from newsletter_archive.enricher import DetailEnricher
from newsletter_archive.reconciler import CandidateRecord, Reconciler, reconcile

from .helpers import FAST_POLICY, FakeFetcher, issue_page, issue_url


def _candidate(issue_id, title="Issue", issue_date="2017-03-21", content=None, thumbnail=None):
    return CandidateRecord(
        title=title,
        issue_date=issue_date,
        url=issue_url(issue_id),
        description=f"{content[:200]}..." if content else None,
        thumbnail=thumbnail,
        content=content,
        has_details=content is not None,
    )


class TestReconcilePlan:
    """Tests for classifying candidates."""

    def test_new_candidates_inserted(self, test_db):
        plan = Reconciler(test_db).reconcile([_candidate(1), _candidate(2)])

        assert [c.url for c in plan.to_insert] == [issue_url(1), issue_url(2)]
        assert plan.to_update == []

    def test_title_change_is_update(self, test_db):
        test_db.insert_issue(title="Old Title", issue_date="2017-03-21", url=issue_url(1))

        plan = Reconciler(test_db).reconcile([_candidate(1, title="New Title")])

        assert [c.title for c in plan.to_update] == ["New Title"]
        assert plan.to_insert == []

    def test_identical_with_details_unchanged(self, test_db):
        test_db.insert_issue(
            title="Issue", issue_date="2017-03-21", url=issue_url(1),
            content="Body", has_details=True,
        )

        plan = Reconciler(test_db).reconcile([_candidate(1, content="Body")])

        assert len(plan.unchanged) == 1
        assert plan.to_update == []

    def test_still_missing_details_flagged(self, test_db):
        test_db.insert_issue(title="Issue", issue_date="2017-03-21", url=issue_url(1))

        plan = Reconciler(test_db).reconcile([_candidate(1)])

        assert len(plan.needs_details) == 1
        assert plan.to_update == []

    def test_new_details_for_bare_row_is_update(self, test_db):
        test_db.insert_issue(title="Issue", issue_date="2017-03-21", url=issue_url(1))

        plan = Reconciler(test_db).reconcile([_candidate(1, content="Finally loaded")])

        assert len(plan.to_update) == 1

    def test_failed_scrape_does_not_count_as_change(self, test_db):
        test_db.insert_issue(
            title="Issue", issue_date="2017-03-21", url=issue_url(1),
            content="Stored body", has_details=True,
        )

        plan = Reconciler(test_db).reconcile([_candidate(1)])

        assert len(plan.unchanged) == 1


class TestApply:
    """Tests for persisting plans."""

    def test_inserts_in_chunks(self, test_db):
        reconciler = Reconciler(test_db, chunk_size=2)
        candidates = [_candidate(n, title=f"Issue {n}") for n in range(5)]

        result = reconciler.apply(reconciler.reconcile(candidates))

        assert result.inserted == 5
        assert result.updated == 0
        assert test_db.count_issues() == 5

    def test_update_overwrites_in_place(self, test_db):
        issue_id = test_db.insert_issue(
            title="Spring Update", issue_date="2017-03-21", url=issue_url(1),
            content="Old body", has_details=True,
        )
        reconciler = Reconciler(test_db)

        result = reconciler.apply(reconciler.reconcile([
            _candidate(1, title="Spring Update (corrected)", content="New body"),
        ]))

        assert result.updated == 1
        assert test_db.count_issues() == 1
        stored = test_db.get_issue(issue_id)
        assert stored.title == "Spring Update (corrected)"
        assert stored.content == "New body"
        assert stored.last_checked is not None

    def test_failed_scrape_keeps_stored_details(self, test_db):
        issue_id = test_db.insert_issue(
            title="Issue", issue_date="2017-03-21", url=issue_url(1),
            content="Stored body", thumbnail="https://archive.test/a.png", has_details=True,
        )
        reconciler = Reconciler(test_db)

        reconciler.apply(reconciler.reconcile([_candidate(1, title="Renamed")]))

        stored = test_db.get_issue(issue_id)
        assert stored.title == "Renamed"
        assert stored.content == "Stored body"
        assert stored.thumbnail == "https://archive.test/a.png"
        assert stored.has_details is True

    def test_conflict_in_chunk_falls_back_to_per_row(self, test_db):
        """A row stored after the diff turns that insert into an overwrite."""
        reconciler = Reconciler(test_db, chunk_size=10)
        plan = reconcile([_candidate(1, title="First"), _candidate(2, title="Second")], {})
        test_db.insert_issue(title="Stale", issue_date="2017-01-01", url=issue_url(2))

        result = reconciler.apply(plan)

        assert result.inserted == 1
        assert result.updated == 1
        assert test_db.count_issues() == 2
        assert test_db.get_issue_by_url(issue_url(2)).title == "Second"

    def test_reapplying_same_candidates_is_idempotent(self, test_db):
        reconciler = Reconciler(test_db)
        candidates = [_candidate(1, content="Body"), _candidate(2, content="Other")]

        first = reconciler.apply(reconciler.reconcile(candidates))
        second = reconciler.apply(reconciler.reconcile(candidates))

        assert first.inserted == 2
        assert second.inserted == 0
        assert second.updated == 0
        assert test_db.count_issues() == 2

    def test_apply_counts_rows_awaiting_details(self, test_db):
        test_db.insert_issue(title="Issue", issue_date="2017-03-21", url=issue_url(1))
        reconciler = Reconciler(test_db)

        result = reconciler.apply(reconciler.reconcile([_candidate(1), _candidate(2)]))

        assert result.inserted == 1
        assert result.updated == 0
        assert result.awaiting_details == 1


class TestRetryMissingDetails:
    """Tests for the backfill sweep."""

    @pytest.mark.asyncio
    async def test_only_successful_retries_written(self, test_db):
        ok_id = test_db.insert_issue(title="Ok", issue_date="2017-03-21", url=issue_url(1))
        broken_id = test_db.insert_issue(title="Broken", issue_date="2017-03-22", url=issue_url(2))
        fetcher = FakeFetcher({issue_url(1): issue_page("Recovered body")})
        reconciler = Reconciler(test_db, enricher=DetailEnricher(fetcher, policy=FAST_POLICY))

        updated = await reconciler.retry_missing_details(test_db.get_issues_without_details())

        assert updated == [ok_id]
        recovered = test_db.get_issue(ok_id)
        assert recovered.has_details is True
        assert recovered.content == "Recovered body"
        assert recovered.description == "Recovered body..."
        broken = test_db.get_issue(broken_id)
        assert broken.has_details is False
        assert broken.last_checked is None

    @pytest.mark.asyncio
    async def test_converges_once_pages_recover(self, test_db):
        test_db.insert_issue(title="Flaky", issue_date="2017-03-21", url=issue_url(1))
        fetcher = FakeFetcher()
        reconciler = Reconciler(test_db, enricher=DetailEnricher(fetcher, policy=FAST_POLICY))

        assert await reconciler.retry_missing_details(test_db.get_issues_without_details()) == []

        fetcher.pages[issue_url(1)] = issue_page("Now available")
        assert len(await reconciler.retry_missing_details(test_db.get_issues_without_details())) == 1
        assert test_db.get_issues_without_details() == []

    @pytest.mark.asyncio
    async def test_requires_enricher(self, test_db):
        with pytest.raises(RuntimeError):
            await Reconciler(test_db).retry_missing_details([])
