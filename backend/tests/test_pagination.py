"""
Tests for the fetch-next pagination engine and explicit-page search.

Covers cursor creation, resume, reset on filter change, exhaustion, the
doneness rule, billing per search and failure behaviour.
"""
import threading

import pytest

from apollo_service.errors import ApolloAPIError, CursorConflictError, NoCursorError, RunsServiceError
from apollo_service.models.people_enrichment import PeopleEnrichment
from apollo_service.models.people_search import PeopleSearch
from apollo_service.services import cursor_store, pagination
from apollo_service.services.cursor_lock import cursor_lock_key
from apollo_service.services.enrichment_writer import persist_person
from apollo_service.services.pagination import compute_done, fetch_next_page, search_page
from apollo_service.services.runs import SEARCH_CREDIT, TASK_SEARCH, TASK_SEARCH_NEXT

from tests.fixtures.apollo_fixtures import (
    OTHER_SEARCH_FILTERS,
    SEARCH_FILTERS,
    make_page,
    make_person,
)


@pytest.fixture
def fetch(db, ctx, apollo, keys, reporter, lock, caller):
    async def _fetch(search_params=None):
        return await fetch_next_page(
            db,
            ctx,
            search_params,
            apollo=apollo,
            keys=keys,
            reporter=reporter,
            lock=lock,
            caller=caller,
        )

    return _fetch


def _cursor(db):
    db.expire_all()
    return cursor_store.get_cursor(db, "org-1", "campaign-1")


class TestComputeDone:
    def test_empty_page_is_done(self):
        assert compute_done(0, 2, 1000) is True

    def test_more_pages_remaining(self):
        assert compute_done(25, 3, 75) is False

    def test_last_page_reached(self):
        assert compute_done(25, 4, 75) is True

    def test_partial_total_rounds_up(self):
        assert compute_done(25, 2, 26) is False

    def test_hard_page_ceiling(self):
        assert compute_done(25, 501, 1_000_000) is True
        assert compute_done(25, 500, 1_000_000) is False


class TestFetchNextNewCursor:
    async def test_first_call_creates_cursor_and_fetches_page_one(self, db, fetch, apollo_api, runs_service):
        apollo_api.pages[1] = (make_page(1, 25), 75)

        result = await fetch(SEARCH_FILTERS)

        assert len(result["people"]) == 25
        assert result["done"] is False
        assert result["total_entries"] == 75

        call = apollo_api.search_calls[0]
        assert call["page"] == 1
        assert call["per_page"] == 25
        assert call["person_titles"] == ["CTO", "VP Engineering"]

        cursor = _cursor(db)
        assert cursor.current_page == 2
        assert cursor.total_entries == 75
        assert cursor.exhausted is False

    async def test_no_cursor_and_no_filters_is_rejected_without_side_effects(
        self, db, fetch, apollo_api, runs_service, key_service
    ):
        with pytest.raises(NoCursorError):
            await fetch(None)

        assert apollo_api.calls == []
        assert runs_service.calls == []
        assert key_service.requests == []
        assert _cursor(db) is None

    async def test_page_is_persisted_and_billed_once(self, db, fetch, apollo_api, runs_service):
        apollo_api.pages[1] = (make_page(1, 3), 3)

        await fetch(SEARCH_FILTERS)

        searches = db.query(PeopleSearch).all()
        assert len(searches) == 1
        assert searches[0].people_count == 3
        assert searches[0].run_id == "parent-run"

        records = db.query(PeopleEnrichment).all()
        assert len(records) == 3
        assert {r.search_id for r in records} == {searches[0].id}
        assert all(r.enrichment_run_id is None for r in records)

        (run,) = runs_service.runs_for(TASK_SEARCH_NEXT)
        assert run.status == "completed"
        assert run.costs == [{"costName": SEARCH_CREDIT, "quantity": 1}]
        assert run.payload["parentRunId"] == "parent-run"
        assert run.payload["workflowName"] == "outbound"
        assert run.payload["campaignId"] == "campaign-1"


class TestFetchNextResume:
    async def test_equal_filters_resume_from_stored_page(self, db, fetch, apollo_api):
        apollo_api.pages[1] = (make_page(1, 25), 75)
        apollo_api.pages[2] = (make_page(2, 25), 75)

        await fetch(SEARCH_FILTERS)
        reordered = dict(reversed(list(SEARCH_FILTERS.items())))
        result = await fetch(reordered)

        assert [c["page"] for c in apollo_api.search_calls] == [1, 2]
        assert result["people"][0]["id"] == "p2-0"
        assert _cursor(db).current_page == 3

    async def test_omitted_filters_continue_stored_search(self, db, fetch, apollo_api):
        apollo_api.pages[1] = (make_page(1, 25), 75)
        apollo_api.pages[2] = (make_page(2, 25), 75)

        await fetch(SEARCH_FILTERS)
        await fetch(None)

        assert [c["page"] for c in apollo_api.search_calls] == [1, 2]
        assert apollo_api.search_calls[1]["person_titles"] == ["CTO", "VP Engineering"]

    async def test_page_increases_by_one_per_non_empty_call(self, db, fetch, apollo_api):
        for page in range(1, 5):
            apollo_api.pages[page] = (make_page(page, 25), 1000)

        pages = []
        for _ in range(4):
            await fetch(SEARCH_FILTERS)
            pages.append(_cursor(db).current_page)

        assert pages == [2, 3, 4, 5]


class TestFetchNextReset:
    async def test_changed_filters_restart_at_page_one(self, db, fetch, apollo_api):
        apollo_api.pages[1] = (make_page(1, 25), 75)
        apollo_api.pages[2] = (make_page(2, 25), 75)

        await fetch(SEARCH_FILTERS)
        await fetch(SEARCH_FILTERS)
        await fetch(OTHER_SEARCH_FILTERS)

        assert [c["page"] for c in apollo_api.search_calls] == [1, 2, 1]
        assert apollo_api.search_calls[2]["person_titles"] == ["CEO"]
        cursor = _cursor(db)
        assert cursor.search_params == OTHER_SEARCH_FILTERS
        assert cursor.current_page == 2

    async def test_changed_filters_clear_exhaustion(self, db, fetch, apollo_api):
        apollo_api.pages[1] = (make_page(1, 5), 5)

        first = await fetch(SEARCH_FILTERS)
        assert first["done"] is True
        assert _cursor(db).exhausted is True

        result = await fetch(OTHER_SEARCH_FILTERS)

        assert len(apollo_api.search_calls) == 2
        assert len(result["people"]) == 5


class TestFetchNextExhaustion:
    async def test_page_two_of_seventy_five_is_not_done(self, db, fetch, apollo_api):
        apollo_api.pages[1] = (make_page(1, 25), 75)
        apollo_api.pages[2] = (make_page(2, 25), 75)
        await fetch(SEARCH_FILTERS)

        result = await fetch(None)

        assert result["done"] is False
        cursor = _cursor(db)
        assert cursor.current_page == 3
        assert cursor.exhausted is False

    async def test_empty_page_marks_exhausted_and_keeps_total(self, db, fetch, apollo_api, runs_service):
        apollo_api.pages[1] = (make_page(1, 25), 75)
        apollo_api.pages[2] = (make_page(2, 25), 75)
        apollo_api.pages[3] = ([], 0)
        await fetch(SEARCH_FILTERS)
        await fetch(None)

        result = await fetch(None)

        assert result == {"people": [], "done": True, "total_entries": 75}
        cursor = _cursor(db)
        assert cursor.exhausted is True
        assert cursor.total_entries == 75
        # The empty page was still a billable search.
        assert len(runs_service.cost_lines(SEARCH_CREDIT)) == 3

    async def test_exhausted_cursor_short_circuits(self, db, fetch, apollo_api, runs_service):
        apollo_api.pages[1] = (make_page(1, 10), 10)
        await fetch(SEARCH_FILTERS)
        calls_before = len(apollo_api.calls)
        runs_before = len(runs_service.runs)

        for _ in range(3):
            result = await fetch(SEARCH_FILTERS)
            assert result == {"people": [], "done": True, "total_entries": 10}

        assert len(apollo_api.calls) == calls_before
        assert len(runs_service.runs) == runs_before


class TestFetchNextFailures:
    async def test_runs_failure_fails_the_request(self, db, fetch, apollo_api, runs_service):
        apollo_api.pages[1] = (make_page(1, 25), 75)
        runs_service.fail_on.add("costs")

        with pytest.raises(RunsServiceError):
            await fetch(SEARCH_FILTERS)

        # Cursor and audit rows were committed before billing.
        assert _cursor(db).current_page == 2
        assert db.query(PeopleSearch).count() == 1

    async def test_apollo_failure_leaves_cursor_in_place(self, db, fetch, apollo_api, runs_service):
        apollo_api.fail_status = 422

        with pytest.raises(ApolloAPIError) as exc_info:
            await fetch(SEARCH_FILTERS)

        assert exc_info.value.upstream_status == 422
        assert _cursor(db).current_page == 1
        assert runs_service.runs == {}

    async def test_held_lock_rejects_concurrent_fetch(self, fetch, redis_client, apollo_api):
        await redis_client.set(cursor_lock_key("org-1", "campaign-1"), "someone-else", ex=30)

        with pytest.raises(CursorConflictError):
            await fetch(SEARCH_FILTERS)

        assert apollo_api.calls == []

    async def test_lost_cas_still_bills_the_search(self, db, fetch, apollo_api, runs_service, monkeypatch):
        apollo_api.pages[1] = (make_page(1, 25), 75)
        apollo_api.pages[2] = (make_page(2, 25), 75)
        await fetch(SEARCH_FILTERS)

        real_get = cursor_store.get_cursor

        def stale_get(session, org_id, campaign_id):
            cursor = real_get(session, org_id, campaign_id)
            # Simulate a writer that slipped in after our read.
            session.query(type(cursor)).filter_by(id=cursor.id).update(
                {"version": cursor.version + 1}, synchronize_session=False
            )
            session.commit()
            return cursor

        monkeypatch.setattr(cursor_store, "get_cursor", stale_get)

        with pytest.raises(CursorConflictError):
            await fetch(None)

        assert len(runs_service.cost_lines(SEARCH_CREDIT)) == 2
        assert db.query(PeopleSearch).count() == 1


class TestEmailBackfill:
    async def test_missing_email_is_filled_from_cache(self, db, ctx, fetch, apollo_api):
        persist_person(db, ctx, make_person("p1-0", email="cached@acme.com"))
        apollo_api.pages[1] = (make_page(1, 2, with_email=False), 2)

        result = await fetch(SEARCH_FILTERS)

        by_id = {p["id"]: p for p in result["people"]}
        assert by_id["p1-0"]["email"] == "cached@acme.com"
        assert by_id["p1-0"]["email_status"] == "verified"
        assert by_id["p1-1"]["email"] is None


class TestSearchPage:
    async def test_explicit_page_is_recorded_and_billed(self, db, ctx, apollo, keys, reporter, caller, apollo_api, runs_service):
        apollo_api.pages[3] = (make_page(3, 10), 260)

        result = await search_page(
            db,
            ctx,
            SEARCH_FILTERS,
            page=3,
            per_page=10,
            apollo=apollo,
            keys=keys,
            reporter=reporter,
            caller=caller,
        )

        assert result["people_count"] == 10
        assert result["pagination"] == {"page": 3, "per_page": 10, "total_entries": 260, "total_pages": 26}
        assert result["search_id"] == str(db.query(PeopleSearch).one().id)
        assert db.query(PeopleEnrichment).count() == 10

        (run,) = runs_service.runs_for(TASK_SEARCH)
        assert run.costs == [{"costName": SEARCH_CREDIT, "quantity": 1}]
        assert run.status == "completed"
        assert cursor_store.get_cursor(db, "org-1", "campaign-1") is None

    async def test_zero_results_still_bill(self, db, ctx, apollo, keys, reporter, caller, runs_service):
        result = await search_page(
            db,
            ctx,
            SEARCH_FILTERS,
            page=1,
            per_page=25,
            apollo=apollo,
            keys=keys,
            reporter=reporter,
            caller=caller,
        )

        assert result["people"] == []
        assert len(runs_service.cost_lines(SEARCH_CREDIT)) == 1


class TestSessionThreading:
    async def test_session_work_runs_off_the_event_loop(self, fetch, apollo_api, monkeypatch):
        apollo_api.pages[1] = (make_page(1, 2), 2)
        loop_thread = threading.get_ident()
        seen = {}

        real_resolve = pagination._resolve_cursor
        real_record = pagination._record_page

        def resolve(*args, **kwargs):
            seen["resolve"] = threading.get_ident()
            return real_resolve(*args, **kwargs)

        def record(*args, **kwargs):
            seen["record"] = threading.get_ident()
            return real_record(*args, **kwargs)

        monkeypatch.setattr(pagination, "_resolve_cursor", resolve)
        monkeypatch.setattr(pagination, "_record_page", record)

        await fetch(SEARCH_FILTERS)

        assert set(seen) == {"resolve", "record"}
        assert loop_thread not in seen.values()
