"""
Tests for cursor persistence and the versioned (compare-and-swap) update.
"""
import pytest
from sqlalchemy.orm import sessionmaker

from apollo_service.errors import CursorConflictError
from apollo_service.services import cursor_store

from tests.fixtures.apollo_fixtures import OTHER_SEARCH_FILTERS, SEARCH_FILTERS


def _create(db):
    return cursor_store.create_cursor(
        db,
        org_id="org-1",
        campaign_id="campaign-1",
        app_id="app-1",
        brand_id="brand-1",
        search_params=SEARCH_FILTERS,
    )


class TestCursorStore:
    def test_new_cursor_starts_at_page_one(self, db):
        cursor = _create(db)
        assert cursor.current_page == 1
        assert cursor.total_entries == 0
        assert cursor.exhausted is False
        assert cursor.version == 1
        assert cursor_store.get_cursor(db, "org-1", "campaign-1").id == cursor.id

    def test_cursor_is_scoped_by_org_and_campaign(self, db):
        _create(db)
        assert cursor_store.get_cursor(db, "org-2", "campaign-1") is None
        assert cursor_store.get_cursor(db, "org-1", "campaign-2") is None

    def test_second_cursor_for_same_pair_conflicts(self, db):
        _create(db)
        with pytest.raises(CursorConflictError):
            _create(db)

    def test_advance_bumps_page_and_version(self, db):
        cursor = _create(db)
        cursor_store.advance_cursor(db, cursor, next_page=2, total_entries=75, exhausted=False)

        stored = cursor_store.get_cursor(db, "org-1", "campaign-1")
        assert stored.current_page == 2
        assert stored.total_entries == 75
        assert stored.version == 2

    def test_page_cannot_go_backwards(self, db):
        cursor = _create(db)
        with pytest.raises(ValueError):
            cursor_store.advance_cursor(db, cursor, next_page=1, total_entries=0, exhausted=False)

    def test_reset_returns_to_page_one_and_clears_exhausted(self, db):
        cursor = _create(db)
        cursor_store.advance_cursor(db, cursor, next_page=4, total_entries=60, exhausted=True)

        cursor_store.reset_cursor(db, cursor, OTHER_SEARCH_FILTERS)

        stored = cursor_store.get_cursor(db, "org-1", "campaign-1")
        assert stored.current_page == 1
        assert stored.total_entries == 0
        assert stored.exhausted is False
        assert stored.search_params == OTHER_SEARCH_FILTERS

    def test_stale_read_loses_the_race(self, db, engine):
        """Two readers of version 1: the second writer must not overwrite the first."""
        _create(db)
        other = sessionmaker(bind=engine, expire_on_commit=False)()
        try:
            mine = cursor_store.get_cursor(db, "org-1", "campaign-1")
            theirs = cursor_store.get_cursor(other, "org-1", "campaign-1")

            cursor_store.advance_cursor(other, theirs, next_page=2, total_entries=75, exhausted=False)

            with pytest.raises(CursorConflictError):
                cursor_store.advance_cursor(db, mine, next_page=2, total_entries=75, exhausted=False)
        finally:
            other.close()

        db.expire_all()
        stored = cursor_store.get_cursor(db, "org-1", "campaign-1")
        assert stored.current_page == 2
        assert stored.version == 2
