"""
Tests for the enrichment cache: freshness window, email requirement,
case-insensitive name/domain matching and email back-fill lookups.
"""
from datetime import datetime, timedelta

from apollo_service.services.enrichment_cache import (
    find_cached_by_person_id,
    find_cached_emails,
    find_cached_match,
    find_cached_matches,
    months_ago,
)
from apollo_service.services.enrichment_writer import persist_person

from tests.fixtures.apollo_fixtures import make_person


def _store(db, ctx, person, *, age_days=0):
    record = persist_person(db, ctx, person)
    if age_days:
        record.created_at = datetime.utcnow() - timedelta(days=age_days)
        db.commit()
    return record


class TestMonthsAgo:
    def test_same_day_previous_year(self):
        assert months_ago(12, datetime(2025, 6, 15, 10, 30)) == datetime(2024, 6, 15, 10, 30)

    def test_day_is_clamped_to_month_end(self):
        assert months_ago(1, datetime(2025, 3, 31)) == datetime(2025, 2, 28)

    def test_leap_day(self):
        assert months_ago(12, datetime(2024, 2, 29)) == datetime(2023, 2, 28)


class TestCacheByPersonId:
    def test_fresh_record_with_email_is_a_hit(self, db, ctx):
        _store(db, ctx, make_person("p1"), age_days=30)
        hit = find_cached_by_person_id(db, "p1")
        assert hit is not None
        assert hit.email == "ada@acme.com"

    def test_record_older_than_twelve_months_is_a_miss(self, db, ctx):
        _store(db, ctx, make_person("p1"), age_days=400)
        assert find_cached_by_person_id(db, "p1") is None

    def test_record_without_email_is_a_miss(self, db, ctx):
        _store(db, ctx, make_person("p1", email=None))
        assert find_cached_by_person_id(db, "p1") is None

    def test_newest_record_wins(self, db, ctx):
        _store(db, ctx, make_person("p1", email="old@acme.com"), age_days=60)
        _store(db, ctx, make_person("p1", email="new@acme.com"), age_days=1)
        assert find_cached_by_person_id(db, "p1").email == "new@acme.com"


class TestCacheByNameAndDomain:
    def test_match_is_case_insensitive(self, db, ctx):
        _store(db, ctx, make_person("p1", first_name="Ada", last_name="Lovelace", domain="Acme.com"))
        hit = find_cached_match(db, "ADA", "lovelace", "acme.COM")
        assert hit is not None
        assert hit.apollo_person_id == "p1"

    def test_different_domain_is_a_miss(self, db, ctx):
        _store(db, ctx, make_person("p1"))
        assert find_cached_match(db, "Ada", "Lovelace", "other.com") is None

    def test_stale_match_is_a_miss(self, db, ctx):
        _store(db, ctx, make_person("p1"), age_days=370)
        assert find_cached_match(db, "Ada", "Lovelace", "acme.com") is None

    def test_bulk_lookup_keeps_input_order(self, db, ctx):
        _store(db, ctx, make_person("p1", first_name="Ada"))
        _store(db, ctx, make_person("p2", first_name="Grace"))

        hits = find_cached_matches(
            db,
            [
                ("Grace", "Lovelace", "acme.com"),
                ("Nobody", "Here", "acme.com"),
                ("Ada", "Lovelace", "acme.com"),
            ],
        )

        assert [h.apollo_person_id if h else None for h in hits] == ["p2", None, "p1"]


class TestCachedEmails:
    def test_returns_newest_email_per_person(self, db, ctx):
        _store(db, ctx, make_person("p1", email="old@acme.com"), age_days=90)
        _store(db, ctx, make_person("p1", email="new@acme.com"), age_days=2)
        _store(db, ctx, make_person("p2", email=None))

        cache = find_cached_emails(db, ["p1", "p2", "p3"])

        assert cache == {"p1": ("new@acme.com", "verified")}

    def test_empty_input_skips_query(self, db):
        assert find_cached_emails(db, []) == {}
