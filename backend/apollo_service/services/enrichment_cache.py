# backend/apollo_service/services/enrichment_cache.py
from __future__ import annotations

import calendar
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..models.people_enrichment import PeopleEnrichment


def months_ago(months: int, now: datetime | None = None) -> datetime:
    """Same wall-clock time `months` calendar months back, day clamped to month end."""
    now = now or datetime.utcnow()
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def cache_cutoff(now: datetime | None = None) -> datetime:
    return months_ago(get_settings().ENRICHMENT_CACHE_MONTHS, now)


def _fresh_with_email(db: Session, now: datetime | None):
    return db.query(PeopleEnrichment).filter(
        PeopleEnrichment.email.isnot(None),
        PeopleEnrichment.created_at > cache_cutoff(now),
    )


def find_cached_by_person_id(
    db: Session,
    apollo_person_id: str,
    now: datetime | None = None,
) -> Optional[PeopleEnrichment]:
    """Newest fresh record with an email for this Apollo person, or None."""
    return (
        _fresh_with_email(db, now)
        .filter(PeopleEnrichment.apollo_person_id == apollo_person_id)
        .order_by(PeopleEnrichment.created_at.desc())
        .first()
    )


def find_cached_match(
    db: Session,
    first_name: str,
    last_name: str,
    organization_domain: str,
    now: datetime | None = None,
) -> Optional[PeopleEnrichment]:
    """Newest fresh record with an email for name + domain, case-insensitive."""
    return (
        _fresh_with_email(db, now)
        .filter(
            func.lower(PeopleEnrichment.first_name) == first_name.lower(),
            func.lower(PeopleEnrichment.last_name) == last_name.lower(),
            func.lower(PeopleEnrichment.organization_domain) == organization_domain.lower(),
        )
        .order_by(PeopleEnrichment.created_at.desc())
        .first()
    )


def find_cached_matches(
    db: Session,
    items: Sequence[Tuple[str, str, str]],
    now: datetime | None = None,
) -> List[Optional[PeopleEnrichment]]:
    """One independent lookup per (first, last, domain) item, in input order."""
    return [find_cached_match(db, first, last, domain, now) for first, last, domain in items]


def find_cached_emails(
    db: Session,
    apollo_person_ids: Iterable[str],
    now: datetime | None = None,
) -> Dict[str, Tuple[str, Optional[str]]]:
    """
    apollo_person_id -> (email, email_status) from the newest fresh record.

    Used to back-fill search results Apollo returned without an email.
    """
    ids = [pid for pid in set(apollo_person_ids) if pid]
    if not ids:
        return {}

    rows = (
        _fresh_with_email(db, now)
        .filter(PeopleEnrichment.apollo_person_id.in_(ids))
        .order_by(PeopleEnrichment.created_at.asc())
        .all()
    )

    # Ascending order: later rows overwrite earlier ones, newest wins.
    cache: Dict[str, Tuple[str, Optional[str]]] = {}
    for row in rows:
        cache[row.apollo_person_id] = (row.email, row.email_status)
    return cache
