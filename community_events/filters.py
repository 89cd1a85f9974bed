"""In-memory filtering of event lists by category, date and free text."""

from __future__ import annotations

from typing import Sequence

from pydantic import BaseModel

from community_events.models import EventItem, as_utc

ALL_CATEGORIES = "All"


class EventFilter(BaseModel):
    category: str = ALL_CATEGORIES
    date: str = ""
    query: str = ""


def matches(event: EventItem, criteria: EventFilter) -> bool:
    """Return True when *event* passes every predicate in *criteria*."""
    if criteria.category != ALL_CATEGORIES and event.category.value != criteria.category:
        return False

    if criteria.date and as_utc(event.start).date().isoformat() != criteria.date:
        return False

    q = criteria.query.strip().lower()
    if q:
        haystacks = (event.title, event.description, event.address)
        if not any(q in text.lower() for text in haystacks):
            return False

    return True


def filter_events(
    events: Sequence[EventItem], criteria: EventFilter | None = None
) -> list[EventItem]:
    """Return the events passing *criteria*, preserving input order."""
    criteria = criteria or EventFilter()
    return [e for e in events if matches(e, criteria)]
