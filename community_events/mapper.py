"""Turn raw backend rows into EventItem records."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from community_events.models import EventItem

log = logging.getLogger(__name__)


def to_event_item(row: Mapping[str, Any]) -> EventItem:
    """Map one row, coercing ``lat``/``lng`` to float.

    Raises ``ValueError`` when a required field is missing or a coordinate is
    not a finite number.
    """
    try:
        return EventItem.model_validate(dict(row))
    except ValidationError as exc:
        raise ValueError(f"Unusable event row {row.get('id')!r}: {exc}") from exc


def to_event_items(rows: Iterable[Mapping[str, Any]]) -> list[EventItem]:
    """Map rows in order, dropping any that cannot become an EventItem."""
    items: list[EventItem] = []
    for row in rows:
        try:
            items.append(to_event_item(row))
        except ValueError as exc:
            log.warning("Skipping event row: %s", exc)
    return items
