"""Load seed events from JSON files into a backend."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from community_events.backends.base import Backend, Query
from community_events.errors import BackendError
from community_events.models import EventStatus, EventSubmission, format_instant

log = logging.getLogger(__name__)

SEED_DIR = Path(__file__).parent.parent / "data" / "seed"


class SeedEvent(EventSubmission):
    status: EventStatus = EventStatus.APPROVED
    organizer_id: str | None = None


def seed_row(event: SeedEvent) -> dict:
    return {
        "title": event.title.strip(),
        "description": event.description.strip(),
        "category": event.category.value,
        "start": format_instant(event.start),
        "end": format_instant(event.end) if event.end else None,
        "address": event.address.strip(),
        "price": event.price.strip(),
        "website": str(event.website) if event.website else None,
        "lat": float(event.lat),
        "lng": float(event.lng),
        "status": event.status.value,
        "organizer_id": event.organizer_id,
    }


async def ingest_events(backend: Backend, seed_dir: Path = SEED_DIR) -> int:
    """Read JSON files from *seed_dir* and insert events not already stored.

    An event counts as already stored when one with the same title and start
    exists. Returns the number of events inserted.
    """
    if not seed_dir.exists():
        return 0

    count = 0
    for json_file in sorted(seed_dir.glob("*.json")):
        with open(json_file, encoding="utf-8") as f:
            data = json.load(f)

        events = data if isinstance(data, list) else [data]

        for raw in events:
            row = seed_row(SeedEvent(**raw))
            existing = await backend.select(
                Query("events").eq("title", row["title"]).eq("start", row["start"]).limit(1)
            )
            if existing:
                continue
            try:
                await backend.insert("events", row)
            except BackendError as exc:
                log.warning("Seed event %r from %s not stored: %s", row["title"], json_file.name, exc.message)
                continue
            count += 1

    log.info("Ingested %d seed event(s) from %s", count, seed_dir)
    return count
