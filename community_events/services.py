"""Event feed, organizer submission and admin moderation services."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from community_events.backends.base import Backend, Query
from community_events.errors import (
    BackendError,
    EventsError,
    SubmissionRejected,
    Unauthenticated,
)
from community_events.mapper import to_event_item, to_event_items
from community_events.models import (
    EventItem,
    EventStatus,
    EventSubmission,
    Identity,
    format_instant,
)

log = logging.getLogger(__name__)

UPCOMING_WINDOW = timedelta(days=7)
APPROVED_LIMIT = 50


@dataclass
class SubmissionResult:
    event: EventItem | None = None
    error: EventsError | None = None


@dataclass
class ListResult:
    items: list[EventItem] = field(default_factory=list)
    error: str | None = None


@dataclass
class MutationResult:
    error: str | None = None


@dataclass
class AdminCheck:
    is_admin: bool
    error: str | None = None


@dataclass
class ModerationSnapshot:
    pending: ListResult
    approved: ListResult


class EventQueryService:
    """Public feed reads and organizer submissions."""

    def __init__(self, backend: Backend, window: timedelta = UPCOMING_WINDOW) -> None:
        self.backend = backend
        self.window = window

    async def fetch_upcoming(self, now: datetime) -> list[EventItem]:
        """Approved events starting within ``[now, now + window]``, earliest first.

        Backend failures are logged and yield an empty list.
        """
        query = (
            Query("events")
            .eq("status", EventStatus.APPROVED.value)
            .gte("start", format_instant(now))
            .lte("start", format_instant(now + self.window))
            .order("start")
        )
        try:
            rows = await self.backend.select(query)
        except BackendError as exc:
            log.error("Error fetching upcoming events: %s", exc.message)
            return []
        events = to_event_items(rows)
        log.info("fetch_upcoming: %d event(s) from %s", len(events), format_instant(now))
        return events

    async def create_submission(
        self, submission: EventSubmission, actor: Identity | None
    ) -> SubmissionResult:
        """Store *submission* as a pending event owned by *actor*."""
        if actor is None:
            return SubmissionResult(error=Unauthenticated())

        row = {
            "title": submission.title.strip(),
            "description": submission.description.strip(),
            "category": submission.category.value,
            "start": format_instant(submission.start),
            "end": format_instant(submission.end) if submission.end else None,
            "address": submission.address.strip(),
            "price": submission.price.strip(),
            "lat": float(submission.lat),
            "lng": float(submission.lng),
            "status": EventStatus.PENDING.value,
            "organizer_id": actor.id,
        }
        if submission.website is not None:
            row["website"] = str(submission.website)

        try:
            stored = await self.backend.insert("events", row)
        except BackendError as exc:
            log.warning("Submission by %s rejected: %s", actor.id, exc.message)
            return SubmissionResult(error=SubmissionRejected(exc.message))

        try:
            event = to_event_item(stored)
        except ValueError as exc:
            return SubmissionResult(error=SubmissionRejected(str(exc)))
        log.info("Event %s submitted by %s, awaiting approval", event.id, actor.id)
        return SubmissionResult(event=event)


class AdminService:
    """Admin checks, moderation queues and status changes."""

    def __init__(self, backend: Backend, approved_limit: int = APPROVED_LIMIT) -> None:
        self.backend = backend
        self.approved_limit = approved_limit

    async def is_admin(self, actor: Identity | None) -> AdminCheck:
        """Fail closed: any lookup problem reads as "not an admin"."""
        if actor is None:
            return AdminCheck(is_admin=False, error="Not authenticated")
        query = Query("admins").eq("user_id", actor.id).limit(1)
        try:
            rows = await self.backend.select(query)
        except BackendError as exc:
            log.warning("Admin lookup for %s failed: %s", actor.id, exc.message)
            return AdminCheck(is_admin=False, error=exc.message)
        return AdminCheck(is_admin=bool(rows and rows[0].get("user_id")))

    async def _list(self, query: Query) -> ListResult:
        try:
            rows = await self.backend.select(query)
        except BackendError as exc:
            log.warning("Listing %s failed: %s", query.filters, exc.message)
            return ListResult(error=exc.message)
        return ListResult(items=to_event_items(rows))

    async def list_pending(self) -> ListResult:
        """All pending submissions, oldest first."""
        return await self._list(
            Query("events").eq("status", EventStatus.PENDING.value).order("created_at")
        )

    async def list_approved(self, limit: int | None = None) -> ListResult:
        """Up to *limit* approved events, earliest start first."""
        return await self._list(
            Query("events")
            .eq("status", EventStatus.APPROVED.value)
            .order("start")
            .limit(self.approved_limit if limit is None else limit)
        )

    async def refresh(self) -> ModerationSnapshot:
        pending, approved = await asyncio.gather(self.list_pending(), self.list_approved())
        return ModerationSnapshot(pending=pending, approved=approved)

    async def _move(self, event_id: str, target: EventStatus) -> MutationResult:
        # Only rows whose status may legally reach target are touched, so
        # repeats, unknown ids and reverts all update nothing.
        query = (
            Query("events")
            .eq("id", event_id)
            .in_("status", [s.value for s in EventStatus.sources_for(target)])
        )
        try:
            await self.backend.update(query, {"status": target.value})
        except BackendError as exc:
            log.warning("Setting event %s to %s failed: %s", event_id, target.value, exc.message)
            return MutationResult(error=exc.message)
        log.info("Event %s -> %s", event_id, target.value)
        return MutationResult()

    async def approve(self, event_id: str) -> MutationResult:
        return await self._move(event_id, EventStatus.APPROVED)

    async def reject(self, event_id: str) -> MutationResult:
        return await self._move(event_id, EventStatus.REJECTED)

    async def delete(self, event_id: str) -> MutationResult:
        """Remove the event permanently, whatever its status."""
        try:
            await self.backend.delete(Query("events").eq("id", event_id))
        except BackendError as exc:
            log.warning("Deleting event %s failed: %s", event_id, exc.message)
            return MutationResult(error=exc.message)
        log.info("Event %s deleted", event_id)
        return MutationResult()
