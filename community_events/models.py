"""Shared Pydantic models for Community Events."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, FiniteFloat, HttpUrl, field_validator

from community_events.errors import InvalidTransition


class EventCategory(str, Enum):
    FOOD = "Food"
    MUSIC = "Music"
    ARTS = "Arts"
    SPORTS = "Sports"
    FAMILY = "Family"


class EventStatus(str, Enum):
    """Moderation state of a persisted event.

    ``pending`` is the only entry state. ``approved`` and ``rejected`` are
    terminal and reachable from ``pending`` alone; removal is a delete, not a
    status.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def sources_for(cls, target: EventStatus) -> tuple[EventStatus, ...]:
        """Return every status that may legally move to *target*."""
        return tuple(s for s in cls if target in _TRANSITIONS[s])

    @classmethod
    def can_transition(cls, current: EventStatus, target: EventStatus) -> bool:
        return cls(target) in _TRANSITIONS[cls(current)]

    @classmethod
    def transition(cls, current: EventStatus, target: EventStatus) -> EventStatus:
        """Return *target* if the move is legal, else raise InvalidTransition."""
        current, target = cls(current), cls(target)
        if not cls.can_transition(current, target):
            raise InvalidTransition(
                f"cannot move event from {current.value!r} to {target.value!r}"
            )
        return target


_TRANSITIONS: dict[EventStatus, frozenset[EventStatus]] = {
    EventStatus.PENDING: frozenset({EventStatus.APPROVED, EventStatus.REJECTED}),
    EventStatus.APPROVED: frozenset(),
    EventStatus.REJECTED: frozenset(),
}


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_instant(value: datetime) -> str:
    """Render *value* as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Every stored instant and every range predicate goes through this, so
    string order equals time order in the backend.
    """
    value = as_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class EventItem(BaseModel):
    """Public event record shared by the services, API and map view."""

    id: str
    title: str
    description: str
    category: EventCategory
    start: datetime = Field(validation_alias=AliasChoices("start", "start_time"))
    end: datetime | None = Field(
        default=None, validation_alias=AliasChoices("end", "end_time")
    )
    address: str
    price: str
    website: str = Field(default="", validation_alias=AliasChoices("website", "url"))
    lat: FiniteFloat
    lng: FiniteFloat

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v: object) -> object:
        # Some stores hand back integer or UUID keys.
        return v if isinstance(v, str) or v is None else str(v)

    @field_validator("website", mode="before")
    @classmethod
    def _website_default(cls, v: object) -> object:
        return "" if v is None else v

    @field_validator("start", "end")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None


class EventSubmission(BaseModel):
    """Organizer input for a new event, validated before any backend call."""

    title: str = Field(min_length=3)
    description: str = Field(min_length=10)
    category: EventCategory
    start: datetime
    end: datetime | None = None
    address: str = Field(min_length=3)
    price: str = Field(default="Free", min_length=1)
    website: HttpUrl | None = None
    lat: FiniteFloat = Field(ge=-90, le=90)
    lng: FiniteFloat = Field(ge=-180, le=180)

    @field_validator("website", mode="before")
    @classmethod
    def _blank_website(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Identity(BaseModel):
    id: str
    email: str | None = None


class Session(BaseModel):
    access_token: str
    user: Identity
