"""Error taxonomy for Community Events."""

from __future__ import annotations


class EventsError(Exception):
    """Base class for every error this package reports."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(EventsError):
    """A write was attempted without a signed-in identity."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class SubmissionRejected(EventsError):
    """The backend refused a new submission; carries its message verbatim."""


class BackendError(EventsError):
    """A query, mutation or auth call failed in the backend."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class InvalidTransition(EventsError):
    """An event status change outside pending -> approved/rejected."""
