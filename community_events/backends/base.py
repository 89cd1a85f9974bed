"""Abstract backend client: table queries, row writes, and sign-in sessions."""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from community_events.errors import BackendError
from community_events.models import Identity, Session

if TYPE_CHECKING:
    from community_events.settings import Settings

log = logging.getLogger(__name__)

Row = dict[str, Any]
AuthListener = Callable[[str, "Session | None"], None]

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

_OPERATORS = ("eq", "gte", "lte", "in")


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any

    def matches(self, row: Row) -> bool:
        actual = row.get(self.column)
        if self.op == "eq":
            return actual == self.value
        if self.op == "in":
            return actual in self.value
        if actual is None:
            return False
        if self.op == "gte":
            return actual >= self.value
        if self.op == "lte":
            return actual <= self.value
        raise ValueError(f"Unknown filter operator: {self.op!r}")


@dataclass
class Query:
    """Chainable description of a table read or a targeted write.

    >>> Query("events").eq("status", "approved").order("start").limit(10)
    """

    table: str
    filters: list[Filter] = field(default_factory=list)
    order_by: tuple[str, bool] | None = None
    row_limit: int | None = None

    def _add(self, column: str, op: str, value: Any) -> Query:
        if op not in _OPERATORS:
            raise ValueError(f"Unknown filter operator: {op!r}")
        self.filters.append(Filter(column, op, value))
        return self

    def eq(self, column: str, value: Any) -> Query:
        return self._add(column, "eq", value)

    def gte(self, column: str, value: Any) -> Query:
        return self._add(column, "gte", value)

    def lte(self, column: str, value: Any) -> Query:
        return self._add(column, "lte", value)

    def in_(self, column: str, values: Any) -> Query:
        return self._add(column, "in", tuple(values))

    def order(self, column: str, ascending: bool = True) -> Query:
        self.order_by = (column, ascending)
        return self

    def limit(self, n: int) -> Query:
        self.row_limit = n
        return self

    def matches(self, row: Row) -> bool:
        return all(f.matches(row) for f in self.filters)


class Backend(abc.ABC):
    """Base class every backend implementation subclasses."""

    #: Unique backend identifier, e.g. "sqlite".
    name: str = ""

    def __init__(self) -> None:
        if not self.name:
            raise ValueError("Backend subclass must set 'name'")
        self._session: Session | None = None
        self._listeners: list[AuthListener] = []

    # ------------------------------------------------------------------
    # Table access
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def select(self, query: Query) -> list[Row]:
        """Return the rows matching *query*."""

    @abc.abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """Insert *row* and return it as stored, including its new ``id``."""

    @abc.abstractmethod
    async def update(self, query: Query, values: Row) -> None:
        """Set *values* on every row matching *query*; zero rows is not an error."""

    @abc.abstractmethod
    async def delete(self, query: Query) -> None:
        """Remove every row matching *query*; zero rows is not an error."""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def _authenticate(self, email: str, password: str) -> Session:
        """Exchange credentials for a session."""

    @abc.abstractmethod
    async def _lookup_user(self, access_token: str) -> Identity:
        """Resolve *access_token* to an identity or raise BackendError."""

    @abc.abstractmethod
    async def _revoke(self, access_token: str) -> None:
        """Invalidate *access_token*."""

    def with_token(self, access_token: str) -> Backend:
        """Backend whose table calls act as the user behind *access_token*.

        Local stores apply no per-user access rules, so they return
        themselves; hosted stores return a view bound to the token.
        """
        return self

    async def get_current_session(self) -> Session | None:
        return self._session

    async def get_user(self, access_token: str | None = None) -> Identity:
        """Identity behind *access_token*, or behind the current session."""
        token = access_token or (self._session.access_token if self._session else None)
        if not token:
            raise BackendError("Not authenticated", status=401)
        return await self._lookup_user(token)

    async def sign_in(self, email: str, password: str, remember: bool = True) -> Session:
        """Sign in; with *remember* the session becomes this client's current one.

        Servers handling many users pass ``remember=False`` and carry the
        returned token per request instead.
        """
        session = await self._authenticate(email, password)
        if remember:
            self._session = session
        log.info("[%s] signed in user %s", self.name, session.user.id)
        self._notify(SIGNED_IN, session)
        return session

    async def sign_out(self, access_token: str | None = None) -> None:
        token = access_token or (self._session.access_token if self._session else None)
        if token:
            await self._revoke(token)
        if self._session is not None and (
            access_token is None or self._session.access_token == access_token
        ):
            self._session = None
        self._notify(SIGNED_OUT, None)

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, event: str, session: Session | None) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def from_settings(cls, settings: Settings) -> Backend:
        return cls()

    async def setup(self) -> None:
        """Prepare storage. Backends with nothing to prepare keep this no-op."""

    async def aclose(self) -> None:
        """Release network or file resources."""


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------

_registry: dict[str, type[Backend]] = {}


def register(cls: type[Backend]) -> type[Backend]:
    """Class decorator that registers a backend by its *name*."""
    _registry[cls.name] = cls
    return cls


def get_backends() -> dict[str, type[Backend]]:
    """Return a copy of the backend registry."""
    return dict(_registry)


def get_backend(name: str) -> type[Backend]:
    """Look up a registered backend by name."""
    try:
        return _registry[name]
    except KeyError:
        raise KeyError(f"Unknown backend: {name!r}. Available: {list(_registry)}")
