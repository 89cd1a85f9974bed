"""In-process backend. Data lives only as long as the instance."""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone

from community_events.backends.base import Backend, Query, Row, register
from community_events.errors import BackendError
from community_events.models import Identity, Session, format_instant
from community_events.passwords import hash_password, verify_password


def _sort_key(column: str):
    # None sorts last, like NULLS LAST
    def key(row: Row):
        value = row.get(column)
        return (value is None, value if value is not None else 0)

    return key


@register
class MemoryBackend(Backend):
    name = "memory"

    def __init__(self) -> None:
        super().__init__()
        self.tables: dict[str, list[Row]] = {"events": [], "admins": []}
        self._users: dict[str, tuple[Identity, str]] = {}
        self._tokens: dict[str, Identity] = {}

    def _rows(self, table: str) -> list[Row]:
        try:
            return self.tables[table]
        except KeyError:
            raise BackendError(f"unknown table {table!r}")

    async def select(self, query: Query) -> list[Row]:
        rows = [dict(r) for r in self._rows(query.table) if query.matches(r)]
        if query.order_by:
            column, ascending = query.order_by
            rows.sort(key=_sort_key(column), reverse=not ascending)
        if query.row_limit is not None:
            rows = rows[: query.row_limit]
        return rows

    async def insert(self, table: str, row: Row) -> Row:
        rows = self._rows(table)
        row = dict(row)
        if table == "events":
            row.setdefault("id", uuid.uuid4().hex)
            row.setdefault("status", "pending")
            row.setdefault("created_at", format_instant(datetime.now(timezone.utc)))
            if any(r["id"] == row["id"] for r in rows):
                raise BackendError(f"duplicate key value violates unique constraint: id={row['id']}")
        rows.append(row)
        return dict(row)

    async def update(self, query: Query, values: Row) -> None:
        for row in self._rows(query.table):
            if query.matches(row):
                row.update(values)

    async def delete(self, query: Query) -> None:
        rows = self._rows(query.table)
        rows[:] = [r for r in rows if not query.matches(r)]

    async def add_user(self, email: str, password: str) -> Identity:
        email = email.strip().lower()
        if email in self._users:
            raise BackendError(f"User already registered: {email}")
        identity = Identity(id=str(uuid.uuid4()), email=email)
        self._users[email] = (identity, hash_password(password))
        return identity

    async def _authenticate(self, email: str, password: str) -> Session:
        entry = self._users.get(email.strip().lower())
        if entry is None or not verify_password(password, entry[1]):
            raise BackendError("Invalid login credentials", status=400)
        token = secrets.token_urlsafe(32)
        self._tokens[token] = entry[0]
        return Session(access_token=token, user=entry[0])

    async def _lookup_user(self, access_token: str) -> Identity:
        try:
            return self._tokens[access_token]
        except KeyError:
            raise BackendError("Invalid or expired session", status=401)

    async def _revoke(self, access_token: str) -> None:
        self._tokens.pop(access_token, None)
