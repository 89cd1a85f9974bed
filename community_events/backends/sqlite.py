"""SQLite store for local development, with password sign-in."""

from __future__ import annotations

import logging
import secrets
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from community_events.backends.base import Backend, Query, Row, register
from community_events.errors import BackendError
from community_events.models import Identity, Session, format_instant
from community_events.passwords import hash_password, verify_password
from community_events.settings import Settings

log = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS events (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        category TEXT NOT NULL
            CHECK (category IN ('Food', 'Music', 'Arts', 'Sports', 'Family')),
        start TEXT NOT NULL,
        "end" TEXT,
        address TEXT NOT NULL,
        price TEXT NOT NULL,
        website TEXT,
        lat REAL NOT NULL,
        lng REAL NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'approved', 'rejected')),
        organizer_id TEXT,
        created_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_events_status_start ON events(status, start);
    CREATE INDEX IF NOT EXISTS idx_events_status_created ON events(status, created_at);

    CREATE TABLE IF NOT EXISTS admins (
        user_id TEXT PRIMARY KEY
    );

    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS sessions (
        access_token TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        created_at TEXT NOT NULL
    );
"""

#: Columns callers may filter, sort or write on, per table.
_COLUMNS: dict[str, frozenset[str]] = {
    "events": frozenset({
        "id", "title", "description", "category", "start", "end", "address",
        "price", "website", "lat", "lng", "status", "organizer_id", "created_at",
    }),
    "admins": frozenset({"user_id"}),
}

_SQL_OPS = {"eq": "=", "gte": ">=", "lte": "<="}


def _now() -> str:
    return format_instant(datetime.now(timezone.utc))


def _column(table: str, column: str) -> str:
    if column not in _COLUMNS.get(table, ()):
        raise BackendError(f"column {column!r} is not available on {table!r}")
    return f'"{column}"'


def _where(query: Query) -> tuple[str, list]:
    clauses: list[str] = []
    params: list = []
    for f in query.filters:
        col = _column(query.table, f.column)
        if f.op == "in":
            if not f.value:
                clauses.append("0")
                continue
            clauses.append(f"{col} IN ({', '.join('?' for _ in f.value)})")
            params.extend(f.value)
        else:
            clauses.append(f"{col} {_SQL_OPS[f.op]} ?")
            params.append(f.value)
    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


@register
class SQLiteBackend(Backend):
    name = "sqlite"

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)

    @classmethod
    def from_settings(cls, settings: Settings) -> SQLiteBackend:
        return cls(settings.database_path)

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    async def connect(self) -> aiosqlite.Connection:
        """Get a database connection with row factory enabled."""
        db = await aiosqlite.connect(self.path)
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA foreign_keys=ON")
        return db

    async def setup(self) -> None:
        """Create tables and indexes if they do not exist yet."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(_SCHEMA)
            await db.commit()
        log.debug("SQLite schema ready at %s", self.path)

    def _check_table(self, table: str) -> None:
        if table not in _COLUMNS:
            raise BackendError(f"unknown table {table!r}")

    # ------------------------------------------------------------------
    # Table access
    # ------------------------------------------------------------------

    async def select(self, query: Query) -> list[Row]:
        self._check_table(query.table)
        where, params = _where(query)
        sql = f"SELECT * FROM {query.table}{where}"
        if query.order_by:
            column, ascending = query.order_by
            direction = "ASC" if ascending else "DESC"
            # rowid breaks ties in insertion order
            sql += f" ORDER BY {_column(query.table, column)} {direction}, rowid {direction}"
        if query.row_limit is not None:
            sql += " LIMIT ?"
            params.append(query.row_limit)

        db = await self.connect()
        try:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]
        except sqlite3.Error as exc:
            raise BackendError(str(exc)) from exc
        finally:
            await db.close()

    async def insert(self, table: str, row: Row) -> Row:
        self._check_table(table)
        row = dict(row)
        if table == "events":
            row.setdefault("id", uuid.uuid4().hex)
            row.setdefault("created_at", _now())
        columns = [_column(table, c) for c in row]
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in row)})"
        )

        db = await self.connect()
        try:
            cursor = await db.execute(sql, list(row.values()))
            await db.commit()
            cursor = await db.execute(
                f"SELECT * FROM {table} WHERE rowid = ?", (cursor.lastrowid,)
            )
            stored = await cursor.fetchone()
            return dict(stored)
        except sqlite3.Error as exc:
            raise BackendError(str(exc)) from exc
        finally:
            await db.close()

    async def update(self, query: Query, values: Row) -> None:
        self._check_table(query.table)
        if not values:
            return
        assignments = ", ".join(f"{_column(query.table, c)} = ?" for c in values)
        where, params = _where(query)

        db = await self.connect()
        try:
            cursor = await db.execute(
                f"UPDATE {query.table} SET {assignments}{where}",
                list(values.values()) + params,
            )
            await db.commit()
            log.debug("UPDATE %s touched %d row(s)", query.table, cursor.rowcount)
        except sqlite3.Error as exc:
            raise BackendError(str(exc)) from exc
        finally:
            await db.close()

    async def delete(self, query: Query) -> None:
        self._check_table(query.table)
        where, params = _where(query)

        db = await self.connect()
        try:
            cursor = await db.execute(f"DELETE FROM {query.table}{where}", params)
            await db.commit()
            log.debug("DELETE %s removed %d row(s)", query.table, cursor.rowcount)
        except sqlite3.Error as exc:
            raise BackendError(str(exc)) from exc
        finally:
            await db.close()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def add_user(self, email: str, password: str) -> Identity:
        """Create a local account that can sign in with *password*."""
        user_id = str(uuid.uuid4())
        db = await self.connect()
        try:
            await db.execute(
                "INSERT INTO users (id, email, password_hash, created_at) "
                "VALUES (?, ?, ?, ?)",
                (user_id, email.strip().lower(), hash_password(password), _now()),
            )
            await db.commit()
        except sqlite3.Error as exc:
            raise BackendError(str(exc)) from exc
        finally:
            await db.close()
        return Identity(id=user_id, email=email.strip().lower())

    async def find_user(self, email: str) -> Identity | None:
        db = await self.connect()
        try:
            cursor = await db.execute(
                "SELECT id, email FROM users WHERE email = ?", (email.strip().lower(),)
            )
            row = await cursor.fetchone()
        finally:
            await db.close()
        return Identity(id=row["id"], email=row["email"]) if row else None

    async def _authenticate(self, email: str, password: str) -> Session:
        db = await self.connect()
        try:
            cursor = await db.execute(
                "SELECT id, email, password_hash FROM users WHERE email = ?",
                (email.strip().lower(),),
            )
            row = await cursor.fetchone()
            if not row or not verify_password(password, row["password_hash"]):
                raise BackendError("Invalid login credentials", status=400)
            token = secrets.token_urlsafe(32)
            await db.execute(
                "INSERT INTO sessions (access_token, user_id, created_at) VALUES (?, ?, ?)",
                (token, row["id"], _now()),
            )
            await db.commit()
        except sqlite3.Error as exc:
            raise BackendError(str(exc)) from exc
        finally:
            await db.close()
        return Session(access_token=token, user=Identity(id=row["id"], email=row["email"]))

    async def _lookup_user(self, access_token: str) -> Identity:
        db = await self.connect()
        try:
            cursor = await db.execute(
                "SELECT u.id, u.email FROM sessions s JOIN users u ON u.id = s.user_id "
                "WHERE s.access_token = ?",
                (access_token,),
            )
            row = await cursor.fetchone()
        except sqlite3.Error as exc:
            raise BackendError(str(exc)) from exc
        finally:
            await db.close()
        if not row:
            raise BackendError("Invalid or expired session", status=401)
        return Identity(id=row["id"], email=row["email"])

    async def _revoke(self, access_token: str) -> None:
        db = await self.connect()
        try:
            await db.execute("DELETE FROM sessions WHERE access_token = ?", (access_token,))
            await db.commit()
        except sqlite3.Error as exc:
            raise BackendError(str(exc)) from exc
        finally:
            await db.close()
