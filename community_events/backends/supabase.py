"""Hosted backend over HTTP: PostgREST for tables, GoTrue for auth."""

from __future__ import annotations

import copy
import logging
from typing import Any

import httpx

from community_events.backends.base import Backend, Query, Row, register
from community_events.errors import BackendError
from community_events.models import Identity, Session
from community_events.settings import Settings

log = logging.getLogger(__name__)


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _params(query: Query) -> list[tuple[str, str]]:
    params: list[tuple[str, str]] = []
    for f in query.filters:
        if f.op == "in":
            params.append((f.column, f"in.({','.join(_literal(v) for v in f.value)})"))
        else:
            params.append((f.column, f"{f.op}.{_literal(f.value)}"))
    if query.order_by:
        column, ascending = query.order_by
        params.append(("order", f"{column}.{'asc' if ascending else 'desc'}"))
    if query.row_limit is not None:
        params.append(("limit", str(query.row_limit)))
    return params


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "error_description", "msg", "error"):
            if body.get(key):
                return str(body[key])
    return resp.text or resp.reason_phrase


@register
class SupabaseBackend(Backend):
    name = "supabase"

    def __init__(
        self,
        url: str,
        key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self.url = url.rstrip("/")
        self._key = key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._access_token: str | None = None
        self._root = self

    @classmethod
    def from_settings(cls, settings: Settings) -> SupabaseBackend:
        if not settings.supabase_url or settings.supabase_key is None:
            raise ValueError(
                "EVENTS_SUPABASE_URL and EVENTS_SUPABASE_KEY are required for the supabase backend"
            )
        return cls(settings.supabase_url, settings.supabase_key.get_secret_value())

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def with_token(self, access_token: str) -> SupabaseBackend:
        """A view of this backend whose table calls carry *access_token*.

        The view shares the HTTP client and auth listeners of the backend
        it was made from, so it needs no closing of its own.
        """
        bound = copy.copy(self)
        bound._access_token = access_token
        return bound

    async def _ensure_client(self) -> httpx.AsyncClient:
        root = self._root
        if root._client is None or root._client.is_closed:
            root._client = httpx.AsyncClient(
                base_url=self.url,
                headers={"apikey": self._key},
                transport=self._transport,
                timeout=30.0,
            )
        return root._client

    def _bearer(self, access_token: str | None = None) -> dict[str, str]:
        token = (
            access_token
            or self._access_token
            or (self._session.access_token if self._session else self._key)
        )
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        access_token: str | None = None,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        client = await self._ensure_client()
        try:
            resp = await client.request(
                method,
                path,
                headers={**self._bearer(access_token), **(headers or {})},
                **kwargs,
            )
        except httpx.TransportError as exc:
            raise BackendError(f"{method} {path} failed: {exc}") from exc
        if resp.is_error:
            message = _error_message(resp)
            log.debug("[%s] %s %s -> %d %s", self.name, method, path, resp.status_code, message)
            raise BackendError(message, status=resp.status_code)
        return resp

    async def aclose(self) -> None:
        client = self._root._client
        if client and not client.is_closed:
            await client.aclose()

    # ------------------------------------------------------------------
    # Table access
    # ------------------------------------------------------------------

    async def select(self, query: Query) -> list[Row]:
        resp = await self._request(
            "GET",
            f"/rest/v1/{query.table}",
            params=[("select", "*"), *_params(query)],
        )
        return resp.json()

    async def insert(self, table: str, row: Row) -> Row:
        resp = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        body = resp.json()
        if isinstance(body, list):
            if not body:
                raise BackendError(f"insert into {table!r} returned no row")
            return body[0]
        return body

    async def update(self, query: Query, values: Row) -> None:
        await self._request(
            "PATCH",
            f"/rest/v1/{query.table}",
            params=_params(query),
            json=values,
            headers={"Prefer": "return=minimal"},
        )

    async def delete(self, query: Query) -> None:
        await self._request(
            "DELETE",
            f"/rest/v1/{query.table}",
            params=_params(query),
            headers={"Prefer": "return=minimal"},
        )

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def _authenticate(self, email: str, password: str) -> Session:
        resp = await self._request(
            "POST",
            "/auth/v1/token",
            access_token=self._key,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        body = resp.json()
        user = body.get("user") or {}
        if not body.get("access_token") or not user.get("id"):
            raise BackendError("Sign-in response carried no session")
        return Session(
            access_token=body["access_token"],
            user=Identity(id=user["id"], email=user.get("email")),
        )

    async def _lookup_user(self, access_token: str) -> Identity:
        resp = await self._request("GET", "/auth/v1/user", access_token=access_token)
        body = resp.json()
        if not body.get("id"):
            raise BackendError("Not authenticated", status=401)
        return Identity(id=body["id"], email=body.get("email"))

    async def _revoke(self, access_token: str) -> None:
        await self._request("POST", "/auth/v1/logout", access_token=access_token)
