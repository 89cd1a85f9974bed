import json

import httpx
import pytest

from community_events.backends.base import Query
from community_events.backends.supabase import SupabaseBackend
from community_events.errors import BackendError
from community_events.models import EventSubmission
from community_events.services import AdminService, EventQueryService

from .conftest import event_row

URL = "https://project.supabase.test"
KEY = "anon-key"


def _backend(handler) -> SupabaseBackend:
    return SupabaseBackend(URL, KEY, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_select_translates_query_to_postgrest_params():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{**event_row(), "id": "1"}])

    backend = _backend(handler)
    rows = await backend.select(
        Query("events")
        .eq("status", "approved")
        .gte("start", "2026-03-02T12:00:00.000Z")
        .lte("start", "2026-03-09T12:00:00.000Z")
        .order("start")
        .limit(50)
    )
    await backend.aclose()

    assert rows[0]["id"] == "1"
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/events"
    assert request.url.params.get_list("start") == [
        "gte.2026-03-02T12:00:00.000Z",
        "lte.2026-03-09T12:00:00.000Z",
    ]
    assert request.url.params["status"] == "eq.approved"
    assert request.url.params["order"] == "start.asc"
    assert request.url.params["limit"] == "50"
    assert request.url.params["select"] == "*"
    assert request.headers["apikey"] == KEY
    assert request.headers["authorization"] == f"Bearer {KEY}"


@pytest.mark.asyncio
async def test_guarded_update_uses_in_filter():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    backend = _backend(handler)
    result = await AdminService(backend).approve("42")
    await backend.aclose()

    assert result.error is None
    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.params["id"] == "eq.42"
    assert request.url.params["status"] == "in.(pending)"
    assert json.loads(request.content) == {"status": "approved"}


@pytest.mark.asyncio
async def test_insert_returns_representation():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["prefer"] == "return=representation"
        return httpx.Response(201, json=[{**json.loads(request.content), "id": "new"}])

    backend = _backend(handler)
    row = await backend.insert("events", event_row(status="pending"))
    await backend.aclose()
    assert row["id"] == "new"
    assert row["status"] == "pending"


@pytest.mark.asyncio
async def test_error_message_passes_through():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400, json={"code": "23514", "message": "violates check constraint \"events_category_check\""}
        )

    backend = _backend(handler)
    with pytest.raises(BackendError) as exc_info:
        await backend.insert("events", event_row())
    await backend.aclose()
    assert exc_info.value.message == 'violates check constraint "events_category_check"'
    assert exc_info.value.status == 400


@pytest.mark.asyncio
async def test_transport_failure_becomes_backend_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    backend = _backend(handler)
    with pytest.raises(BackendError):
        await backend.select(Query("events"))
    await backend.aclose()


@pytest.mark.asyncio
async def test_sign_in_then_requests_carry_user_token():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/auth/v1/token":
            assert request.url.params["grant_type"] == "password"
            return httpx.Response(
                200,
                json={"access_token": "user-jwt", "user": {"id": "u1", "email": "a@b.c"}},
            )
        if request.url.path == "/auth/v1/user":
            return httpx.Response(200, json={"id": "u1", "email": "a@b.c"})
        if request.url.path == "/auth/v1/logout":
            return httpx.Response(204)
        return httpx.Response(200, json=[])

    backend = _backend(handler)
    session = await backend.sign_in("a@b.c", "pw")
    assert session.user.id == "u1"
    assert (await backend.get_user()).email == "a@b.c"
    await backend.select(Query("admins").eq("user_id", "u1"))
    await backend.sign_out()
    await backend.aclose()

    assert seen[1].headers["authorization"] == "Bearer user-jwt"
    assert seen[2].headers["authorization"] == "Bearer user-jwt"
    assert seen[3].url.path == "/auth/v1/logout"
    assert await backend.get_current_session() is None


@pytest.mark.asyncio
async def test_invalid_token_lookup_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"msg": "invalid JWT"})

    backend = _backend(handler)
    with pytest.raises(BackendError) as exc_info:
        await backend.get_user("expired")
    await backend.aclose()
    assert exc_info.value.message == "invalid JWT"
    assert exc_info.value.status == 401


@pytest.mark.asyncio
async def test_token_bound_writes_act_as_the_user(organizer):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.headers["authorization"]))
        if request.url.path == "/auth/v1/token":
            return httpx.Response(
                200,
                json={"access_token": "user-jwt", "user": {"id": "u1", "email": "a@b.c"}},
            )
        if request.method == "POST":
            return httpx.Response(201, json=[{**json.loads(request.content), "id": "new"}])
        return httpx.Response(204)

    backend = _backend(handler)
    session = await backend.sign_in("a@b.c", "pw", remember=False)
    bound = backend.with_token(session.access_token)

    submission = EventSubmission(
        title="Community 5K Run",
        description="A friendly 5K through the historic district.",
        category="Sports",
        start="2026-03-05T14:00:00Z",
        address="Heritage Square, Springfield",
        lat=39.7951,
        lng=-89.6408,
    )
    created = await EventQueryService(bound).create_submission(submission, organizer)
    moved = await AdminService(bound).approve("new")
    await backend.delete(Query("events").eq("id", "new"))
    await bound.aclose()

    assert created.error is None
    assert moved.error is None
    assert seen[1:] == [
        ("POST", "/rest/v1/events", "Bearer user-jwt"),
        ("PATCH", "/rest/v1/events", "Bearer user-jwt"),
        ("DELETE", "/rest/v1/events", f"Bearer {KEY}"),
    ]
    assert await backend.get_current_session() is None
