import pytest

from community_events.backends.base import SIGNED_IN, SIGNED_OUT, Query
from community_events.errors import BackendError

from .conftest import event_row


@pytest.mark.asyncio
async def test_insert_assigns_id_and_created_at(sqlite_backend):
    row = await sqlite_backend.insert("events", event_row())
    assert row["id"]
    assert row["created_at"].endswith("Z")
    assert row["status"] == "approved"
    assert row["end"] is None


@pytest.mark.asyncio
async def test_constraint_violation_surfaces_backend_message(sqlite_backend):
    with pytest.raises(BackendError) as exc_info:
        await sqlite_backend.insert("events", event_row(category="Nightlife"))
    assert "CHECK constraint failed" in exc_info.value.message


@pytest.mark.asyncio
async def test_select_with_in_filter(sqlite_backend):
    a = await sqlite_backend.insert("events", event_row(status="pending"))
    await sqlite_backend.insert("events", event_row(status="approved"))
    b = await sqlite_backend.insert("events", event_row(status="rejected"))

    rows = await sqlite_backend.select(
        Query("events").in_("status", ["pending", "rejected"]).order("created_at")
    )
    assert [r["id"] for r in rows] == [a["id"], b["id"]]
    assert await sqlite_backend.select(Query("events").in_("status", [])) == []


@pytest.mark.asyncio
async def test_unknown_columns_and_tables_are_refused(sqlite_backend):
    with pytest.raises(BackendError):
        await sqlite_backend.select(Query("events").eq("status; DROP TABLE events", 1))
    with pytest.raises(BackendError):
        await sqlite_backend.select(Query("users"))


@pytest.mark.asyncio
async def test_update_and_delete_missing_rows_are_silent(sqlite_backend):
    await sqlite_backend.update(Query("events").eq("id", "nope"), {"status": "approved"})
    await sqlite_backend.delete(Query("events").eq("id", "nope"))


@pytest.mark.asyncio
async def test_sign_in_session_and_sign_out(sqlite_backend):
    user = await sqlite_backend.add_user("Organizer@Example.com", "s3cret")
    seen = []
    unsubscribe = sqlite_backend.on_auth_state_change(lambda event, session: seen.append((event, session)))

    session = await sqlite_backend.sign_in("organizer@example.com", "s3cret")
    assert session.user == user
    assert await sqlite_backend.get_current_session() == session
    assert await sqlite_backend.get_user() == user
    assert await sqlite_backend.get_user(session.access_token) == user

    await sqlite_backend.sign_out()
    assert await sqlite_backend.get_current_session() is None
    with pytest.raises(BackendError):
        await sqlite_backend.get_user(session.access_token)
    with pytest.raises(BackendError):
        await sqlite_backend.get_user()

    assert seen == [(SIGNED_IN, session), (SIGNED_OUT, None)]
    unsubscribe()
    await sqlite_backend.sign_in("organizer@example.com", "s3cret")
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_sign_in_without_remember_keeps_no_session(sqlite_backend):
    await sqlite_backend.add_user("organizer@example.com", "s3cret")
    session = await sqlite_backend.sign_in("organizer@example.com", "s3cret", remember=False)
    assert await sqlite_backend.get_current_session() is None
    assert (await sqlite_backend.get_user(session.access_token)).email == "organizer@example.com"


@pytest.mark.asyncio
async def test_bad_credentials(sqlite_backend):
    await sqlite_backend.add_user("organizer@example.com", "s3cret")
    with pytest.raises(BackendError) as exc_info:
        await sqlite_backend.sign_in("organizer@example.com", "wrong")
    assert exc_info.value.message == "Invalid login credentials"
    with pytest.raises(BackendError):
        await sqlite_backend.add_user("organizer@example.com", "again")
