"""CLI entry-point: python -m community_events [init-db|seed|upcoming|...]."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import typer

from community_events.backends import Backend, create_backend
from community_events.backends.base import Query
from community_events.errors import BackendError
from community_events.filters import EventFilter, filter_events
from community_events.ingest import SEED_DIR, ingest_events
from community_events.models import EventItem
from community_events.services import AdminService, EventQueryService, MutationResult
from community_events.settings import settings

app = typer.Typer(help="Community Events – local administration CLI")


def _backend() -> Backend:
    return create_backend(settings)


async def _with_backend(fn):
    backend = _backend()
    await backend.setup()
    try:
        return await fn(backend)
    finally:
        await backend.aclose()


def _echo_events(events: list[EventItem]) -> None:
    if not events:
        typer.echo("No events.")
        return
    for e in events:
        when = e.start.strftime("%Y-%m-%d %H:%MZ")
        typer.echo(f"  {e.id}  {when}  [{e.category.value}] {e.title} – {e.address}")


def _report(result: MutationResult, message: str) -> None:
    if result.error:
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(1)
    typer.echo(message)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v")) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else settings.log_level)


@app.command("init-db")
def init_db() -> None:
    """Create the backend's tables if they are missing."""

    async def run(backend: Backend):
        # setup() in _with_backend does the work
        return None

    asyncio.run(_with_backend(run))
    typer.echo(f"{settings.backend} backend ready.")


@app.command("add-user")
def add_user(email: str, password: str = typer.Option(..., prompt=True, hide_input=True)) -> None:
    """Create a local account (sqlite backend only)."""

    async def run(backend: Backend):
        if not hasattr(backend, "add_user"):
            typer.echo(f"The {backend.name} backend manages its own accounts.", err=True)
            raise typer.Exit(1)
        return await backend.add_user(email, password)

    try:
        identity = asyncio.run(_with_backend(run))
    except BackendError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Created user {identity.email} ({identity.id})")


@app.command("grant-admin")
def grant_admin(user: str = typer.Argument(help="Email (local accounts) or user id")) -> None:
    """Add a user to the admin allow-list."""

    async def run(backend: Backend):
        user_id = user
        if "@" in user and hasattr(backend, "find_user"):
            identity = await backend.find_user(user)
            if identity is None:
                typer.echo(f"No user with email {user}", err=True)
                raise typer.Exit(1)
            user_id = identity.id
        if await backend.select(Query("admins").eq("user_id", user_id).limit(1)):
            return user_id
        await backend.insert("admins", {"user_id": user_id})
        return user_id

    try:
        user_id = asyncio.run(_with_backend(run))
    except BackendError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(1)
    typer.echo(f"{user_id} is an admin.")


@app.command()
def seed(
    directory: Path = typer.Argument(SEED_DIR, help="Directory of JSON event files"),
) -> None:
    """Load events from JSON files, skipping ones already stored."""
    count = asyncio.run(_with_backend(lambda backend: ingest_events(backend, directory)))
    typer.echo(f"Ingested {count} event(s).")


@app.command()
def upcoming(
    category: str = typer.Option("All", "--category", "-c"),
    date: str = typer.Option("", "--date", "-d", help="YYYY-MM-DD (UTC)"),
    query: str = typer.Option("", "--query", "-q"),
) -> None:
    """List approved events in the upcoming window."""

    async def run(backend: Backend):
        service = EventQueryService(backend, window=timedelta(days=settings.window_days))
        return await service.fetch_upcoming(datetime.now(timezone.utc))

    events = asyncio.run(_with_backend(run))
    _echo_events(filter_events(events, EventFilter(category=category, date=date, query=query)))


@app.command()
def pending() -> None:
    """List submissions waiting for moderation."""
    result = asyncio.run(_with_backend(lambda backend: AdminService(backend).list_pending()))
    if result.error:
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(1)
    _echo_events(result.items)


@app.command()
def approve(event_id: str) -> None:
    """Approve a pending event."""
    result = asyncio.run(_with_backend(lambda backend: AdminService(backend).approve(event_id)))
    _report(result, f"Approved {event_id}.")


@app.command()
def reject(event_id: str) -> None:
    """Reject a pending event."""
    result = asyncio.run(_with_backend(lambda backend: AdminService(backend).reject(event_id)))
    _report(result, f"Rejected {event_id}.")


@app.command()
def delete(event_id: str) -> None:
    """Permanently delete an event."""
    result = asyncio.run(_with_backend(lambda backend: AdminService(backend).delete(event_id)))
    _report(result, f"Deleted {event_id}.")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port", "-p"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("api.main:app", host=host, port=port)


if __name__ == "__main__":
    app()
