"""Community Events API."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from community_events.backends import Backend, create_backend
from community_events.errors import BackendError
from community_events.filters import EventFilter, filter_events
from community_events.ingest import ingest_events
from community_events.map_view import FIT_PADDING, MapView
from community_events.models import EventCategory, EventItem, EventSubmission, Identity
from community_events.services import AdminService, EventQueryService
from community_events.settings import settings

from .deps import (
    current_identity,
    get_access_token,
    get_admin_service,
    get_backend,
    get_event_service,
    require_admin,
    require_identity,
)

logging.basicConfig(level=settings.log_level)
log = logging.getLogger(__name__)

DATE_PATTERN = r"^(\d{4}-\d{2}-\d{2})?$"


@asynccontextmanager
async def lifespan(app: FastAPI):
    backend = create_backend(settings)
    await backend.setup()
    if settings.seed_dir:
        await ingest_events(backend, settings.seed_dir)
    app.state.backend = backend
    log.info("Community Events API started with %s backend", backend.name)
    yield
    await backend.aclose()


app = FastAPI(title="Community Events", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class Credentials(BaseModel):
    email: str
    password: str


async def _visible_events(
    service: EventQueryService, category: str, date: str, q: str
) -> list[EventItem]:
    events = await service.fetch_upcoming(datetime.now(timezone.utc))
    return filter_events(events, EventFilter(category=category, date=date, query=q))


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/categories")
async def list_categories():
    """List the event categories organizers can choose from."""
    return [c.value for c in EventCategory]


# ------------------------------------------------------------------
# Public feed
# ------------------------------------------------------------------


@app.get("/api/events")
async def list_events(
    category: str = "All",
    date: str = Query("", pattern=DATE_PATTERN),
    q: str = "",
    service: EventQueryService = Depends(get_event_service),
):
    """Approved events in the next seven days, narrowed by the filters."""
    events = await _visible_events(service, category, date, q)
    return {"events": events, "total": len(events)}


@app.get("/api/events/map")
async def events_map(
    category: str = "All",
    date: str = Query("", pattern=DATE_PATTERN),
    q: str = "",
    width: int = Query(640, ge=100, le=4096),
    height: int = Query(420, ge=100, le=4096),
    service: EventQueryService = Depends(get_event_service),
):
    """Markers and a fitted view for the same events the list shows."""
    events = await _visible_events(service, category, date, q)
    view = MapView(size=(width, height))
    view.set_events(events)
    bounds = view.view.bounds
    return {
        "center": {"lat": view.view.center[0], "lng": view.view.center[1]},
        "zoom": view.view.zoom,
        "bounds": (
            [[bounds.south, bounds.west], [bounds.north, bounds.east]] if bounds else None
        ),
        "padding": list(FIT_PADDING),
        "markers": [
            {
                "id": m.event_id,
                "lat": m.position[0],
                "lng": m.position[1],
                "title": m.title,
                "address": m.address,
            }
            for m in view.markers
        ],
    }


@app.post("/api/events", status_code=status.HTTP_201_CREATED)
async def submit_event(
    submission: EventSubmission,
    identity: Identity = Depends(require_identity),
    service: EventQueryService = Depends(get_event_service),
):
    """Submit an event for approval. Requires a signed-in organizer."""
    result = await service.create_submission(submission, identity)
    if result.error is not None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=result.error.message
        )
    return result.event


# ------------------------------------------------------------------
# Auth
# ------------------------------------------------------------------


@app.post("/api/auth/sign-in")
async def sign_in(credentials: Credentials, backend: Backend = Depends(get_backend)):
    try:
        session = await backend.sign_in(credentials.email, credentials.password, remember=False)
    except BackendError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message)
    return session


@app.post("/api/auth/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    token: str | None = Depends(get_access_token),
    backend: Backend = Depends(get_backend),
):
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        await backend.sign_out(token)
    except BackendError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message)


@app.get("/api/auth/session")
async def get_session(identity: Identity | None = Depends(current_identity)):
    return {"user": identity}


# ------------------------------------------------------------------
# Admin
# ------------------------------------------------------------------


@app.get("/api/admin/check")
async def admin_check(
    identity: Identity | None = Depends(current_identity),
    admin: AdminService = Depends(get_admin_service),
):
    check = await admin.is_admin(identity)
    return {"is_admin": check.is_admin, "error": check.error}


@app.get("/api/admin/events", dependencies=[Depends(require_admin)])
async def moderation_queue(admin: AdminService = Depends(get_admin_service)):
    """Pending and approved events for the moderation dashboard."""
    snapshot = await admin.refresh()
    return {
        "pending": snapshot.pending.items,
        "approved": snapshot.approved.items,
        "errors": {
            "pending": snapshot.pending.error,
            "approved": snapshot.approved.error,
        },
    }


def _mutation_response(error: str | None, event_id: str, action: str):
    if error:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error)
    return {"id": event_id, "action": action}


@app.post("/api/admin/events/{event_id}/approve", dependencies=[Depends(require_admin)])
async def approve_event(event_id: str, admin: AdminService = Depends(get_admin_service)):
    result = await admin.approve(event_id)
    return _mutation_response(result.error, event_id, "approved")


@app.post("/api/admin/events/{event_id}/reject", dependencies=[Depends(require_admin)])
async def reject_event(event_id: str, admin: AdminService = Depends(get_admin_service)):
    result = await admin.reject(event_id)
    return _mutation_response(result.error, event_id, "rejected")


@app.delete("/api/admin/events/{event_id}", dependencies=[Depends(require_admin)])
async def delete_event(event_id: str, admin: AdminService = Depends(get_admin_service)):
    result = await admin.delete(event_id)
    return _mutation_response(result.error, event_id, "deleted")
