"""Request dependencies: backend, services and the signed-in identity."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from community_events.backends import Backend
from community_events.errors import BackendError, Unauthenticated
from community_events.models import Identity
from community_events.services import AdminService, EventQueryService
from community_events.settings import settings

log = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def get_backend(request: Request) -> Backend:
    return request.app.state.backend


def get_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> str | None:
    return credentials.credentials if credentials else None


async def current_identity(
    token: str | None = Depends(get_access_token),
    backend: Backend = Depends(get_backend),
) -> Identity | None:
    """Identity behind the bearer token, or None when absent or invalid."""
    if not token:
        return None
    try:
        return await backend.get_user(token)
    except BackendError as exc:
        log.info("Rejected bearer token: %s", exc.message)
        return None


def get_user_backend(
    token: str | None = Depends(get_access_token),
    identity: Identity | None = Depends(current_identity),
    backend: Backend = Depends(get_backend),
) -> Backend:
    """The backend acting as the caller; anonymous when the token did not resolve."""
    if token and identity is not None:
        return backend.with_token(token)
    return backend


def get_event_service(backend: Backend = Depends(get_user_backend)) -> EventQueryService:
    return EventQueryService(backend, window=timedelta(days=settings.window_days))


def get_admin_service(backend: Backend = Depends(get_user_backend)) -> AdminService:
    return AdminService(backend, approved_limit=settings.approved_limit)


def require_identity(identity: Identity | None = Depends(current_identity)) -> Identity:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=Unauthenticated().message
        )
    return identity


async def require_admin(
    identity: Identity | None = Depends(current_identity),
    admin: AdminService = Depends(get_admin_service),
) -> Identity:
    check = await admin.is_admin(identity)
    if not check.is_admin:
        if identity is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=check.error or "Not authenticated",
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=check.error or "Admin privileges required",
        )
    return identity
