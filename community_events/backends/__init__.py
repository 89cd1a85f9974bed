"""Backend implementations. Importing this package registers all of them."""

from community_events.backends import memory, sqlite, supabase  # noqa: F401
from community_events.backends.base import (
    Backend,
    Query,
    get_backend,
    get_backends,
    register,
)
from community_events.settings import Settings


def create_backend(settings: Settings) -> Backend:
    """Instantiate the backend named by ``settings.backend``."""
    return get_backend(settings.backend).from_settings(settings)


__all__ = [
    "Backend",
    "Query",
    "create_backend",
    "get_backend",
    "get_backends",
    "register",
]
