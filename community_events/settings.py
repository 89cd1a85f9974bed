"""Runtime configuration, read from ``EVENTS_*`` environment variables."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EVENTS_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_ignore_empty=True,
        extra="ignore",
    )

    #: Registered backend name: "sqlite", "memory" or "supabase".
    backend: str = "sqlite"
    database_path: Path = _PROJECT_ROOT / "events.db"

    supabase_url: str | None = None
    supabase_key: SecretStr | None = None

    #: Directory of JSON event files loaded at startup; unset disables seeding.
    seed_dir: Path | None = None

    window_days: int = Field(7, ge=1)
    approved_limit: int = Field(50, ge=1)

    cors_origins: Annotated[list[str], NoDecode] = ["*"]
    log_level: str = "INFO"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, v: object) -> object:
        if isinstance(v, str):
            if v.startswith("["):
                return json.loads(v)
            return [o.strip() for o in v.split(",") if o.strip()]
        return v


settings = Settings()
