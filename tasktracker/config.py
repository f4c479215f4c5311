# tasktracker/config.py
"""Environment-driven settings for the task tracker service."""

import os
from dataclasses import dataclass, field
from typing import Optional

BACKENDS = ("memory", "file", "remote", "sqlite")

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173,http://localhost:8000"


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime configuration. Build with :meth:`from_env` in the service."""
    backend: str = "memory"
    tasks_file: str = "data/tasks.json"
    remote_url: Optional[str] = None
    remote_token: Optional[str] = None
    remote_timeout: float = 5.0
    database_url: str = "sqlite:///data/tasks.db"
    cors_origins: list[str] = field(
        default_factory=lambda: _split_origins(DEFAULT_CORS_ORIGINS)
    )
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ValueError(
                f"Unknown TASKS_BACKEND {self.backend!r}, expected one of: {', '.join(BACKENDS)}"
            )
        if self.backend == "remote" and not self.remote_url:
            raise ValueError("TASKS_REMOTE_URL must be set when TASKS_BACKEND=remote")

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from ``TASKS_*`` and service environment variables."""
        return cls(
            backend=os.getenv("TASKS_BACKEND", "memory").strip().lower(),
            tasks_file=os.getenv("TASKS_FILE", "data/tasks.json"),
            remote_url=os.getenv("TASKS_REMOTE_URL") or None,
            remote_token=os.getenv("TASKS_REMOTE_TOKEN") or None,
            remote_timeout=float(os.getenv("TASKS_REMOTE_TIMEOUT", "5")),
            database_url=os.getenv("TASKS_DATABASE_URL", "sqlite:///data/tasks.db"),
            cors_origins=_split_origins(os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            host=os.getenv("HOST", "127.0.0.1"),
            port=int(os.getenv("PORT", "8000")),
        )
