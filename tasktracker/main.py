# tasktracker/main.py
"""FastAPI application for the task tracker service."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tasktracker.config import Settings
from tasktracker.database import SqlTaskStore, create_sqlite_engine
from tasktracker.routes.tasks import router as tasks_router
from tasktracker.store import (
    JsonFileTaskStore,
    MemoryTaskStore,
    RemoteConfigTaskStore,
    TaskStore,
)

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> TaskStore:
    """Create the store backend named by ``settings.backend``."""
    if settings.backend == "file":
        return JsonFileTaskStore(Path(settings.tasks_file))
    if settings.backend == "remote":
        return RemoteConfigTaskStore(
            settings.remote_url,
            token=settings.remote_token,
            timeout=settings.remote_timeout,
        )
    if settings.backend == "sqlite":
        return SqlTaskStore(create_sqlite_engine(settings.database_url))
    return MemoryTaskStore()


def create_app(settings: Settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the task store once per process."""
        app.state.store = build_store(settings)
        logger.info("Task store ready (backend=%s)", app.state.store.name)
        yield

    app = FastAPI(title="Task Tracker", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    app.include_router(tasks_router)

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "task-tracker-api",
            "backend": settings.backend,
        }

    return app


app = create_app(Settings.from_env())
