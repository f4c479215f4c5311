# tasktracker/store.py
"""Task stores: one read-all/append interface over swappable backends.

Reads never fail: when a backend's source is missing or malformed it logs the
condition and serves the built-in fallback tasks instead. Writes do fail, with
:class:`StoreError`, so a creation request never silently loses its task.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Optional

import httpx
from pydantic import ValidationError

from tasktracker.models import Task, TaskCategory, TaskPriority

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a store cannot persist a write."""


def fallback_tasks() -> list[Task]:
    """Return a fresh copy of the built-in sample tasks."""
    return [
        Task(
            id="fallback-1",
            title="Configure remote task source",
            description="Point TASKS_REMOTE_URL at a config item holding a tasks array",
            completed=False,
            priority=TaskPriority.high,
            category=TaskCategory.learning,
            created_at="2024-01-20T10:00:00Z",
            updated_at="2024-01-20T10:00:00Z",
            due_date="2024-01-21T23:59:59Z",
        ),
        Task(
            id="fallback-2",
            title="Test API endpoints",
            description="Verify listing, filtering and creation against every backend",
            completed=False,
            priority=TaskPriority.medium,
            category=TaskCategory.learning,
            created_at="2024-01-20T09:00:00Z",
            updated_at="2024-01-20T09:00:00Z",
        ),
        Task(
            id="fallback-3",
            title="Deploy to production",
            description="Complete deployment setup and test the live API",
            completed=True,
            priority=TaskPriority.high,
            category=TaskCategory.learning,
            created_at="2024-01-19T15:00:00Z",
            updated_at="2024-01-20T12:00:00Z",
        ),
    ]


def parse_tasks(raw: Any) -> list[Task]:
    """Validate a decoded JSON payload as a list of tasks.

    Accepts either a bare array or an object with a ``tasks`` array.

    Raises:
        ValueError: If the payload has another shape, a record is invalid,
            or two records share an id.
    """
    if isinstance(raw, dict) and "tasks" in raw:
        raw = raw["tasks"] or []
    if not isinstance(raw, list):
        raise ValueError(f"expected a list of tasks, got {type(raw).__name__}")
    try:
        tasks = [Task.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise ValueError(f"invalid task record: {exc.error_count()} error(s)") from exc
    _ensure_unique_ids(tasks)
    return tasks


def _ensure_unique_ids(tasks: Iterable[Task]) -> None:
    seen: set[str] = set()
    for task in tasks:
        if task.id in seen:
            raise ValueError(f"duplicate task id {task.id!r}")
        seen.add(task.id)


class TaskStore(ABC):
    """Holds the current set of tasks and mediates reads and appends."""

    #: Short backend name reported by the health endpoint.
    name = "abstract"

    @abstractmethod
    def load_all(self) -> list[Task]:
        """Return every task in insertion order."""

    @abstractmethod
    def append(self, task: Task) -> None:
        """Add a task to the store.

        Raises:
            StoreError: If the task cannot be stored.
        """


class MemoryTaskStore(TaskStore):
    """In-process list of tasks, lost when the process exits."""

    name = "memory"

    def __init__(self, initial: Optional[Iterable[Task]] = None) -> None:
        self._tasks: list[Task] = list(initial) if initial is not None else fallback_tasks()
        self._lock = threading.Lock()

    def load_all(self) -> list[Task]:
        with self._lock:
            return list(self._tasks)

    def append(self, task: Task) -> None:
        with self._lock:
            if any(existing.id == task.id for existing in self._tasks):
                raise StoreError(f"Task id {task.id!r} already exists")
            self._tasks = [*self._tasks, task]


class JsonFileTaskStore(TaskStore):
    """JSON array of tasks on disk, rewritten in full on every append."""

    name = "file"

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load_all(self) -> list[Task]:
        try:
            return self._read()
        except FileNotFoundError:
            logger.warning("Task file %s not found, using fallback tasks", self._path)
        except (OSError, ValueError) as exc:
            logger.warning("Could not read task file %s (%s), using fallback tasks", self._path, exc)
        return fallback_tasks()

    def append(self, task: Task) -> None:
        with self._lock:
            try:
                tasks = self._read()
            except FileNotFoundError:
                tasks = fallback_tasks()
            except (OSError, ValueError) as exc:
                raise StoreError(f"Cannot update task file {self._path}: {exc}") from exc

            if any(existing.id == task.id for existing in tasks):
                raise StoreError(f"Task id {task.id!r} already exists")

            try:
                self._write([*tasks, task])
            except OSError as exc:
                raise StoreError(f"Cannot write task file {self._path}: {exc}") from exc

    def _read(self) -> list[Task]:
        raw = self._path.read_text(encoding="utf-8")
        return parse_tasks(json.loads(raw))

    def _write(self, tasks: list[Task]) -> None:
        """Replace the file atomically so readers never see a partial array."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([t.to_json() for t in tasks], indent=2)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class RemoteConfigTaskStore(TaskStore):
    """Tasks fetched from a remote configuration item over HTTP.

    A successful fetch is cached for the life of the process. While the
    remote item is unavailable every read retries it and serves the fallback
    tasks in the meantime. The remote item is read-only; appended tasks live
    in this process only and are listed after the remote ones.
    """

    name = "remote"

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._url = url
        self._token = token
        self._timeout = timeout
        self._client = client
        self._remote: Optional[list[Task]] = None
        self._appended: list[Task] = []
        self._lock = threading.Lock()

    def load_all(self) -> list[Task]:
        with self._lock:
            return self._current()

    def append(self, task: Task) -> None:
        with self._lock:
            if any(existing.id == task.id for existing in self._current()):
                raise StoreError(f"Task id {task.id!r} already exists")
            self._appended = [*self._appended, task]

    def _current(self) -> list[Task]:
        """Remote (or fallback) tasks followed by the ones appended here."""
        if self._remote is None:
            self._remote = self._fetch()
        base = self._remote if self._remote is not None else fallback_tasks()
        return [*base, *self._appended]

    def _fetch(self) -> Optional[list[Task]]:
        """Return the remote tasks, or None when they cannot be loaded."""
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            if self._client is not None:
                response = self._client.get(self._url, headers=headers, timeout=self._timeout)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.get(self._url, headers=headers)
            response.raise_for_status()
            tasks = parse_tasks(response.json())
        except httpx.HTTPError as exc:
            logger.warning("Remote task source unavailable (%s), using fallback tasks", exc)
            return None
        except ValueError as exc:
            logger.warning("Remote task data not in expected format (%s), using fallback tasks", exc)
            return None
        logger.info("Loaded %d tasks from remote source", len(tasks))
        return tasks
