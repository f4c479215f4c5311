# tasktracker/database.py
"""SQLite-backed task store using SQLModel."""

import logging
import threading
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from tasktracker.models import Task
from tasktracker.store import StoreError, TaskStore, fallback_tasks

logger = logging.getLogger(__name__)


class TaskRow(SQLModel, table=True):
    """Task database table. ``seq`` keeps insertion order."""
    __tablename__ = "tasks"

    seq: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(index=True, unique=True)
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    completed: bool = Field(default=False)
    priority: str
    category: str
    created_at: str
    updated_at: str
    due_date: Optional[str] = Field(default=None)

    @classmethod
    def from_task(cls, task: Task) -> "TaskRow":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            completed=task.completed,
            priority=task.priority.value,
            category=task.category.value,
            created_at=task.created_at,
            updated_at=task.updated_at,
            due_date=task.due_date,
        )

    def to_task(self) -> Task:
        return Task(
            id=self.id,
            title=self.title,
            description=self.description,
            completed=self.completed,
            priority=self.priority,
            category=self.category,
            created_at=self.created_at,
            updated_at=self.updated_at,
            due_date=self.due_date,
        )


def create_sqlite_engine(database_url: str) -> Engine:
    """Create an engine, making sure the directory of a file database exists."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        database_url,
        echo=False,
        connect_args={"check_same_thread": False},
    )


class SqlTaskStore(TaskStore):
    """Tasks persisted in a ``tasks`` table, read back in insertion order."""

    name = "sqlite"

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        SQLModel.metadata.create_all(engine)

    def load_all(self) -> list[Task]:
        try:
            with Session(self._engine) as session:
                rows = session.exec(select(TaskRow).order_by(TaskRow.seq)).all()
                return [row.to_task() for row in rows]
        except (SQLAlchemyError, ValueError) as exc:
            logger.warning("Could not read tasks table (%s), using fallback tasks", exc)
            return fallback_tasks()

    def append(self, task: Task) -> None:
        with self._lock:
            try:
                with Session(self._engine) as session:
                    session.add(TaskRow.from_task(task))
                    session.commit()
            except IntegrityError as exc:
                raise StoreError(f"Task id {task.id!r} already exists") from exc
            except SQLAlchemyError as exc:
                raise StoreError(f"Cannot write task {task.id!r}: {exc}") from exc
