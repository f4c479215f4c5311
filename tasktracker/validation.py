# tasktracker/validation.py
"""Validation of task creation requests and construction of new tasks."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from tasktracker.models import CreateTaskRequest, Task, TaskCategory, TaskPriority
from tasktracker.query import parse_timestamp
from tasktracker.store import TaskStore

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000


class TaskValidationError(ValueError):
    """A creation request broke one or more rules.

    ``errors`` holds every violated rule, in check order.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Validation failed: {', '.join(self.errors)}")


def _allowed(enum_cls) -> str:
    return ", ".join(member.value for member in enum_cls)


def _check_choice(errors: list[str], label: str, value: Any, enum_cls) -> None:
    if value is None or value == "":
        errors.append(f"{label} is required")
    elif value not in [member.value for member in enum_cls]:
        errors.append(f"{label} must be one of: {_allowed(enum_cls)}")


def validate_task_request(body: Any) -> list[str]:
    """Check a decoded JSON body against the creation rules.

    Every rule is checked and every violation reported; an empty list means
    the body is valid. Due dates in the past are accepted.
    """
    if not isinstance(body, dict):
        return ["Request body must be a JSON object"]

    errors: list[str] = []

    title = body.get("title")
    if title is None or title == "":
        errors.append("Title is required")
    elif not isinstance(title, str):
        errors.append("Title must be a string")
    elif not title.strip():
        errors.append("Title cannot be empty")
    elif len(title.strip()) > MAX_TITLE_LENGTH:
        errors.append(f"Title must be at most {MAX_TITLE_LENGTH} characters")

    description = body.get("description")
    if description is not None:
        if not isinstance(description, str):
            errors.append("Description must be a string")
        elif len(description) > MAX_DESCRIPTION_LENGTH:
            errors.append(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")

    _check_choice(errors, "Priority", body.get("priority"), TaskPriority)
    _check_choice(errors, "Category", body.get("category"), TaskCategory)

    due_date = body.get("dueDate")
    if due_date is not None and due_date != "":
        if not isinstance(due_date, str):
            errors.append("Due date must be a valid ISO date string")
        else:
            try:
                parse_timestamp(due_date)
            except ValueError:
                errors.append("Due date must be a valid ISO date string")

    return errors


def generate_id() -> str:
    return uuid.uuid4().hex


def _iso_now(now: datetime) -> str:
    """Format as UTC with millisecond precision and a ``Z`` suffix."""
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_task(request: CreateTaskRequest, now: Optional[datetime] = None) -> Task:
    """Synthesize a new, not yet stored task from a valid request."""
    timestamp = _iso_now(now or datetime.now(timezone.utc))
    description = request.description.strip() if request.description else None
    return Task(
        id=generate_id(),
        title=request.title.strip(),
        description=description or None,
        completed=False,
        priority=request.priority,
        category=request.category,
        created_at=timestamp,
        updated_at=timestamp,
        due_date=request.due_date or None,
    )


def create_task(body: Any, store: TaskStore, now: Optional[datetime] = None) -> Task:
    """Validate ``body``, build the task, and append it to ``store``.

    Raises:
        TaskValidationError: If any rule is broken. Nothing is stored.
        StoreError: If the store cannot persist the task.
    """
    errors = validate_task_request(body)
    if errors:
        raise TaskValidationError(errors)

    # Only the keys checked above reach the request; snake_case spellings are ignored.
    request = CreateTaskRequest(
        title=body["title"],
        description=body.get("description"),
        priority=body["priority"],
        category=body["category"],
        due_date=body.get("dueDate") or None,
    )
    task = build_task(request, now)
    store.append(task)
    logger.info("Created task %s (%s/%s)", task.id, task.priority.value, task.category.value)
    return task
