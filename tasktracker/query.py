# tasktracker/query.py
"""Filtering and summaries over task lists. Everything here is pure."""

from datetime import datetime, timezone
from typing import Iterable, Optional

from tasktracker.models import Task, TaskCategory, TaskFilters, TaskPriority, TaskStats


def parse_filters(
    category: Optional[str] = None,
    priority: Optional[str] = None,
    completed: Optional[str] = None,
    search: Optional[str] = None,
) -> TaskFilters:
    """Build filters from raw query parameters.

    Empty strings count as absent. ``completed`` only recognises ``"true"``
    and ``"false"``; anything else leaves the completion filter unset.
    """
    if completed == "true":
        completed_flag: Optional[bool] = True
    elif completed == "false":
        completed_flag = False
    else:
        completed_flag = None
    return TaskFilters(
        category=category or None,
        priority=priority or None,
        completed=completed_flag,
        search=search or None,
    )


def matches(task: Task, filters: TaskFilters) -> bool:
    """Return True when the task satisfies every filter that is set."""
    if filters.category is not None and task.category.value != filters.category:
        return False
    if filters.priority is not None and task.priority.value != filters.priority:
        return False
    if filters.completed is not None and task.completed != filters.completed:
        return False
    if filters.search:
        needle = filters.search.lower()
        in_title = needle in task.title.lower()
        in_description = task.description is not None and needle in task.description.lower()
        if not (in_title or in_description):
            return False
    return True


def apply_filters(tasks: Iterable[Task], filters: TaskFilters) -> list[Task]:
    """Return the tasks matching ``filters``, keeping their original order."""
    return [task for task in tasks if matches(task, filters)]


def summarize(total: int, found: int) -> str:
    message = f"Found {found} tasks"
    if found != total:
        message += f" (filtered from {total} total)"
    return message


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 date or date-time. Naive values are taken as UTC.

    Raises:
        ValueError: If ``value`` is not a valid ISO-8601 date/time.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_overdue(task: Task, now: datetime) -> bool:
    if task.completed or not task.due_date:
        return False
    try:
        return parse_timestamp(task.due_date) < now
    except ValueError:
        return False


def compute_stats(tasks: Iterable[Task], now: Optional[datetime] = None) -> TaskStats:
    """Count tasks by completion, due state, priority and category."""
    now = now or datetime.now(timezone.utc)
    by_priority = {priority: 0 for priority in TaskPriority}
    by_category = {category: 0 for category in TaskCategory}
    total = completed = overdue = 0
    for task in tasks:
        total += 1
        if task.completed:
            completed += 1
        if is_overdue(task, now):
            overdue += 1
        by_priority[task.priority] += 1
        by_category[task.category] += 1
    return TaskStats(
        total=total,
        completed=completed,
        pending=total - completed,
        overdue=overdue,
        by_priority=by_priority,
        by_category=by_category,
    )
