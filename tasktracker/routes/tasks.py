# tasktracker/routes/tasks.py
"""List, create and summarize tasks."""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from tasktracker.models import ApiResponse
from tasktracker.query import apply_filters, compute_stats, parse_filters, summarize
from tasktracker.store import TaskStore
from tasktracker.validation import TaskValidationError, create_task

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def get_store(request: Request) -> TaskStore:
    """Return the process-wide store built at startup."""
    return request.app.state.store


def _reply(response: ApiResponse, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=response.to_json(), status_code=status_code)


@router.get("")
def list_tasks(
    category: Optional[str] = None,
    priority: Optional[str] = None,
    completed: Optional[str] = None,
    search: Optional[str] = None,
    store: TaskStore = Depends(get_store),
) -> JSONResponse:
    """List tasks, optionally filtered by category, priority, completion and text."""
    try:
        tasks = store.load_all()
        filters = parse_filters(category, priority, completed, search)
        found = apply_filters(tasks, filters)
    except Exception:
        logger.exception("Listing tasks failed")
        return _reply(
            ApiResponse(data=[], success=False, error="Failed to fetch tasks"),
            status_code=500,
        )
    return _reply(
        ApiResponse(data=found, success=True, message=summarize(len(tasks), len(found)))
    )


@router.post("")
async def create_task_endpoint(
    request: Request, store: TaskStore = Depends(get_store)
) -> JSONResponse:
    """Create a task from a JSON body. All validation errors are reported at once."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None

    try:
        task = await asyncio.to_thread(create_task, body, store)
    except TaskValidationError as exc:
        return _reply(ApiResponse(data=None, success=False, error=str(exc)), status_code=400)
    except Exception:
        logger.exception("Creating task failed")
        return _reply(
            ApiResponse(data=None, success=False, error="Failed to create task"),
            status_code=500,
        )
    return _reply(
        ApiResponse(data=task, success=True, message="Task created successfully"),
        status_code=201,
    )


@router.get("/stats")
def task_stats(store: TaskStore = Depends(get_store)) -> JSONResponse:
    """Counts of all tasks by completion, overdue state, priority and category."""
    try:
        stats = compute_stats(store.load_all())
    except Exception:
        logger.exception("Computing task stats failed")
        return _reply(
            ApiResponse(data=None, success=False, error="Failed to compute task stats"),
            status_code=500,
        )
    return _reply(ApiResponse(data=stats, success=True))
