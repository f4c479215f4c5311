# tasktracker/models.py
"""Task models for the task tracker API."""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class TaskCategory(str, Enum):
    work = "work"
    personal = "personal"
    shopping = "shopping"
    health = "health"
    learning = "learning"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Task(CamelModel):
    """A stored task record."""
    id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    completed: bool = False
    priority: TaskPriority
    category: TaskCategory
    created_at: str
    updated_at: str
    due_date: Optional[str] = None

    def to_json(self) -> dict:
        """Serialize with camelCase keys, leaving out unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CreateTaskRequest(CamelModel):
    """Schema for creating a task. Built only from an already validated body."""
    title: str
    description: Optional[str] = None
    priority: TaskPriority
    category: TaskCategory
    due_date: Optional[str] = None


class TaskFilters(BaseModel):
    """Optional predicates narrowing a task list. All set filters must match."""
    category: Optional[str] = None
    priority: Optional[str] = None
    completed: Optional[bool] = None
    search: Optional[str] = None


class TaskStats(CamelModel):
    total: int
    completed: int
    pending: int
    overdue: int
    by_priority: dict[TaskPriority, int]
    by_category: dict[TaskCategory, int]


class ApiResponse(BaseModel, Generic[T]):
    """Envelope used for every reply, successful or not."""
    data: T
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None

    def to_json(self) -> dict:
        """Serialize the envelope; ``data`` is always present, even when null."""
        if isinstance(self.data, BaseModel):
            data = self.data.model_dump(mode="json", by_alias=True, exclude_none=True)
        elif isinstance(self.data, list):
            data = [
                item.model_dump(mode="json", by_alias=True, exclude_none=True)
                for item in self.data
            ]
        else:
            data = self.data
        body = {"data": data, "success": self.success}
        if self.message is not None:
            body["message"] = self.message
        if self.error is not None:
            body["error"] = self.error
        return body
