from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from taskdesk.models.tasks import TaskPriority, TaskStatus
from taskdesk.utils.sanitization import sanitize_string, blank_to_none
from taskdesk.utils.timeutils import as_utc


TaskSortKey = Literal["due_date", "priority", "status", "created_at"]
SortOrder = Literal["asc", "desc"]


# ── Common base for writeable fields ──
class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    category: str | None = Field(None, max_length=50)
    due_date: datetime
    estimated_hours: float | None = Field(None, ge=0)

    @field_validator("title", mode="before")
    @classmethod
    def sanitize_title(cls, v):
        return sanitize_string(v)

    @field_validator("description", "category", mode="before")
    @classmethod
    def sanitize_text(cls, v):
        return blank_to_none(v)

    @field_validator("due_date", mode="after")
    @classmethod
    def normalize_due_date(cls, v):
        return as_utc(v)


class TaskCreate(TaskBase):
    assigned_user_ids: list[int] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    """Only the fields present in the request body are applied."""
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    category: str | None = Field(None, max_length=50)
    due_date: datetime | None = None
    estimated_hours: float | None = Field(None, ge=0)
    actual_hours: float | None = Field(None, ge=0)
    assigned_user_ids: list[int] | None = None

    @field_validator("title", mode="before")
    @classmethod
    def sanitize_title(cls, v):
        return sanitize_string(v)

    @field_validator("description", "category", mode="before")
    @classmethod
    def sanitize_text(cls, v):
        return blank_to_none(v)

    @field_validator("due_date", mode="after")
    @classmethod
    def normalize_due_date(cls, v):
        return as_utc(v)


class TaskAssignee(BaseModel):
    user_id: int
    full_name: str
    username: str
    email: str
    role_name: str | None = None

    model_config = {"from_attributes": True}


class Task(BaseModel):
    task_id: int
    title: str
    description: str | None = None
    status: str
    priority: str
    category: str | None = None
    assigned_users: list[TaskAssignee] = []
    created_by_id: int
    created_by_name: str | None = None
    due_date: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None

    model_config = {"from_attributes": True}

    @field_validator("due_date", "created_at", "updated_at", "completed_at", mode="after")
    @classmethod
    def utc(cls, v):
        return as_utc(v)


# ── Stats ──
class UserTaskBreakdown(BaseModel):
    user_id: int
    full_name: str
    task_count: int
    completed_tasks: int


class TaskStats(BaseModel):
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    in_progress_tasks: int
    high_priority_tasks: int
    medium_priority_tasks: int
    low_priority_tasks: int
    overdue_tasks: int
    completion_rate: float
    user_breakdown: list[UserTaskBreakdown] | None = None
