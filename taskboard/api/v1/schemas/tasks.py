# taskboard/api/v1/schemas/tasks.py
from pydantic import BaseModel, Field, StrictBool, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from taskboard.api.v1.schemas.common import CamelModel
from taskboard.db.models.enums import Priority, TaskStatusFilter, TaskSortField, SortDirection
from taskboard.db.models.task import TITLE_MAX_LENGTH, DESCRIPTION_MAX_LENGTH
from taskboard.utils.helpers import ensure_utc


def _clean_title(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Title is required")
    return value


class TaskBase(CamelModel):
    """Base schema for task"""
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH, description="Task title")
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH, description="Task description")
    due_date: Optional[datetime] = Field(None, description="Due date, required for high priority tasks")
    priority: Priority = Field(..., description="1 = low, 2 = medium, 3 = high")

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        return _clean_title(v)

    @field_validator('due_date')
    @classmethod
    def normalise_due_date(cls, v):
        return ensure_utc(v)


class TaskCreate(TaskBase):
    """Schema for creating a task; its position is always appended"""
    pass


class TaskUpdate(CamelModel):
    """Schema for a partial task update"""
    title: Optional[str] = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)
    due_date: Optional[datetime] = None
    priority: Optional[Priority] = None
    completed: Optional[StrictBool] = None

    @field_validator('title', 'priority', 'completed')
    @classmethod
    def reject_explicit_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        return _clean_title(v)

    @field_validator('due_date')
    @classmethod
    def normalise_due_date(cls, v):
        return ensure_utc(v)


class TaskResponse(CamelModel):
    """Task as returned by the API"""
    id: UUID
    title: str
    description: Optional[str] = None
    priority: Priority
    due_date: Optional[datetime] = None
    completed: bool
    completed_at: Optional[datetime] = None
    order_index: int
    created_at: datetime
    updated_at: datetime

    @field_validator('due_date', 'completed_at', 'created_at', 'updated_at')
    @classmethod
    def as_utc(cls, v):
        return ensure_utc(v)


class TaskReorderRequest(CamelModel):
    """Move one task to a new position"""
    task_id: UUID = Field(..., description="Task to move")
    new_order_index: int = Field(..., ge=0, description="Zero-based target position")


class BulkTaskCreate(CamelModel):
    """Schema for bulk creation; input order becomes position order"""
    tasks: List[TaskCreate] = Field(..., min_length=1)


class BulkTaskIds(CamelModel):
    """Schema for bulk operations addressed by task ID"""
    task_ids: List[UUID] = Field(..., min_length=1, description="List of task UUIDs")


class BulkCompleteRequest(BulkTaskIds):
    """Schema for bulk completion update"""
    completed: StrictBool = Field(..., description="New completion state for all tasks")


class PriorityBreakdown(CamelModel):
    priority: Priority
    label: str
    count: int


class TaskStatistics(CamelModel):
    """Aggregate figures for the dashboard"""
    total: int = Field(..., description="Total number of tasks")
    completed: int = Field(..., description="Number of completed tasks")
    pending: int = Field(..., description="Number of pending tasks")
    overdue: int = Field(..., description="Pending tasks past their due date")
    completion_rate: float = Field(..., description="Completed / total as a percentage, 2 dp")
    by_priority: List[PriorityBreakdown]


class TaskListFilters(BaseModel):
    """Query filters for task listings"""
    status: TaskStatusFilter = TaskStatusFilter.ALL
    priority: Optional[Priority] = None
    search: Optional[str] = Field(None, max_length=TITLE_MAX_LENGTH)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @field_validator('search')
    @classmethod
    def blank_search_is_none(cls, v):
        if v is not None:
            v = v.strip()
        return v or None

    @field_validator('date_from', 'date_to')
    @classmethod
    def normalise_dates(cls, v):
        return ensure_utc(v)

    @model_validator(mode='after')
    def check_date_range(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("dateFrom must not be after dateTo")
        return self


class TaskSort(BaseModel):
    """Sort options for task listings; ties fall back to list position"""
    field: TaskSortField = TaskSortField.ORDER_INDEX
    direction: SortDirection = SortDirection.ASC
