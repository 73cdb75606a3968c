# taskboard/db/models/__init__.py
"""
Database models package
Imports all models for easy access
"""

from taskboard.db.models.base import Base, TimestampMixin, UUIDMixin

from taskboard.db.models.enums import (
    Priority, TaskStatusFilter, TaskSortField, SortDirection
)

from taskboard.db.models.task import Task

__all__ = [
    # Base classes
    'Base', 'TimestampMixin', 'UUIDMixin',

    # Enums
    'Priority', 'TaskStatusFilter', 'TaskSortField', 'SortDirection',

    # Models
    'Task',
]
