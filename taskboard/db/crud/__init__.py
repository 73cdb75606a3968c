"""CRUD operations for database models"""
from .task import (
    get_task_by_id,
    get_tasks_by_ids,
    get_max_order_index,
    count_tasks,
    list_tasks,
    create_task,
    bulk_create_tasks,
    update_task,
    toggle_task_complete,
    bulk_set_completed,
    delete_task,
    bulk_delete_tasks,
    reorder_task,
    find_order_index_anomalies,
    compact_order_indexes,
    get_task_statistics
)
from . import task

__all__ = [
    # Reads
    "get_task_by_id",
    "get_tasks_by_ids",
    "get_max_order_index",
    "count_tasks",
    "list_tasks",
    # Writes
    "create_task",
    "bulk_create_tasks",
    "update_task",
    "toggle_task_complete",
    "bulk_set_completed",
    "delete_task",
    "bulk_delete_tasks",
    # Ordering
    "reorder_task",
    "find_order_index_anomalies",
    "compact_order_indexes",
    # Statistics
    "get_task_statistics"
]
