# taskboard/db/crud/task.py
"""
Task persistence and order maintenance.

Each task holds a position in ``order_index``. With N tasks stored the
positions are exactly 0..N-1: appends take the next trailing position,
moves shift only the rows between the old and new position, and deletes
close the gap they leave (unless COMPACT_ORDER_ON_DELETE is off). Every
write that touches positions takes the ordering lock first and commits
as a single transaction, so readers never see duplicates or holes.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_, text
from sqlalchemy.sql import Select
from typing import Optional, List, Dict, Any, Sequence
from uuid import UUID
from datetime import datetime
from fastapi import Request
from loguru import logger

from taskboard.api.v1.schemas.tasks import (
    TaskCreate, TaskUpdate, TaskResponse, TaskListFilters, TaskSort, TaskStatistics
)
from taskboard.core.config import settings
from taskboard.core.pagination import AutoPaginator, PaginatedResponse, PaginationParams
from taskboard.db.models import Task, TaskStatusFilter, TaskSortField, SortDirection
from taskboard.exceptions.errors import TaskNotFoundError, TaskValidationError
from taskboard.services.statistics import build_task_statistics
from taskboard.utils.helpers import utc_now, truncate_string, clean_dict
from taskboard.utils.validators import TaskRuleValidator

# Key of the PostgreSQL advisory lock guarding the order_index column
ORDER_LOCK_KEY = 0x7461736B

SORT_COLUMNS = {
    TaskSortField.DUE_DATE: Task.due_date,
    TaskSortField.PRIORITY: Task.priority,
    TaskSortField.CREATED_AT: Task.created_at,
    TaskSortField.TITLE: Task.title,
    TaskSortField.ORDER_INDEX: Task.order_index,
}


# ---------------------------------------------------------------------------
# Ordering primitives
# ---------------------------------------------------------------------------

async def acquire_order_lock(db: AsyncSession) -> None:
    """
    Serialise writers of order_index until the current transaction ends.

    PostgreSQL takes a transaction-scoped advisory lock. SQLite has one
    writer per database; an empty UPDATE opens the write transaction now,
    so the reads that follow already happen under that lock.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        await db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": ORDER_LOCK_KEY})
    elif dialect == "sqlite":
        await db.execute(text("UPDATE tasks SET order_index = order_index WHERE 1 = 0"))
    else:
        logger.warning(f"No ordering lock available for dialect {dialect}")


async def get_max_order_index(db: AsyncSession) -> int:
    """Highest occupied position, -1 when there are no tasks"""
    return await db.scalar(select(func.coalesce(func.max(Task.order_index), -1)))


async def count_tasks(db: AsyncSession) -> int:
    return await db.scalar(select(func.count(Task.id))) or 0


async def _shift_range(db: AsyncSession, lower: int, upper: Optional[int], delta: int) -> int:
    """Add ``delta`` to every order_index in [lower, upper]; upper=None is unbounded"""
    conditions = [Task.order_index >= lower]
    if upper is not None:
        conditions.append(Task.order_index <= upper)

    result = await db.execute(
        update(Task)
        .where(*conditions)
        .values(order_index=Task.order_index + delta, updated_at=Task.updated_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def _set_order_index(db: AsyncSession, task_id: UUID, order_index: int) -> None:
    await db.execute(
        update(Task)
        .where(Task.id == task_id)
        .values(order_index=order_index, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )


async def _compact(db: AsyncSession) -> int:
    """Renumber positions to 0..N-1 keeping the current order; returns rows moved"""
    result = await db.execute(select(Task.id, Task.order_index).order_by(Task.order_index.asc(), Task.id.asc()))
    moved = 0
    for position, (task_id, order_index) in enumerate(result.all()):
        if order_index != position:
            await _set_order_index(db, task_id, position)
            moved += 1
    return moved


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_task_by_id(db: AsyncSession, task_id: UUID) -> Optional[Task]:
    """Get task by id, always reflecting the current row"""
    result = await db.execute(
        select(Task)
        .where(Task.id == task_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_tasks_by_ids(db: AsyncSession, task_ids: Sequence[UUID]) -> List[Task]:
    """Fetch the given tasks, raising TaskNotFoundError naming any that are missing"""
    result = await db.execute(
        select(Task)
        .where(Task.id.in_(task_ids))
        .order_by(Task.order_index.asc())
        .execution_options(populate_existing=True)
    )
    tasks = list(result.scalars().all())

    found = {task.id for task in tasks}
    missing = [str(task_id) for task_id in task_ids if task_id not in found]
    if missing:
        raise TaskNotFoundError(f"Tasks not found: {', '.join(missing)}")
    return tasks


def build_task_query(filters: TaskListFilters, sort: TaskSort) -> Select:
    """Translate list filters and sort options into a select()"""
    query = select(Task)

    if filters.status == TaskStatusFilter.COMPLETED:
        query = query.where(Task.completed.is_(True))
    elif filters.status == TaskStatusFilter.PENDING:
        query = query.where(Task.completed.is_(False))

    if filters.priority is not None:
        query = query.where(Task.priority == int(filters.priority))

    if filters.search:
        pattern = f"%{filters.search}%"
        query = query.where(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    if filters.date_from is not None:
        query = query.where(Task.due_date >= filters.date_from)
    if filters.date_to is not None:
        query = query.where(Task.due_date <= filters.date_to)

    column = SORT_COLUMNS[sort.field]
    ordering = column.desc() if sort.direction == SortDirection.DESC else column.asc()
    if sort.field == TaskSortField.DUE_DATE:
        ordering = ordering.nulls_last()

    query = query.order_by(ordering)
    if sort.field != TaskSortField.ORDER_INDEX:
        query = query.order_by(Task.order_index.asc())
    return query.order_by(Task.id.asc())


async def list_tasks(
        db: AsyncSession,
        filters: TaskListFilters,
        sort: TaskSort,
        pagination: PaginationParams,
        request: Optional[Request] = None
) -> PaginatedResponse:
    """List tasks with filters, sorting and pagination"""
    logger.debug(f"Listing tasks: filters={clean_dict(filters.model_dump(mode='json'))} sort={sort.field.value} {sort.direction.value}")
    query = build_task_query(filters, sort)
    return await AutoPaginator.paginate(db, query, pagination, response_schema=TaskResponse, request=request)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_task(db: AsyncSession, task_data: TaskCreate) -> Task:
    """Create a task at the end of the ordering"""
    is_valid, message = TaskRuleValidator.validate_create(task_data.model_dump())
    if not is_valid:
        raise TaskValidationError(message)

    try:
        await acquire_order_lock(db)
        next_order = await get_max_order_index(db) + 1

        task = Task(
            title=task_data.title,
            description=task_data.description,
            priority=int(task_data.priority),
            due_date=task_data.due_date,
            completed=False,
            order_index=next_order
        )

        db.add(task)
        await db.commit()
        await db.refresh(task)

        logger.info(f"Task created: '{truncate_string(task.title, 40)}' at position {task.order_index}")
        return task

    except Exception as e:
        logger.error(f"Failed to create task: {e}")
        await db.rollback()
        raise


async def bulk_create_tasks(db: AsyncSession, tasks_data: Sequence[TaskCreate]) -> List[Task]:
    """Create several tasks; they take consecutive trailing positions in input order"""
    if not tasks_data:
        raise TaskValidationError("tasks must be a non-empty array")
    if len(tasks_data) > settings.MAX_BULK_CREATE:
        raise TaskValidationError(f"Cannot create more than {settings.MAX_BULK_CREATE} tasks at once")

    for index, task_data in enumerate(tasks_data):
        is_valid, message = TaskRuleValidator.validate_create(task_data.model_dump())
        if not is_valid:
            raise TaskValidationError(f"Task at index {index}: {message}")

    try:
        await acquire_order_lock(db)
        start = await get_max_order_index(db) + 1

        tasks = [
            Task(
                title=task_data.title,
                description=task_data.description,
                priority=int(task_data.priority),
                due_date=task_data.due_date,
                completed=False,
                order_index=start + offset
            )
            for offset, task_data in enumerate(tasks_data)
        ]
        db.add_all(tasks)
        await db.commit()

        created = await get_tasks_by_ids(db, [task.id for task in tasks])
        logger.info(f"Bulk created {len(created)} tasks at positions {start}..{start + len(created) - 1}")
        return created

    except Exception as e:
        logger.error(f"Failed to bulk create tasks: {e}")
        await db.rollback()
        raise


def _apply_completion(task: Task, completed: bool) -> None:
    """Set completion state; completed_at follows the false/true transitions"""
    if completed and not task.completed:
        task.completed_at = utc_now()
    elif not completed and task.completed:
        task.completed_at = None
    task.completed = completed


async def update_task(db: AsyncSession, task: Task, updates: TaskUpdate) -> Task:
    """Update task details; only fields present in the request change"""
    update_data = updates.model_dump(exclude_unset=True)

    is_valid, message = TaskRuleValidator.validate_update(task, update_data)
    if not is_valid:
        raise TaskValidationError(message)

    try:
        if 'completed' in update_data:
            _apply_completion(task, update_data.pop('completed'))

        for field, value in update_data.items():
            if field == 'priority':
                value = int(value)
            setattr(task, field, value)

        await db.commit()
        await db.refresh(task)

        logger.info(f"Task {task.id} updated: {', '.join(sorted(updates.model_fields_set)) or 'no fields'}")
        return task

    except Exception as e:
        logger.error(f"Failed to update task {task.id}: {e}")
        await db.rollback()
        raise


async def toggle_task_complete(db: AsyncSession, task: Task) -> Task:
    """Flip the completion state of a task"""
    try:
        _apply_completion(task, not task.completed)
        await db.commit()
        await db.refresh(task)

        logger.info(f"Task {task.id} marked {'completed' if task.completed else 'pending'}")
        return task

    except Exception as e:
        logger.error(f"Failed to toggle task {task.id}: {e}")
        await db.rollback()
        raise


async def bulk_set_completed(db: AsyncSession, task_ids: Sequence[UUID], completed: bool) -> List[Task]:
    """Set the completion state of several tasks; all must exist"""
    is_valid, message = TaskRuleValidator.validate_task_ids(task_ids)
    if not is_valid:
        raise TaskValidationError(message)

    try:
        tasks = await get_tasks_by_ids(db, task_ids)
        for task in tasks:
            _apply_completion(task, completed)

        await db.commit()
        for task in tasks:
            await db.refresh(task)

        logger.info(f"Bulk marked {len(tasks)} tasks {'completed' if completed else 'pending'}")
        return tasks

    except TaskNotFoundError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Failed to bulk update task completion: {e}")
        await db.rollback()
        raise


async def delete_task(db: AsyncSession, task_id: UUID, compact: Optional[bool] = None) -> None:
    """
    Delete a task. With compaction on, every task after it moves up one
    position in the same transaction.
    """
    if compact is None:
        compact = settings.COMPACT_ORDER_ON_DELETE

    try:
        await acquire_order_lock(db)
        task = await get_task_by_id(db, task_id)
        if task is None:
            raise TaskNotFoundError()

        position = task.order_index
        await db.delete(task)
        await db.flush()

        shifted = await _shift_range(db, position + 1, None, -1) if compact else 0
        await db.commit()

        logger.info(f"Task {task_id} deleted from position {position}; {shifted} tasks moved up")

    except TaskNotFoundError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Failed to delete task {task_id}: {e}")
        await db.rollback()
        raise


async def bulk_delete_tasks(db: AsyncSession, task_ids: Sequence[UUID], compact: Optional[bool] = None) -> int:
    """Delete several tasks as one unit; nothing is deleted if any is missing"""
    is_valid, message = TaskRuleValidator.validate_task_ids(task_ids)
    if not is_valid:
        raise TaskValidationError(message)

    if compact is None:
        compact = settings.COMPACT_ORDER_ON_DELETE

    try:
        await acquire_order_lock(db)
        tasks = await get_tasks_by_ids(db, task_ids)
        for task in tasks:
            await db.delete(task)
        await db.flush()

        moved = await _compact(db) if compact else 0
        await db.commit()

        logger.info(f"Bulk deleted {len(tasks)} tasks; {moved} tasks renumbered")
        return len(tasks)

    except TaskNotFoundError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Failed to bulk delete tasks: {e}")
        await db.rollback()
        raise


async def reorder_task(
        db: AsyncSession,
        task_id: UUID,
        new_order_index: int,
        clamp: Optional[bool] = None
) -> int:
    """
    Move a task to ``new_order_index``, returning the position it ends up at.

    Moving later shifts the tasks in (current, target] up by one; moving
    earlier shifts [target, current) down by one. Only the rows between
    the two positions are touched. With clamping on, targets past the end
    land on the last position.
    """
    if new_order_index < 0:
        raise TaskValidationError("Order index must be non-negative")
    if clamp is None:
        clamp = settings.CLAMP_REORDER_INDEX

    try:
        await acquire_order_lock(db)
        task = await get_task_by_id(db, task_id)
        if task is None:
            raise TaskNotFoundError()

        current_order = task.order_index
        target = new_order_index
        if clamp:
            target = min(target, max(await count_tasks(db) - 1, 0))

        if target == current_order:
            await db.commit()
            logger.debug(f"Task {task_id} already at position {target}")
            return target

        if target > current_order:
            shifted = await _shift_range(db, current_order + 1, target, -1)
        else:
            shifted = await _shift_range(db, target, current_order - 1, 1)

        await _set_order_index(db, task_id, target)
        await db.commit()

        logger.info(f"Task {task_id} moved {current_order} -> {target}; {shifted} tasks shifted")
        return target

    except TaskNotFoundError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Failed to reorder task {task_id}: {e}")
        await db.rollback()
        raise


# ---------------------------------------------------------------------------
# Maintenance and statistics
# ---------------------------------------------------------------------------

async def find_order_index_anomalies(db: AsyncSession) -> Dict[str, Any]:
    """Report positions missing from 0..N-1 and positions held by more than one task"""
    result = await db.execute(
        select(Task.order_index, func.count(Task.id))
        .group_by(Task.order_index)
        .order_by(Task.order_index)
    )
    counts = dict(result.all())
    total = sum(counts.values())

    missing = [position for position in range(total) if position not in counts]
    duplicates = [position for position, count in counts.items() if count > 1]
    out_of_range = [position for position in counts if position < 0 or position >= total]

    return {
        "total": total,
        "missing": missing,
        "duplicates": duplicates,
        "out_of_range": out_of_range,
        "is_dense": not (missing or duplicates or out_of_range),
    }


async def compact_order_indexes(db: AsyncSession) -> int:
    """Renumber all positions densely, keeping their relative order"""
    try:
        await acquire_order_lock(db)
        moved = await _compact(db)
        await db.commit()
        logger.info(f"Order index compaction moved {moved} tasks")
        return moved

    except Exception as e:
        logger.error(f"Failed to compact order indexes: {e}")
        await db.rollback()
        raise


async def get_task_statistics(db: AsyncSession, now: Optional[datetime] = None) -> TaskStatistics:
    """Count tasks by completion, overdue state and priority"""
    now = now or utc_now()

    total = await count_tasks(db)
    completed = await db.scalar(
        select(func.count(Task.id)).where(Task.completed.is_(True))
    )
    overdue = await db.scalar(
        select(func.count(Task.id)).where(
            Task.completed.is_(False),
            Task.due_date.is_not(None),
            Task.due_date < now
        )
    )
    by_priority = await db.execute(
        select(Task.priority, func.count(Task.id)).group_by(Task.priority)
    )

    return build_task_statistics(
        total=total,
        completed=completed or 0,
        overdue=overdue or 0,
        priority_counts=dict(by_priority.all())
    )
