# taskboard/api/v1/endpoints/tasks.py
"""Task management endpoints"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status, Path
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime
from uuid import UUID
from loguru import logger

from taskboard.db.database import get_db
from taskboard.db import crud
from taskboard.db.models import Priority, TaskStatusFilter, TaskSortField, SortDirection
from taskboard.api.v1.schemas.tasks import (
    TaskCreate, TaskUpdate, TaskResponse, TaskReorderRequest, BulkTaskCreate,
    BulkTaskIds, BulkCompleteRequest, TaskStatistics, TaskListFilters, TaskSort
)
from taskboard.core.pagination import PaginationParams, PaginatedResponse, get_pagination
from taskboard.exceptions.errors import TaskNotFoundError, TaskValidationError

router = APIRouter()


def get_task_filters(
    status_filter: TaskStatusFilter = Query(TaskStatusFilter.ALL, alias="status", description="all, completed or pending"),
    priority: Optional[Priority] = Query(None, description="1 = low, 2 = medium, 3 = high"),
    search: Optional[str] = Query(None, description="Case-insensitive match on title or description"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom", description="Due on or after"),
    date_to: Optional[datetime] = Query(None, alias="dateTo", description="Due on or before")
) -> TaskListFilters:
    """Dependency collecting the task list filters"""
    try:
        return TaskListFilters(
            status=status_filter,
            priority=priority,
            search=search,
            date_from=date_from,
            date_to=date_to
        )
    except ValidationError as e:
        raise TaskValidationError(e.errors()[0]["msg"].removeprefix("Value error, "))


def get_task_sort(
    sort_by: TaskSortField = Query(TaskSortField.ORDER_INDEX, alias="sortBy"),
    sort_order: SortDirection = Query(SortDirection.ASC, alias="sortOrder")
) -> TaskSort:
    return TaskSort(field=sort_by, direction=sort_order)


async def get_task_or_404(
    task_id: UUID = Path(..., description="Task UUID"),
    db: AsyncSession = Depends(get_db)
):
    task = await crud.get_task_by_id(db, task_id)
    if not task:
        raise TaskNotFoundError()
    return task


@router.get("", response_model=PaginatedResponse[TaskResponse])
async def list_tasks(
    request: Request,
    filters: TaskListFilters = Depends(get_task_filters),
    sort: TaskSort = Depends(get_task_sort),
    pagination: PaginationParams = Depends(get_pagination),
    db: AsyncSession = Depends(get_db)
):
    """List tasks with filters, sorting and pagination; defaults to list order"""
    return await crud.list_tasks(db, filters, sort, pagination, request=request)


@router.get("/statistics", response_model=TaskStatistics)
async def get_statistics(db: AsyncSession = Depends(get_db)):
    """Totals, overdue count, completion rate and per-priority counts"""
    return await crud.get_task_statistics(db)


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a new task at the end of the list"""
    try:
        task = await crud.create_task(db, task_data)
        return TaskResponse.model_validate(task)

    except (HTTPException, SQLAlchemyError):
        raise
    except Exception as e:
        logger.error(f"Failed to create task: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create task"
        )


@router.post("/bulk", response_model=List[TaskResponse], status_code=status.HTTP_201_CREATED)
async def bulk_create_tasks(
    bulk_data: BulkTaskCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create several tasks at once, appended in the given order"""
    tasks = await crud.bulk_create_tasks(db, bulk_data.tasks)
    return [TaskResponse.model_validate(task) for task in tasks]


@router.delete("/bulk", status_code=status.HTTP_204_NO_CONTENT)
async def bulk_delete_tasks(
    bulk_data: BulkTaskIds,
    db: AsyncSession = Depends(get_db)
):
    """Delete several tasks; nothing is deleted if any ID is unknown"""
    await crud.bulk_delete_tasks(db, bulk_data.task_ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/bulk/complete", response_model=List[TaskResponse])
async def bulk_set_completed(
    bulk_data: BulkCompleteRequest,
    db: AsyncSession = Depends(get_db)
):
    """Mark several tasks completed or pending"""
    tasks = await crud.bulk_set_completed(db, bulk_data.task_ids, bulk_data.completed)
    return [TaskResponse.model_validate(task) for task in tasks]


@router.post("/reorder", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_task(
    reorder_data: TaskReorderRequest,
    db: AsyncSession = Depends(get_db)
):
    """Move a task to a new position, shifting the tasks in between"""
    try:
        await crud.reorder_task(db, reorder_data.task_id, reorder_data.new_order_index)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    except (HTTPException, SQLAlchemyError):
        raise
    except Exception as e:
        logger.error(f"Failed to reorder task {reorder_data.task_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reorder task"
        )


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task=Depends(get_task_or_404)):
    """Get a specific task"""
    return TaskResponse.model_validate(task)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_update: TaskUpdate,
    task=Depends(get_task_or_404),
    db: AsyncSession = Depends(get_db)
):
    """Update a task; only the supplied fields change"""
    try:
        updated_task = await crud.update_task(db, task, task_update)
        return TaskResponse.model_validate(updated_task)

    except (HTTPException, SQLAlchemyError):
        raise
    except Exception as e:
        logger.error(f"Failed to update task {task.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update task"
        )


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: UUID = Path(..., description="Task UUID"),
    db: AsyncSession = Depends(get_db)
):
    """Delete a task and close the gap it leaves in the list"""
    await crud.delete_task(db, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{task_id}/complete", response_model=TaskResponse)
async def toggle_task_complete(
    task=Depends(get_task_or_404),
    db: AsyncSession = Depends(get_db)
):
    """Flip a task between completed and pending"""
    updated_task = await crud.toggle_task_complete(db, task)
    return TaskResponse.model_validate(updated_task)
