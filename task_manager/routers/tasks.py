import logging
import math
from contextlib import contextmanager
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..database import get_db
from ..errors import StoreError
from ..models import Task as TaskModel, TaskPriority, TaskStatus, User
from ..schemas.task import SortOrder, TaskCreate, TaskSortField, TaskUpdate
from .auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_COLUMNS = {
    TaskSortField.CREATED_AT: TaskModel.created_at,
    TaskSortField.UPDATED_AT: TaskModel.updated_at,
    TaskSortField.DUE_DATE: TaskModel.due_date,
    TaskSortField.COMPLETED_AT: TaskModel.completed_at,
    TaskSortField.TITLE: TaskModel.title,
    TaskSortField.PRIORITY: TaskModel.priority,
    TaskSortField.STATUS: TaskModel.status,
}


@contextmanager
def _store_errors(db: Session, detail: str):
    """Re-raise store failures as StoreError carrying a client-safe message."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError(detail) from exc


def _get_owned_task(db: Session, task_id: UUID, current_user: User) -> TaskModel:
    task = db.exec(
        select(TaskModel).where(TaskModel.id == str(task_id), TaskModel.user_id == current_user.id)
    ).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


async def reject_update_operators(request: Request) -> None:
    """Refuse bodies carrying ``$``-prefixed keys before anything is validated."""
    try:
        body = await request.json()
    except ValueError:
        # malformed JSON is reported by body validation
        return
    if isinstance(body, dict) and any(str(key).startswith("$") for key in body):
        logger.warning("Rejected update with operator keys: %s", sorted(body))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Update operators are not allowed in the request body.",
        )


@router.get("")
def get_tasks(
    status_filter: Optional[TaskStatus] = Query(default=None, alias="status"),
    priority: Optional[TaskPriority] = None,
    sort_by: TaskSortField = Query(default=TaskSortField.CREATED_AT, alias="sortBy"),
    sort_order: SortOrder = Query(default=SortOrder.DESC, alias="sortOrder"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List the caller's tasks with filtering, sorting and pagination."""
    conditions = [TaskModel.user_id == current_user.id]
    if status_filter is not None:
        conditions.append(TaskModel.status == status_filter.value)
    if priority is not None:
        conditions.append(TaskModel.priority == priority.value)

    column = SORT_COLUMNS[sort_by]
    order = column.asc() if sort_order == SortOrder.ASC else column.desc()

    with _store_errors(db, "Failed to fetch tasks"):
        tasks = db.exec(
            select(TaskModel)
            .where(*conditions)
            .order_by(order, TaskModel.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        total = db.exec(select(func.count()).select_from(TaskModel).where(*conditions)).one()

    return {
        "tasks": [task.to_dict() for task in tasks],
        "pagination": {
            "current": page,
            "pages": math.ceil(total / limit),
            "total": total,
        },
    }


@router.get("/stats")
def get_task_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Count the caller's tasks by status and by priority."""
    owned = TaskModel.user_id == current_user.id
    with _store_errors(db, "Failed to fetch statistics"):
        status_rows = db.exec(
            select(TaskModel.status, func.count(TaskModel.id)).where(owned).group_by(TaskModel.status)
        ).all()
        priority_rows = db.exec(
            select(TaskModel.priority, func.count(TaskModel.id)).where(owned).group_by(TaskModel.priority)
        ).all()
        total = db.exec(select(func.count()).select_from(TaskModel).where(owned)).one()

    return {
        "statusStats": [{"_id": value, "count": count} for value, count in status_rows],
        "priorityStats": [{"_id": value, "count": count} for value, count in priority_rows],
        "total": total,
    }


@router.get("/{task_id}")
def get_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get a specific task by ID."""
    with _store_errors(db, "Failed to fetch task"):
        task = _get_owned_task(db, task_id, current_user)
    return {"task": task.to_dict()}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    task: TaskCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a new task owned by the caller."""
    db_task = TaskModel(**task.model_dump(), user_id=current_user.id)
    with _store_errors(db, "Failed to create task"):
        db.add(db_task)
        db.commit()
        db.refresh(db_task)

    logger.info("Task created: id=%s user_id=%s", db_task.id, current_user.id)
    return {"message": "Task created successfully", "task": db_task.to_dict()}


@router.put("/{task_id}")
def update_task(
    task_id: UUID,
    task_update: TaskUpdate,
    current_user: User = Depends(get_current_user),
    _: None = Depends(reject_update_operators),
    db: Session = Depends(get_db),
):
    """Update a specific task.

    Only the fields of ``TaskUpdate`` present in the body are written.
    """
    with _store_errors(db, "Failed to update task"):
        task = _get_owned_task(db, task_id, current_user)
        for field, value in task_update.update_data().items():
            setattr(task, field, value)
        db.add(task)
        db.commit()
        db.refresh(task)

    return {"message": "Task updated successfully", "task": task.to_dict()}


@router.delete("/{task_id}")
def delete_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a specific task."""
    with _store_errors(db, "Failed to delete task"):
        task = _get_owned_task(db, task_id, current_user)
        db.delete(task)
        db.commit()

    logger.info("Task deleted: id=%s user_id=%s", task_id, current_user.id)
    return {"message": "Task deleted successfully"}
