from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Index, event, inspect
from datetime import datetime
from typing import Optional
import enum

from .common import as_utc, new_id, utcnow


class TaskStatus(str, enum.Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Task(SQLModel, table=True):
    """Task owned by exactly one user.

    ``completed`` and ``completed_at`` are derived from ``status`` when the
    row is written; see ``_sync_completion``.
    """
    __tablename__ = "tasks"
    __table_args__ = (
        Index("user_tasks_by_date", "user_id", "created_at"),
        Index("user_tasks_by_status", "user_id", "status"),
        Index("user_tasks_by_priority", "user_id", "priority"),
        Index("user_tasks_by_due_date", "user_id", "due_date"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    title: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    priority: str = Field(default=TaskPriority.MEDIUM.value, max_length=10)
    status: str = Field(default=TaskStatus.PENDING.value, max_length=20)
    due_date: Optional[datetime] = None
    user_id: str = Field(foreign_key="users.id", nullable=False)
    completed: bool = Field(default=False)
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relationship back to user
    user: Optional["User"] = Relationship(back_populates="tasks")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "dueDate": _isoformat(self.due_date),
            "userId": self.user_id,
            "completed": self.completed,
            "completedAt": _isoformat(self.completed_at),
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value is not None else None


def _sync_completion(target: Task) -> None:
    if target.status == TaskStatus.COMPLETED.value:
        target.completed = True
        target.completed_at = utcnow()
    else:
        target.completed = False
        target.completed_at = None


def _before_insert(mapper, connection, target: Task) -> None:
    _sync_completion(target)


def _before_update(mapper, connection, target: Task) -> None:
    if inspect(target).attrs.status.history.has_changes():
        _sync_completion(target)
    target.updated_at = utcnow()


event.listen(Task, "before_insert", _before_insert)
event.listen(Task, "before_update", _before_update)
