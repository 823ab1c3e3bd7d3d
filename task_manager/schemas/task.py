from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Optional
import enum

from ..models import TaskPriority, TaskStatus
from ..models.common import as_utc, utcnow


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class TaskSortField(str, enum.Enum):
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    DUE_DATE = "dueDate"
    COMPLETED_AT = "completedAt"
    TITLE = "title"
    PRIORITY = "priority"
    STATUS = "status"


def _validate_due_date(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    value = as_utc(value)
    if value < utcnow():
        raise ValueError("Due date cannot be in the past")
    return value


class TaskCreate(BaseModel):
    """Schema for creating new tasks. Unknown keys such as ``userId`` are dropped."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        use_enum_values=True,
        validate_default=True,
        populate_by_name=True,
    )

    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")

    @field_validator("due_date")
    @classmethod
    def due_date_not_in_past(cls, value):
        return _validate_due_date(value)


class TaskUpdate(BaseModel):
    """Schema for updating existing tasks.

    Only the fields declared here can ever reach the store.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        use_enum_values=True,
        populate_by_name=True,
    )

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")

    @field_validator("title", "priority", "status")
    @classmethod
    def not_null(cls, value):
        # defaults are not validated, so this only fires on an explicit null
        if value is None:
            raise ValueError("Field may not be null")
        return value

    @field_validator("due_date")
    @classmethod
    def due_date_not_in_past(cls, value):
        return _validate_due_date(value)

    def update_data(self) -> dict:
        return self.model_dump(exclude_unset=True)
