from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import event, inspect
from datetime import datetime
from typing import List

from ..security import hash_password
from .common import new_id, utcnow


class User(SQLModel, table=True):
    """User model for authentication and user management.

    ``password`` only ever holds a bcrypt hash once flushed: assigning a
    plaintext value is hashed by the before-insert/update hook below.
    """
    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=30)
    email: str = Field(unique=True, index=True)
    password: str
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relationship to tasks
    tasks: List["Task"] = Relationship(back_populates="user")


def _hash_password_if_modified(mapper, connection, target: User) -> None:
    if inspect(target).attrs.password.history.has_changes():
        target.password = hash_password(target.password)


def _touch_user(mapper, connection, target: User) -> None:
    _hash_password_if_modified(mapper, connection, target)
    target.updated_at = utcnow()


event.listen(User, "before_insert", _hash_password_if_modified)
event.listen(User, "before_update", _touch_user)
