"""Demo data for a fresh development database."""
import logging
from datetime import timedelta

from sqlalchemy import func
from sqlmodel import Session, select

from .models import Task, TaskPriority, TaskStatus, User
from .models.common import utcnow

logger = logging.getLogger(__name__)

DEMO_USERNAME = "demo_user"
DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "demo123456"


def create_sample_data(session: Session) -> bool:
    """Insert the demo user with a few tasks if the store holds no tasks.

    The tasks always go to the demo account, created here when missing.

    Returns True when anything was created.
    """
    user_count = session.exec(select(func.count()).select_from(User)).one()
    task_count = session.exec(select(func.count()).select_from(Task)).one()
    if user_count and task_count:
        logger.info("Sample data already exists, skipping creation")
        return False

    user = session.exec(select(User).where(User.username == DEMO_USERNAME)).first()
    if user is None:
        user = User(username=DEMO_USERNAME, email=DEMO_EMAIL, password=DEMO_PASSWORD)
        session.add(user)
        logger.info("Sample user created: %s", DEMO_USERNAME)

    if not task_count:
        session.add_all([
            Task(
                title="Explore the task list",
                description="Filter by status and priority, then sort by due date",
                priority=TaskPriority.HIGH.value,
                status=TaskStatus.COMPLETED.value,
                user_id=user.id,
            ),
            Task(
                title="Plan the week",
                description="Add tasks with due dates for the coming days",
                priority=TaskPriority.HIGH.value,
                status=TaskStatus.IN_PROGRESS.value,
                due_date=utcnow() + timedelta(days=1),
                user_id=user.id,
            ),
            Task(
                title="Check task statistics",
                priority=TaskPriority.LOW.value,
                user_id=user.id,
            ),
        ])
        logger.info("Sample tasks created for user %s", user.id)

    session.commit()
    return True
