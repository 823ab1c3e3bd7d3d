import logging
from contextlib import contextmanager

from fastapi import Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session, SQLModel, create_engine

from .config import DATABASE_URL

# Import all models to ensure they are registered with SQLModel metadata
from .models import Task, User  # noqa: F401

logger = logging.getLogger(__name__)


def _create_engine(url: str = DATABASE_URL) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=10,
    )


engine = _create_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=Session)


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_session():
    """Get a database session (context manager style).

    This is a convenience function for use outside of FastAPI dependencies.
    Usage:
        with get_session() as session:
            # do something with session
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def create_tables(bind: Engine = None):
    """Create all database tables."""
    SQLModel.metadata.create_all(bind=bind or engine)


class DatabaseHealth:
    """Connectivity check for an engine.

    ``is_connected`` pings the database and remembers the last outcome so
    that transitions are logged once rather than on every request.
    """

    def __init__(self, bind: Engine):
        self.bind = bind
        self.connected = False

    def ping(self) -> bool:
        try:
            with self.bind.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            if self.connected:
                logger.warning("Database disconnected: %s", exc)
            self.connected = False
            return False
        if not self.connected:
            logger.info("Database connected")
        self.connected = True
        return True

    def is_connected(self) -> bool:
        return self.ping()


db_health = DatabaseHealth(engine)


def get_db_health() -> DatabaseHealth:
    """Dependency returning the process-wide health check."""
    return db_health


def require_database(health: DatabaseHealth = Depends(get_db_health)) -> None:
    """Reject API requests with 503 while the database is unreachable."""
    if not health.is_connected():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable: database not connected",
        )
