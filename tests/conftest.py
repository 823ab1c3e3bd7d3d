import os

# Must be set before task_manager.config is imported
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET"] = "test-jwt-secret-key-for-testing-only"
os.environ["JWT_EXPIRATION"] = "1h"
os.environ["BCRYPT_SALT_ROUNDS"] = "4"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_SAMPLE_DATA"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from task_manager.database import get_db, get_db_health
from task_manager.main import app

from .helpers import FakeHealth, auth_headers, register


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def health():
    return FakeHealth()


@pytest.fixture()
def client(engine, health):
    """TestClient wired to a fresh in-memory database."""
    def override_get_db():
        session = Session(engine)
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_db_health] = lambda: health
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def alice(client):
    return register(client)


@pytest.fixture()
def alice_headers(alice):
    return auth_headers(alice["token"])
