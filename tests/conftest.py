"""
Global pytest configuration and fixtures for microtask testing.
"""

import sys
from pathlib import Path
from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

# Add the project root to sys.path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from microtask.server import config as config_module
from microtask.server import crud
from microtask.server.main import create_app
from microtask.server.models import TaskCreate, TaskRead
from tests.fixtures import MockDatabase, SampleDataGenerator


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point HOME, logs and the database at a per-test directory and reload configuration."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("MICROTASK_LOG_DIR", str(tmp_path / "logs"))
    for name in ("DATABASE_URL", "MICROTASK_DB", "MICROTASK_DEBUG", "LOG_LEVEL", "SERVER_PORT", "SERVER_HOST"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    config_module.reload_config()
    yield config_module.get_config()
    config_module._config = None


@pytest.fixture(scope="function")
def test_db(tmp_path):
    """Create a file-backed SQLite database with the schema applied."""
    db = MockDatabase(tmp_path)
    yield db
    db.dispose()


@pytest.fixture(scope="function")
def test_engine(test_db):
    return test_db.engine


@pytest.fixture(scope="function")
def test_session(test_engine):
    """Create a test database session."""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(scope="function")
def client(test_engine):
    """HTTP client over the app, sharing the test engine. Lifespan runs inside the context."""
    app = create_app(engine=test_engine)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def cook_dinner_data():
    return SampleDataGenerator.cook_dinner()


@pytest.fixture(scope="function")
def cook_dinner(test_session, cook_dinner_data) -> TaskRead:
    """The reference task, created through the repository."""
    return crud.create_task(test_session, TaskCreate(**cook_dinner_data))


@pytest.fixture(scope="function")
def backlog(test_session) -> List[TaskRead]:
    """Five tasks with mixed priority, due date and completion."""
    return [crud.create_task(test_session, TaskCreate(**data)) for data in SampleDataGenerator.mixed_backlog()]
