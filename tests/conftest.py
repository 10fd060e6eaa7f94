"""Pytest fixtures for the task API."""

import os

# Keep the module-level app in taskapi.main off any real database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from taskapi.config import DatabaseConfig, Settings
from taskapi.db import Database
from taskapi.main import create_app


@pytest.fixture
def db_config(tmp_path):
    return DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}", create_schema=True)


@pytest.fixture
def unreachable_config(tmp_path):
    # The parent directory does not exist, so SQLite cannot open the file
    return DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'tasks.db'}")


@pytest.fixture
async def database(db_config):
    database = Database(db_config)
    await database.create_schema()
    yield database
    await database.dispose()


@pytest.fixture
def client(db_config):
    app = create_app(Settings(database=db_config))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def broken_client(unreachable_config):
    app = create_app(Settings(database=unreachable_config))
    with TestClient(app) as client:
        yield client
