import os

# Keep test runs from writing logs/errors.log
os.environ.setdefault("ERROR_LOG_FILE", "")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from imam_roster.services.db_service import db_service
from imam_roster.services.imam_service import ImamService
from imam_roster.services.settings_service import SettingsService


@pytest.fixture
def db_url(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'roster.db'}"
    db_service.configure(url)
    return url


@pytest_asyncio.fixture
async def session(db_url):
    await db_service.init_db()
    async with db_service.sessionmaker() as db_session:
        yield db_session
    await db_service.dispose()


@pytest_asyncio.fixture
async def roster(session):
    """Session with the window starting 2025-03-01."""
    await SettingsService(session).set_start_date("2025-03-01")
    return session


@pytest.fixture
def make_imam(session):
    async def _make(name="Ali", quota=3):
        return await ImamService(session).create_imam(name, quota)
    return _make


@pytest.fixture
def client(db_url):
    from imam_roster.main import app
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client):
    response = client.post("/api/admin/login", json={"username": "admin", "password": "admin123"})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
