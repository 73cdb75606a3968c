"""
Pytest configuration and fixtures for Taskboard API tests
"""
import os

# Must be set before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from datetime import timedelta
from typing import AsyncGenerator, List
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from taskboard.main import app
from taskboard.db.database import get_db, Base
from taskboard.db.models import Task, Priority
from taskboard.utils.helpers import utc_now

TASKS_URL = "/api/tasks"


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database and session for each test"""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestSessionLocal = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False
    )
    async with TestSessionLocal() as session:
        yield session

    await test_engine.dispose()


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database session override"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def future(days: int = 7) -> str:
    """ISO timestamp ``days`` from now"""
    return (utc_now() + timedelta(days=days)).isoformat().replace("+00:00", "Z")


@pytest.fixture
def task_payload():
    """Factory for valid create payloads"""
    def make(title: str = "Write tests", priority: int = 2, **extra):
        payload = {"title": title, "priority": priority}
        if priority == Priority.HIGH and "dueDate" not in extra:
            payload["dueDate"] = future()
        payload.update(extra)
        return payload
    return make


@pytest.fixture
def create_tasks(client: AsyncClient, task_payload):
    """Create tasks through the API, one per title, returning their JSON"""
    async def create(*titles: str) -> List[dict]:
        created = []
        for title in titles:
            response = await client.post(TASKS_URL, json=task_payload(title))
            assert response.status_code == 201, response.text
            created.append(response.json())
        return created
    return create


@pytest.fixture
def board_titles(db_session: AsyncSession):
    """Titles in board order"""
    async def titles() -> List[str]:
        result = await db_session.execute(select(Task.title).order_by(Task.order_index, Task.id))
        return list(result.scalars().all())
    return titles


@pytest.fixture
def board_indexes(db_session: AsyncSession):
    """Sorted order_index values currently stored"""
    async def indexes() -> List[int]:
        result = await db_session.execute(select(Task.order_index).order_by(Task.order_index))
        return list(result.scalars().all())
    return indexes
