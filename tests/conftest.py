"""Shared fixtures: in-memory SQLite database, app client and user factories."""

import os

# Settings are cached on first use, so the environment must be set before any
# taskboard import.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from taskboard.db.base import Base
from taskboard.db.session import get_db_session
from taskboard.main import create_app
from taskboard.models.enums import UserRole
from taskboard.models.user import User
from taskboard.repositories import (
    NotificationRepository,
    ProjectRepository,
    UserRepository,
    WorkItemLogRepository,
    WorkItemRepository,
)
from taskboard.services import security
from taskboard.services.notification import NotificationService
from taskboard.services.project import ProjectService
from taskboard.services.realtime import ConnectionManager, RealtimeNotifier
from taskboard.services.work_item import WorkItemService


class FakeConnection:
    """Records everything pushed to it; optionally fails on send."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict[str, Any]] = []
        self.fail = fail
        self.closed_with: int | None = None

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def events(self, name: str) -> list[Any]:
        return [message["payload"] for message in self.sent if message["type"] == name]


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def notification_service(db, manager) -> NotificationService:
    return NotificationService(
        NotificationRepository(db),
        ProjectRepository(db),
        notifier=RealtimeNotifier(manager),
    )


@pytest.fixture
def project_service(db, notification_service) -> ProjectService:
    return ProjectService(
        ProjectRepository(db),
        UserRepository(db),
        WorkItemRepository(db),
        notification_service,
    )


@pytest.fixture
def work_item_service(db, notification_service) -> WorkItemService:
    return WorkItemService(
        WorkItemRepository(db),
        WorkItemLogRepository(db),
        ProjectRepository(db),
        UserRepository(db),
        notification_service,
    )


@pytest.fixture
def make_user(db) -> Callable[..., Any]:
    """Factory creating persisted users; password is always 'Secret123'."""
    counter = {"n": 0}

    async def _make_user(
        role: UserRole = UserRole.DEVELOPER,
        first_name: str | None = None,
        last_name: str = "Tester",
        email: str | None = None,
        is_active: bool = True,
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        return await UserRepository(db).create(
            User(
                first_name=first_name or f"User{chr(64 + n)}",
                last_name=last_name,
                email=email or f"user{n}@example.com",
                password_hash=security.hash_password("Secret123"),
                role=UserRole(role).value,
                is_active=is_active,
            )
        )

    return _make_user


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user(UserRole.ADMIN, first_name="Ada", last_name="Admin")


@pytest_asyncio.fixture
async def pm(make_user) -> User:
    return await make_user(UserRole.MANAGER, first_name="Mia", last_name="Manager")


@pytest_asyncio.fixture
async def dev(make_user) -> User:
    return await make_user(UserRole.DEVELOPER, first_name="Dan", last_name="Dev")


def auth_headers(user: User) -> dict[str, str]:
    token, _ = security.create_access_token(user.id, user.role, user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def app(session_factory, manager):
    application = create_app()
    application.state.connection_manager = manager

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = override_get_db_session
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
