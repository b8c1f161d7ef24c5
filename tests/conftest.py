from __future__ import annotations

import os
import uuid
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from finflow.db import get_session
from finflow.main import app
from finflow.models import Role, SQLModel
from finflow.services.directory import InMemoryUserDirectory, UserProfile, get_user_directory, set_user_directory
from finflow.services.notifier import InMemoryStatusChangeNotifier, get_status_notifier, set_status_notifier

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

TEAM_A = 7
TEAM_B = 8


def _profile(role: Role, first_name: str, team_id: int | None, department_id: int | None = None, **extra: str) -> UserProfile:
    return UserProfile(
        id=uuid.uuid4(),
        role=role,
        first_name=first_name,
        team_id=team_id,
        department_id=department_id,
        **extra,
    )


@pytest.fixture
def users() -> dict[str, UserProfile]:
    """Directory profiles keyed by a short handle, fresh ids per test."""
    return {
        "buyer": _profile(Role.BUYER, "Bob", TEAM_A, 1, salary_wallet_address="TBuyerWallet111"),
        "buyer_b": _profile(Role.BUYER, "Beth", TEAM_B, 2),
        "bizdev": _profile(Role.BIZDEV, "Dana", TEAM_A, 1),
        "teamlead": _profile(Role.TEAMLEAD, "Tom", TEAM_A, 1),
        "teamlead_b": _profile(Role.TEAMLEAD, "Tina", TEAM_B, 2),
        "teamlead_no_team": _profile(Role.TEAMLEAD, "Ted", None),
        "finance": _profile(Role.FINANCE_MANAGER, "Fiona", None),
        "admin": _profile(Role.ADMIN, "Ada", None),
    }


@pytest.fixture
def headers(users: dict[str, UserProfile]) -> Callable[[str], dict[str, str]]:
    """Return auth headers for a user handle from the ``users`` fixture."""

    def _headers(handle: str) -> dict[str, str]:
        user = users[handle]
        return {"X-User-Id": str(user.id), "X-Role": user.role.value}

    return _headers


@pytest.fixture(autouse=True)
def directory(users: dict[str, UserProfile]) -> Iterator[InMemoryUserDirectory]:
    """Seed the in-memory user directory for every test."""
    previous = get_user_directory()
    svc = InMemoryUserDirectory()
    for user in users.values():
        svc.seed(user)
    set_user_directory(svc)
    yield svc
    set_user_directory(previous)


@pytest.fixture(autouse=True)
def notifier() -> Iterator[InMemoryStatusChangeNotifier]:
    """Install a fresh recording notifier for every test."""
    previous = get_status_notifier()
    svc = InMemoryStatusChangeNotifier()
    set_status_notifier(svc)
    yield svc
    set_status_notifier(previous)


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Per-test database with all tables created.

    Uses a SQLite file in the test's temp directory unless TEST_DATABASE_URL is set.
    """
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'finflow.db'}"
    _engine = create_async_engine(url)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden.

    Every request gets its own session, as in production.
    """

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
