# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from finflow.models.enums import Role


class UserProfile(BaseModel):
    """User metadata from the organization directory."""

    id: uuid.UUID
    role: Role
    first_name: str
    last_name: str | None = None
    team_id: int | None = None
    department_id: int | None = None
    salary_wallet_address: str | None = None


@runtime_checkable
class UserDirectory(Protocol):
    """Interface for the organization directory."""

    async def get_user(self, user_id: uuid.UUID) -> UserProfile | None:
        """Fetch user metadata. Returns None if not found."""
        ...


class InMemoryUserDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._users: dict[uuid.UUID, UserProfile] = {}

    def seed(self, user: UserProfile) -> None:
        """Seed or replace a user profile."""
        self._users[user.id] = user

    async def get_user(self, user_id: uuid.UUID) -> UserProfile | None:
        """Fetch user metadata. Returns None if not found."""
        return self._users.get(user_id)


_user_directory: UserDirectory = InMemoryUserDirectory()


def get_user_directory() -> UserDirectory:
    """FastAPI dependency for the user directory."""
    return _user_directory


def set_user_directory(directory: UserDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _user_directory
    _user_directory = directory
