# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter

from finflow.api.deps import AdminDep, AuthDep, DirectoryDep
from finflow.exceptions import AppError, NotFoundError
from finflow.schemas.user import UpsertUserPayload
from finflow.services.directory import InMemoryUserDirectory, UserProfile

users_router = APIRouter(prefix="/users", tags=["users"])


@users_router.put("/{user_id}", response_model=UserProfile)
async def upsert_user(
    user_id: uuid.UUID,
    payload: UpsertUserPayload,
    auth: AdminDep,
    directory: DirectoryDep,
) -> UserProfile:
    """Create or replace a profile in the development user directory (admin only)."""
    if not isinstance(directory, InMemoryUserDirectory):
        raise AppError("User directory is read-only", status_code=405)
    profile = UserProfile(id=user_id, **payload.model_dump())
    directory.seed(profile)
    return profile


@users_router.get("/{user_id}", response_model=UserProfile)
async def get_user(
    user_id: uuid.UUID,
    auth: AuthDep,
    directory: DirectoryDep,
) -> UserProfile:
    """Fetch a directory profile."""
    profile = await directory.get_user(user_id)
    if profile is None:
        raise NotFoundError("User not found")
    return profile
