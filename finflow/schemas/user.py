# ruff: noqa: TC003
from __future__ import annotations

from pydantic import BaseModel, Field

from finflow.models.enums import Role


class UpsertUserPayload(BaseModel):
    """Request body for creating or replacing a directory profile."""

    role: Role
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    team_id: int | None = None
    department_id: int | None = None
    salary_wallet_address: str | None = Field(default=None, max_length=255)
