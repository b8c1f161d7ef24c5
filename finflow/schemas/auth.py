# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from finflow.models.enums import Role


class AuthContext(BaseModel):
    """Authenticated identity forwarded by the boundary layer."""

    user_id: uuid.UUID
    role: Role = Role.BUYER
