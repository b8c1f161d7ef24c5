# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header

from finflow.db import SessionDep
from finflow.exceptions import ForbiddenError
from finflow.models.enums import Role
from finflow.schemas.auth import AuthContext
from finflow.services.directory import UserDirectory, get_user_directory
from finflow.services.notifier import StatusChangeNotifier, get_status_notifier
from finflow.services.repository import RequestRepository
from finflow.services.workflow import WorkflowService


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_role: Role = Header(default=Role.BUYER),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    return AuthContext(user_id=x_user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin role for the request."""
    if auth.role != Role.ADMIN:
        raise ForbiddenError("Admin access required")
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]

DirectoryDep = Annotated[UserDirectory, Depends(get_user_directory)]


async def get_workflow_service(
    session: SessionDep,
    directory: DirectoryDep,
    notifier: StatusChangeNotifier = Depends(get_status_notifier),
) -> WorkflowService:
    """Build a WorkflowService bound to the request's database session."""
    return WorkflowService(RequestRepository(session), directory, notifier)


WorkflowDep = Annotated[WorkflowService, Depends(get_workflow_service)]
