# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Body, Query, status

from finflow.api.deps import AuthDep, WorkflowDep
from finflow.models.enums import RequestType, WorkflowKind
from finflow.schemas.common import StatusChangePayload
from finflow.schemas.request import (
    CreateRequestPayload,
    RequestFilters,
    RequestListResponse,
    RequestResponse,
    RequestStatusChangeResponse,
)

requests_router = APIRouter(prefix="/requests", tags=["requests"])


@requests_router.post("", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: CreateRequestPayload,
    auth: AuthDep,
    service: WorkflowDep,
) -> Any:
    """Create an agent refill or expense request for the caller."""
    fields = payload.model_dump(exclude={"request_type"})
    return await service.create_request(auth, RequestType(payload.request_type), fields)


@requests_router.get("", response_model=RequestListResponse)
async def list_requests(
    auth: AuthDep,
    service: WorkflowDep,
    filters: Annotated[RequestFilters, Query()],
) -> Any:
    """List requests visible to the caller."""
    return await service.list_requests(auth, WorkflowKind.REQUEST, filters)


@requests_router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
) -> Any:
    """Get a single request with its subtype payload."""
    return await service.get_request(auth, WorkflowKind.REQUEST, request_id)


@requests_router.patch("/{request_id}", response_model=RequestResponse)
async def update_request(
    request_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
    patch: Annotated[dict[str, Any], Body()],
) -> Any:
    """Edit subtype fields of a request."""
    return await service.update_request_fields(auth, WorkflowKind.REQUEST, request_id, patch)


@requests_router.patch("/{request_id}/status", response_model=RequestStatusChangeResponse)
async def change_request_status(
    request_id: uuid.UUID,
    payload: StatusChangePayload,
    auth: AuthDep,
    service: WorkflowDep,
) -> Any:
    """Move a request to another status."""
    return await service.change_status(auth, WorkflowKind.REQUEST, request_id, payload.status, payload.details())


@requests_router.post("/{request_id}/cancel", response_model=RequestStatusChangeResponse)
async def cancel_request(
    request_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
) -> Any:
    """Cancel a request."""
    return await service.cancel_request(auth, WorkflowKind.REQUEST, request_id)


@requests_router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
) -> None:
    """Delete a non-terminal request (admin only)."""
    await service.delete_request(auth, WorkflowKind.REQUEST, request_id)
