# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Body, Query, status

from finflow.api.deps import AuthDep, WorkflowDep
from finflow.models.enums import RequestType, WorkflowKind
from finflow.schemas.common import StatusChangePayload
from finflow.schemas.payout import PayoutFilters, PayoutListResponse, PayoutResponse, PayoutStatusChangeResponse

payouts_router = APIRouter(prefix="/payouts", tags=["payouts"])


@payouts_router.post("", response_model=PayoutResponse, status_code=status.HTTP_201_CREATED)
async def create_payout(
    auth: AuthDep,
    service: WorkflowDep,
    payload: Annotated[dict[str, Any], Body()],
) -> Any:
    """Create a partner payout request in draft (admin and bizdev only)."""
    return await service.create_request(auth, RequestType.PAYOUT, payload)


@payouts_router.get("", response_model=PayoutListResponse)
async def list_payouts(
    auth: AuthDep,
    service: WorkflowDep,
    filters: Annotated[PayoutFilters, Query()],
) -> Any:
    """List payout requests visible to the caller."""
    return await service.list_requests(auth, WorkflowKind.PAYOUT, filters)


@payouts_router.get("/{payout_id}", response_model=PayoutResponse)
async def get_payout(
    payout_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
) -> Any:
    return await service.get_request(auth, WorkflowKind.PAYOUT, payout_id)


@payouts_router.patch("/{payout_id}", response_model=PayoutResponse)
async def update_payout(
    payout_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
    patch: Annotated[dict[str, Any], Body()],
) -> Any:
    """Edit payout header fields or replace its flow lines."""
    return await service.update_request_fields(auth, WorkflowKind.PAYOUT, payout_id, patch)


@payouts_router.patch("/{payout_id}/status", response_model=PayoutStatusChangeResponse)
async def change_payout_status(
    payout_id: uuid.UUID,
    payload: StatusChangePayload,
    auth: AuthDep,
    service: WorkflowDep,
) -> Any:
    return await service.change_status(auth, WorkflowKind.PAYOUT, payout_id, payload.status, payload.details())


@payouts_router.post("/{payout_id}/cancel", response_model=PayoutStatusChangeResponse)
async def cancel_payout(
    payout_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
) -> Any:
    return await service.cancel_request(auth, WorkflowKind.PAYOUT, payout_id)


@payouts_router.delete("/{payout_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payout(
    payout_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
) -> None:
    """Delete a non-terminal payout request with its flow lines (admin only)."""
    await service.delete_request(auth, WorkflowKind.PAYOUT, payout_id)
