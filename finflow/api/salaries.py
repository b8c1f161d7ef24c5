# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Body, Query, status

from finflow.api.deps import AuthDep, WorkflowDep
from finflow.models.enums import RequestType, WorkflowKind
from finflow.schemas.common import StatusChangePayload
from finflow.schemas.salary import SalaryFilters, SalaryListResponse, SalaryResponse, SalaryStatusChangeResponse

salaries_router = APIRouter(prefix="/salaries", tags=["salaries"])


@salaries_router.post("", response_model=SalaryResponse, status_code=status.HTTP_201_CREATED)
async def create_salary(
    auth: AuthDep,
    service: WorkflowDep,
    payload: Annotated[dict[str, Any], Body()],
) -> Any:
    """Create a salary for a payee (admin and finance manager only)."""
    return await service.create_request(auth, RequestType.SALARY, payload)


@salaries_router.get("", response_model=SalaryListResponse)
async def list_salaries(
    auth: AuthDep,
    service: WorkflowDep,
    filters: Annotated[SalaryFilters, Query()],
) -> Any:
    """List salaries visible to the caller."""
    return await service.list_requests(auth, WorkflowKind.SALARY, filters)


@salaries_router.get("/{salary_id}", response_model=SalaryResponse)
async def get_salary(
    salary_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
) -> Any:
    return await service.get_request(auth, WorkflowKind.SALARY, salary_id)


@salaries_router.patch("/{salary_id}", response_model=SalaryResponse)
async def update_salary(
    salary_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
    patch: Annotated[dict[str, Any], Body()],
) -> Any:
    """Edit amount or description of a salary."""
    return await service.update_request_fields(auth, WorkflowKind.SALARY, salary_id, patch)


@salaries_router.patch("/{salary_id}/status", response_model=SalaryStatusChangeResponse)
async def change_salary_status(
    salary_id: uuid.UUID,
    payload: StatusChangePayload,
    auth: AuthDep,
    service: WorkflowDep,
) -> Any:
    """Approve, reject or mark a salary as paid."""
    return await service.change_status(auth, WorkflowKind.SALARY, salary_id, payload.status, payload.details())


@salaries_router.post("/{salary_id}/cancel", response_model=SalaryStatusChangeResponse)
async def cancel_salary(
    salary_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
) -> Any:
    """Salaries have no cancelled status, so a visible salary is answered with InvalidTargetStatusError."""
    return await service.cancel_request(auth, WorkflowKind.SALARY, salary_id)


@salaries_router.delete("/{salary_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_salary(
    salary_id: uuid.UUID,
    auth: AuthDep,
    service: WorkflowDep,
) -> None:
    """Delete a non-terminal salary (admin only)."""
    await service.delete_request(auth, WorkflowKind.SALARY, salary_id)
