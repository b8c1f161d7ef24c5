# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from finflow.models.enums import RequestStatus, RequestType
from finflow.schemas.common import PageParams, PaginationInfo


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateRequestPayload(BaseModel):
    """Request body for a new request: ``request_type`` plus the subtype fields.

    Salaries and payouts are created through their own routes.
    """

    model_config = ConfigDict(extra="allow")

    request_type: Literal["agent_refill", "expenses"]


class RequestFilters(PageParams):
    """Query filters, paging and ordering for listing agent refill and expense requests."""

    status: RequestStatus | None = None
    request_type: Literal["agent_refill", "expenses"] | None = None
    requester_id: uuid.UUID | None = None
    team_id: int | None = None
    department_id: int | None = None
    teamlead_id: uuid.UUID | None = None
    finance_manager_id: uuid.UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    network: str | None = None
    sort_by: Literal["created_at", "updated_at", "status", "amount"] = "created_at"


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AgentRefillDetailsResponse(BaseModel):
    """Agent refill payload fields."""

    agent_id: int | None
    amount: Decimal
    server: str | None
    wallet_address: str | None
    network: str | None
    transaction_hash: str | None
    fee: Decimal | None


class ExpenseDetailsResponse(BaseModel):
    """Expense payload fields."""

    purpose: str
    seller_service: str | None
    amount: Decimal
    network: str | None
    wallet_address: str | None
    need_transaction_time: bool
    transaction_time: str | None
    need_transaction_hash: bool
    transaction_hash: str | None
    expense_type_id: int | None


class RequestResponse(BaseModel):
    """Response schema for a single request with its subtype payload."""

    id: uuid.UUID
    request_type: RequestType
    status: RequestStatus
    requester_id: uuid.UUID
    team_id: int | None
    department_id: int | None
    teamlead_id: uuid.UUID | None
    finance_manager_id: uuid.UUID | None
    details: AgentRefillDetailsResponse | ExpenseDetailsResponse | None
    available_transitions: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class RequestListResponse(BaseModel):
    """Paginated list of requests."""

    items: list[RequestResponse]
    pagination: PaginationInfo


class RequestStatusChangeResponse(BaseModel):
    item: RequestResponse
    message: str
