# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from finflow.models.enums import SalaryStatus
from finflow.schemas.common import PageParams, PaginationInfo


class SalaryFilters(PageParams):
    """Query filters, paging and ordering for listing salaries."""

    status: SalaryStatus | None = None
    user_id: uuid.UUID | None = None
    team_id: int | None = None
    department_id: int | None = None
    month: int | None = Field(default=None, ge=1, le=12)
    year: int | None = Field(default=None, ge=2000, le=2100)
    sort_by: Literal["created_at", "updated_at", "amount", "period"] = "created_at"


class SalaryResponse(BaseModel):
    """Response schema for a single salary."""

    id: uuid.UUID
    user_id: uuid.UUID
    team_id: int | None
    department_id: int | None
    amount: Decimal
    month: int
    year: int
    description: str | None
    status: SalaryStatus
    created_by: uuid.UUID
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    paid_at: datetime | None
    finance_manager_id: uuid.UUID | None
    payment_transaction_hash: str | None
    payment_network: str | None
    payment_address: str | None
    available_transitions: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class SalaryListResponse(BaseModel):
    """Paginated list of salaries."""

    items: list[SalaryResponse]
    pagination: PaginationInfo


class SalaryStatusChangeResponse(BaseModel):
    item: SalaryResponse
    message: str
