# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from finflow.models.enums import PayoutStatus
from finflow.schemas.common import PageParams, PaginationInfo


class PayoutFilters(PageParams):
    """Query filters, paging and ordering for listing payout requests.

    ``start_date``/``end_date`` select payouts whose period overlaps the range.
    """

    status: PayoutStatus | None = None
    partner_id: int | None = None
    team_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    sort_by: Literal["created_at", "updated_at", "total_amount", "period_start"] = "created_at"


class PayoutFlowResponse(BaseModel):
    id: uuid.UUID
    flow_id: int
    flow_amount: Decimal
    conversion_count: int
    notes: str | None


class PayoutResponse(BaseModel):
    """Response schema for a payout request with its flow lines."""

    id: uuid.UUID
    partner_id: int
    team_id: int | None
    department_id: int | None
    period_start: date
    period_end: date
    total_amount: Decimal
    currency: str
    description: str | None
    notes: str | None
    wallet_address: str | None
    network: str | None
    status: PayoutStatus
    created_by: uuid.UUID
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    flows: list[PayoutFlowResponse]
    available_transitions: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class PayoutListResponse(BaseModel):
    """Paginated list of payout requests."""

    items: list[PayoutResponse]
    pagination: PaginationInfo


class PayoutStatusChangeResponse(BaseModel):
    item: PayoutResponse
    message: str
