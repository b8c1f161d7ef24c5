# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from finflow.models.base import TimestampMixin, UUIDBase
from finflow.models.enums import Currency, PayoutStatus


class PayoutRequest(UUIDBase, TimestampMixin, table=True):
    """Partner payout request with per-flow allocation lines."""

    __tablename__ = "payout_request"
    __table_args__ = (sa.Index("ix_payout_team_status", "team_id", "status"),)

    partner_id: int = Field(index=True)
    team_id: int | None = Field(default=None)
    department_id: int | None = Field(default=None)
    period_start: date
    period_end: date
    total_amount: Decimal = Field(sa_type=sa.Numeric(18, 2))  # ty: ignore[invalid-argument-type]
    currency: str = Field(default=Currency.USD, max_length=3)
    description: str | None = Field(default=None, max_length=1000)
    notes: str | None = Field(default=None, max_length=2000)
    wallet_address: str | None = Field(default=None, max_length=255)
    network: str | None = Field(default=None, max_length=50)
    status: str = Field(
        default=PayoutStatus.DRAFT, max_length=50, index=True, sa_column_kwargs={"server_default": "draft"}
    )
    created_by: uuid.UUID = Field(index=True)
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]


class PayoutFlow(UUIDBase, table=True):
    """Allocation line of a payout: amount and conversions for one traffic flow."""

    __tablename__ = "payout_flow"

    payout_request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("payout_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    flow_id: int
    flow_amount: Decimal = Field(default=Decimal(0), sa_type=sa.Numeric(18, 2))  # ty: ignore[invalid-argument-type]
    conversion_count: int = 0
    notes: str | None = Field(default=None, max_length=1000)
