# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from finflow.models.base import TimestampMixin, UUIDBase
from finflow.models.enums import RequestStatus


class Request(UUIDBase, TimestampMixin, table=True):
    """Generic request envelope shared by agent refills and expenses."""

    __tablename__ = "request"
    __table_args__ = (
        sa.Index("ix_request_team_status", "team_id", "status"),
        sa.Index("ix_request_requester_status", "requester_id", "status"),
    )

    request_type: str = Field(max_length=50, index=True)
    status: str = Field(
        default=RequestStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    requester_id: uuid.UUID = Field(index=True)
    # Organization snapshot taken at creation; never recomputed.
    team_id: int | None = Field(default=None)
    department_id: int | None = Field(default=None, index=True)
    teamlead_id: uuid.UUID | None = None
    finance_manager_id: uuid.UUID | None = None


class AgentRefillDetails(SQLModel, table=True):
    """Subtype payload for agent wallet refills."""

    __tablename__ = "agent_refill_request"

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("request.id", ondelete="CASCADE"), primary_key=True),
    )
    agent_id: int | None = None
    amount: Decimal = Field(sa_type=sa.Numeric(18, 2))  # ty: ignore[invalid-argument-type]
    server: str | None = Field(default=None, max_length=255)
    wallet_address: str | None = Field(default=None, max_length=255)
    network: str | None = Field(default=None, max_length=50)
    transaction_hash: str | None = Field(default=None, max_length=255)
    fee: Decimal | None = Field(default=None, sa_type=sa.Numeric(18, 2))  # ty: ignore[invalid-argument-type]


class ExpenseDetails(SQLModel, table=True):
    """Subtype payload for expense reimbursements."""

    __tablename__ = "expense_request"

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("request.id", ondelete="CASCADE"), primary_key=True),
    )
    purpose: str = Field(max_length=1000)
    seller_service: str | None = Field(default=None, max_length=255)
    amount: Decimal = Field(sa_type=sa.Numeric(18, 2))  # ty: ignore[invalid-argument-type]
    network: str | None = Field(default=None, max_length=50)
    wallet_address: str | None = Field(default=None, max_length=255)
    need_transaction_time: bool = False
    transaction_time: str | None = Field(default=None, max_length=100)
    need_transaction_hash: bool = False
    transaction_hash: str | None = Field(default=None, max_length=255)
    expense_type_id: int | None = None
