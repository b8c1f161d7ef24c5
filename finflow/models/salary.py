# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from finflow.models.base import TimestampMixin, UUIDBase
from finflow.models.enums import SalaryStatus


class Salary(UUIDBase, TimestampMixin, table=True):
    """Monthly salary payout for a single user with its own approval state."""

    __tablename__ = "salary"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "month", "year", name="uq_salary_user_period"),
        sa.Index("ix_salary_team_status", "team_id", "status"),
    )

    user_id: uuid.UUID = Field(index=True)
    team_id: int | None = Field(default=None)
    department_id: int | None = Field(default=None, index=True)
    amount: Decimal = Field(sa_type=sa.Numeric(18, 2))  # ty: ignore[invalid-argument-type]
    month: int
    year: int
    description: str | None = Field(default=None, max_length=1000)
    status: str = Field(
        default=SalaryStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    created_by: uuid.UUID
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    paid_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    finance_manager_id: uuid.UUID | None = None
    payment_transaction_hash: str | None = Field(default=None, max_length=255)
    payment_network: str | None = Field(default=None, max_length=50)
    payment_address: str | None = Field(default=None, max_length=255)
