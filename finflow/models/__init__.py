from sqlmodel import SQLModel

from finflow.models.audit import AuditLog
from finflow.models.base import TimestampMixin, UUIDBase
from finflow.models.enums import (
    AuditAction,
    AuditEntityType,
    Currency,
    PayoutNetwork,
    PayoutStatus,
    RequestStatus,
    RequestType,
    Role,
    SalaryStatus,
    WorkflowKind,
)
from finflow.models.payout import PayoutFlow, PayoutRequest
from finflow.models.request import AgentRefillDetails, ExpenseDetails, Request
from finflow.models.salary import Salary

__all__ = [
    "AgentRefillDetails",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "Currency",
    "ExpenseDetails",
    "PayoutFlow",
    "PayoutNetwork",
    "PayoutRequest",
    "PayoutStatus",
    "Request",
    "RequestStatus",
    "RequestType",
    "Role",
    "SQLModel",
    "Salary",
    "SalaryStatus",
    "TimestampMixin",
    "UUIDBase",
    "WorkflowKind",
]
