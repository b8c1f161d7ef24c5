from __future__ import annotations

import enum


class Role(enum.StrEnum):
    """Actor role as asserted by the authentication layer."""

    BUYER = "buyer"
    BIZDEV = "bizdev"
    TEAMLEAD = "teamlead"
    FINANCE_MANAGER = "finance_manager"
    ADMIN = "admin"


class WorkflowKind(enum.StrEnum):
    """Envelope family. Each kind has its own table and status graph."""

    REQUEST = "request"
    SALARY = "salary"
    PAYOUT = "payout"


class RequestType(enum.StrEnum):
    """Subtype of a financial request."""

    AGENT_REFILL = "agent_refill"
    EXPENSES = "expenses"
    SALARY = "salary"
    PAYOUT = "payout"

    @property
    def kind(self) -> WorkflowKind:
        if self is RequestType.SALARY:
            return WorkflowKind.SALARY
        if self is RequestType.PAYOUT:
            return WorkflowKind.PAYOUT
        return WorkflowKind.REQUEST


class RequestStatus(enum.StrEnum):
    """State machine for agent refill and expense requests."""

    PENDING = "pending"
    APPROVED_BY_TEAMLEAD = "approved_by_teamlead"
    REJECTED_BY_TEAMLEAD = "rejected_by_teamlead"
    APPROVED_BY_FINANCE = "approved_by_finance"
    REJECTED_BY_FINANCE = "rejected_by_finance"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SalaryStatus(enum.StrEnum):
    """State machine for salary payouts."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class PayoutStatus(enum.StrEnum):
    """State machine for partner payout requests."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    IN_PAYMENT = "in_payment"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Currency(enum.StrEnum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


class PayoutNetwork(enum.StrEnum):
    """Blockchain networks accepted for partner payouts."""

    TRC20 = "TRC-20"
    ERC20 = "ERC-20"
    BEP20 = "BEP-20"
    POLYGON = "Polygon"
    ARBITRUM = "Arbitrum"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    REQUEST = "REQUEST"
    SALARY = "SALARY"
    PAYOUT = "PAYOUT"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    STATUS_CHANGE = "STATUS_CHANGE"
    DELETE = "DELETE"
