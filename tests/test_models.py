from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from finflow.models import (
    AgentRefillDetails,
    AuditLog,
    ExpenseDetails,
    PayoutFlow,
    PayoutRequest,
    Request,
    Salary,
    SQLModel,
)
from finflow.models.enums import PayoutStatus, RequestStatus, RequestType, SalaryStatus, WorkflowKind

EXPECTED_TABLES = {
    "agent_refill_request",
    "audit_log",
    "expense_request",
    "payout_flow",
    "payout_request",
    "request",
    "salary",
}


def test_all_tables_registered() -> None:
    assert EXPECTED_TABLES.issubset(set(SQLModel.metadata.tables.keys()))


def test_salary_period_is_unique() -> None:
    constraints = {c.name for c in SQLModel.metadata.tables["salary"].constraints}
    assert "uq_salary_user_period" in constraints


def test_request_defaults() -> None:
    request = Request(request_type=RequestType.EXPENSES, requester_id=uuid.uuid4())
    assert request.status == RequestStatus.PENDING
    assert request.teamlead_id is None
    assert request.finance_manager_id is None
    assert request.id is not None


def test_detail_payloads_share_request_key() -> None:
    request_id = uuid.uuid4()
    refill = AgentRefillDetails(request_id=request_id, amount=Decimal("10.00"))
    expense = ExpenseDetails(request_id=request_id, purpose="Proxy", amount=Decimal("3.50"))
    assert refill.request_id == expense.request_id == request_id
    assert expense.need_transaction_hash is False


def test_salary_defaults() -> None:
    salary = Salary(user_id=uuid.uuid4(), amount=Decimal("900"), month=2, year=2025, created_by=uuid.uuid4())
    assert salary.status == SalaryStatus.PENDING
    assert salary.paid_at is None


def test_payout_defaults() -> None:
    payout = PayoutRequest(
        partner_id=1,
        period_start=date(2025, 1, 1),
        period_end=date(2025, 1, 31),
        total_amount=Decimal("0"),
        created_by=uuid.uuid4(),
    )
    assert payout.status == PayoutStatus.DRAFT
    assert payout.currency == "USD"
    flow = PayoutFlow(payout_request_id=payout.id, flow_id=5)
    assert flow.flow_amount == Decimal(0)
    assert flow.conversion_count == 0


def test_audit_log_instantiation() -> None:
    entry = AuditLog(
        actor_id=uuid.uuid4(),
        actor_role="admin",
        entity_type="REQUEST",
        entity_id=uuid.uuid4(),
        action="DELETE",
        before_json={"status": "pending"},
    )
    assert entry.after_json is None
    assert entry.created_at is not None


def test_request_type_kind_mapping() -> None:
    assert RequestType.AGENT_REFILL.kind == WorkflowKind.REQUEST
    assert RequestType.EXPENSES.kind == WorkflowKind.REQUEST
    assert RequestType.SALARY.kind == WorkflowKind.SALARY
    assert RequestType.PAYOUT.kind == WorkflowKind.PAYOUT
