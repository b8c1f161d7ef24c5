"""Tests for the transition engine: graph legality, role allow-lists, the
owner cancellation rule, admin override, side-effect stamps, and the
compare-and-set write with its single retry.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from finflow.exceptions import (
    IllegalTransitionError,
    InvalidTargetStatusError,
    PayloadValidationError,
    PersistenceError,
)
from finflow.models.enums import PayoutStatus, RequestStatus, Role, SalaryStatus
from finflow.models.payout import PayoutRequest
from finflow.models.request import Request
from finflow.models.salary import Salary
from finflow.services.definitions import PAYOUT_WORKFLOW, REQUEST_WORKFLOW, SALARY_WORKFLOW
from finflow.services.repository import RequestRepository
from finflow.services.scope import Actor, ScopeFilter
from finflow.services.transitions import (
    apply_transition,
    available_transitions,
    check_transition,
    describe_transition,
    plan_transition,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

OWNER = Actor(id=uuid.uuid4(), role=Role.BUYER, team_id=7)
OTHER_BUYER = Actor(id=uuid.uuid4(), role=Role.BUYER, team_id=7)
TEAMLEAD = Actor(id=uuid.uuid4(), role=Role.TEAMLEAD, team_id=7)
TEAMLEAD_B = Actor(id=uuid.uuid4(), role=Role.TEAMLEAD, team_id=8)
FINANCE = Actor(id=uuid.uuid4(), role=Role.FINANCE_MANAGER)
BIZDEV = Actor(id=uuid.uuid4(), role=Role.BIZDEV, team_id=7)
ADMIN = Actor(id=uuid.uuid4(), role=Role.ADMIN)


def _request(status: str = RequestStatus.PENDING, **kwargs: Any) -> Request:
    return Request(
        request_type="expenses",
        status=status,
        requester_id=OWNER.id,
        team_id=7,
        department_id=1,
        **kwargs,
    )


def _salary(status: str = SalaryStatus.PENDING) -> Salary:
    return Salary(
        user_id=OWNER.id,
        team_id=7,
        amount=Decimal("1500.00"),
        month=3,
        year=2025,
        status=status,
        created_by=FINANCE.id,
    )


def _payout(status: str = PayoutStatus.DRAFT) -> PayoutRequest:
    return PayoutRequest(
        partner_id=12,
        team_id=7,
        period_start=date(2025, 1, 1),
        period_end=date(2025, 1, 31),
        total_amount=Decimal("300.00"),
        status=status,
        created_by=BIZDEV.id,
    )


# ---------------------------------------------------------------------------
# Request workflow
# ---------------------------------------------------------------------------


def test_teamlead_approves_own_team_and_is_stamped() -> None:
    plan = plan_transition(REQUEST_WORKFLOW, _request(), TEAMLEAD, RequestStatus.APPROVED_BY_TEAMLEAD)
    assert plan.source == RequestStatus.PENDING
    assert plan.values["status"] == RequestStatus.APPROVED_BY_TEAMLEAD
    assert plan.values["teamlead_id"] == TEAMLEAD.id
    assert "updated_at" in plan.values
    assert plan.override is False


def test_teamlead_of_other_team_cannot_approve() -> None:
    with pytest.raises(IllegalTransitionError):
        check_transition(REQUEST_WORKFLOW, _request(), TEAMLEAD_B, RequestStatus.APPROVED_BY_TEAMLEAD)


def test_teamlead_without_team_cannot_approve() -> None:
    lead = Actor(id=uuid.uuid4(), role=Role.TEAMLEAD, team_id=None)
    with pytest.raises(IllegalTransitionError):
        check_transition(REQUEST_WORKFLOW, _request(), lead, RequestStatus.APPROVED_BY_TEAMLEAD)


def test_finance_cannot_jump_from_pending_to_completed() -> None:
    with pytest.raises(IllegalTransitionError):
        check_transition(REQUEST_WORKFLOW, _request(), FINANCE, RequestStatus.COMPLETED)


def test_finance_cannot_skip_teamlead_approval() -> None:
    with pytest.raises(IllegalTransitionError):
        check_transition(REQUEST_WORKFLOW, _request(), FINANCE, RequestStatus.APPROVED_BY_FINANCE)


def test_finance_approval_stamps_finance_manager() -> None:
    envelope = _request(RequestStatus.APPROVED_BY_TEAMLEAD, teamlead_id=TEAMLEAD.id)
    plan = plan_transition(REQUEST_WORKFLOW, envelope, FINANCE, RequestStatus.APPROVED_BY_FINANCE)
    assert plan.values["finance_manager_id"] == FINANCE.id
    assert "teamlead_id" not in plan.values


def test_unknown_target_status_is_invalid() -> None:
    with pytest.raises(InvalidTargetStatusError):
        check_transition(REQUEST_WORKFLOW, _request(), ADMIN, "archived")


def test_admin_may_leave_terminal_status() -> None:
    override = check_transition(REQUEST_WORKFLOW, _request(RequestStatus.COMPLETED), ADMIN, RequestStatus.PENDING)
    assert override is True


def test_admin_may_apply_self_loop() -> None:
    plan = plan_transition(REQUEST_WORKFLOW, _request(), ADMIN, RequestStatus.PENDING)
    assert plan.values["status"] == RequestStatus.PENDING
    assert plan.override is True


def test_stamp_is_not_overwritten() -> None:
    earlier_lead = uuid.uuid4()
    envelope = _request(teamlead_id=earlier_lead)
    plan = plan_transition(REQUEST_WORKFLOW, envelope, ADMIN, RequestStatus.APPROVED_BY_TEAMLEAD)
    assert "teamlead_id" not in plan.values


@pytest.mark.parametrize(
    "status",
    [RequestStatus.PENDING, RequestStatus.APPROVED_BY_TEAMLEAD, RequestStatus.APPROVED_BY_FINANCE],
)
def test_owner_may_cancel_from_open_status(status: str) -> None:
    override = check_transition(REQUEST_WORKFLOW, _request(status), OWNER, RequestStatus.CANCELLED)
    assert override is False


@pytest.mark.parametrize(
    "status",
    [RequestStatus.COMPLETED, RequestStatus.CANCELLED, RequestStatus.REJECTED_BY_FINANCE],
)
def test_owner_cannot_cancel_from_terminal_status(status: str) -> None:
    with pytest.raises(IllegalTransitionError):
        check_transition(REQUEST_WORKFLOW, _request(status), OWNER, RequestStatus.CANCELLED)


def test_other_buyer_cannot_cancel() -> None:
    with pytest.raises(IllegalTransitionError):
        check_transition(REQUEST_WORKFLOW, _request(), OTHER_BUYER, RequestStatus.CANCELLED)


def test_owner_cannot_approve_own_request() -> None:
    with pytest.raises(IllegalTransitionError):
        check_transition(REQUEST_WORKFLOW, _request(), OWNER, RequestStatus.APPROVED_BY_TEAMLEAD)


@pytest.mark.parametrize("definition", [REQUEST_WORKFLOW, SALARY_WORKFLOW, PAYOUT_WORKFLOW])
def test_non_admin_moves_follow_rules_exactly(definition: Any) -> None:
    """Every (from, to, role) outside the allow-list and the owner rule is rejected."""
    factories = {REQUEST_WORKFLOW.kind: _request, SALARY_WORKFLOW.kind: _salary, PAYOUT_WORKFLOW.kind: _payout}
    actors = [OWNER, OTHER_BUYER, TEAMLEAD, FINANCE, BIZDEV]
    for source in definition.statuses:
        envelope = factories[definition.kind](source)
        for target in definition.statuses:
            for actor in actors:
                owner_cancel = target == definition.cancel_status and getattr(envelope, definition.owner_field) == actor.id
                expected = target in definition.successors(source) and (
                    actor.role in definition.rules.get((source, target), frozenset()) or owner_cancel
                )
                try:
                    check_transition(definition, envelope, actor, target)
                    allowed = True
                except IllegalTransitionError:
                    allowed = False
                assert allowed == expected, (definition.kind, source, target, actor.role)


def test_available_transitions_for_teamlead() -> None:
    assert available_transitions(REQUEST_WORKFLOW, _request(), TEAMLEAD) == [
        RequestStatus.APPROVED_BY_TEAMLEAD,
        RequestStatus.REJECTED_BY_TEAMLEAD,
    ]


def test_available_transitions_for_owner_is_cancel_only() -> None:
    assert available_transitions(REQUEST_WORKFLOW, _request(), OWNER) == [RequestStatus.CANCELLED]


def test_describe_transition() -> None:
    message = describe_transition(REQUEST_WORKFLOW, RequestStatus.PENDING, RequestStatus.CANCELLED)
    assert message == 'Request status changed from "pending" to "cancelled"'


# ---------------------------------------------------------------------------
# Salary workflow
# ---------------------------------------------------------------------------


def test_salary_approval_stamps_approver_and_time() -> None:
    plan = plan_transition(SALARY_WORKFLOW, _salary(), FINANCE, SalaryStatus.APPROVED)
    assert plan.values["approved_by"] == FINANCE.id
    assert plan.values["approved_at"] == plan.values["updated_at"]


def test_salary_paid_requires_transaction_hash() -> None:
    with pytest.raises(PayloadValidationError) as exc_info:
        plan_transition(
            SALARY_WORKFLOW,
            _salary(SalaryStatus.APPROVED),
            FINANCE,
            SalaryStatus.PAID,
            {"payment_address": "TWallet"},
        )
    assert [err.field for err in exc_info.value.errors] == ["transaction_hash"]


def test_salary_paid_copies_payment_details() -> None:
    plan = plan_transition(
        SALARY_WORKFLOW,
        _salary(SalaryStatus.APPROVED),
        FINANCE,
        SalaryStatus.PAID,
        {"transaction_hash": "0xabc", "payment_address": "TWallet", "payment_network": "TRC-20", "note": "ok"},
    )
    assert plan.values["payment_transaction_hash"] == "0xabc"
    assert plan.values["payment_address"] == "TWallet"
    assert plan.values["payment_network"] == "TRC-20"
    assert plan.values["finance_manager_id"] == FINANCE.id
    assert plan.values["paid_at"] is not None
    assert "note" not in plan.values


def test_salary_cannot_be_cancelled() -> None:
    with pytest.raises(InvalidTargetStatusError):
        check_transition(SALARY_WORKFLOW, _salary(), OWNER, "cancelled")


# ---------------------------------------------------------------------------
# Payout workflow
# ---------------------------------------------------------------------------


def test_bizdev_submits_draft() -> None:
    assert check_transition(PAYOUT_WORKFLOW, _payout(), BIZDEV, PayoutStatus.PENDING) is False


def test_bizdev_cannot_approve() -> None:
    with pytest.raises(IllegalTransitionError):
        check_transition(PAYOUT_WORKFLOW, _payout(PayoutStatus.PENDING), BIZDEV, PayoutStatus.APPROVED)


def test_finance_approves_draft_directly() -> None:
    plan = plan_transition(PAYOUT_WORKFLOW, _payout(), FINANCE, PayoutStatus.APPROVED)
    assert plan.values["approved_by"] == FINANCE.id
    assert plan.values["approved_at"] is not None


def test_payout_creator_may_cancel_in_payment() -> None:
    assert check_transition(PAYOUT_WORKFLOW, _payout(PayoutStatus.IN_PAYMENT), BIZDEV, PayoutStatus.CANCELLED) is False


# ---------------------------------------------------------------------------
# Compare-and-set write
# ---------------------------------------------------------------------------


async def test_concurrent_transitions_one_winner(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Two actors deciding on the same pending snapshot: exactly one write lands."""
    async with session_factory() as session:
        envelope = _request()
        session.add(envelope)
        await session.commit()
        envelope_id = envelope.id

    async with session_factory() as first, session_factory() as second:
        first_repo, second_repo = RequestRepository(first), RequestRepository(second)
        first_snapshot = await first.get(Request, envelope_id)
        second_snapshot = await second.get(Request, envelope_id)
        assert first_snapshot is not None and second_snapshot is not None

        await apply_transition(first_repo, REQUEST_WORKFLOW, first_snapshot, TEAMLEAD, RequestStatus.APPROVED_BY_TEAMLEAD)
        await first.commit()

        with pytest.raises(IllegalTransitionError):
            await apply_transition(
                second_repo, REQUEST_WORKFLOW, second_snapshot, TEAMLEAD, RequestStatus.REJECTED_BY_TEAMLEAD
            )

    async with session_factory() as session:
        stored = await session.get(Request, envelope_id)
        assert stored is not None
        assert stored.status == RequestStatus.APPROVED_BY_TEAMLEAD
        assert stored.teamlead_id == TEAMLEAD.id


class _FlakyRepository:
    """Repository double whose status write fails a set number of times."""

    def __init__(self, failures: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.error = error or OperationalError("UPDATE request", {}, Exception("connection reset"))
        self.calls = 0
        self.rollbacks = 0

    async def compare_and_set(self, definition: Any, envelope_id: uuid.UUID, expected: str, values: Any) -> bool:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return True

    async def rollback(self) -> None:
        self.rollbacks += 1


async def test_transient_error_is_retried_once() -> None:
    repo = _FlakyRepository(failures=1)
    plan = await apply_transition(repo, REQUEST_WORKFLOW, _request(), TEAMLEAD, RequestStatus.APPROVED_BY_TEAMLEAD)  # type: ignore[arg-type]
    assert plan.target == RequestStatus.APPROVED_BY_TEAMLEAD
    assert repo.calls == 2
    assert repo.rollbacks == 1


async def test_second_transient_error_raises_persistence_error() -> None:
    repo = _FlakyRepository(failures=2)
    with pytest.raises(PersistenceError):
        await apply_transition(repo, REQUEST_WORKFLOW, _request(), TEAMLEAD, RequestStatus.APPROVED_BY_TEAMLEAD)  # type: ignore[arg-type]
    assert repo.calls == 2


async def test_integrity_error_is_not_retried() -> None:
    repo = _FlakyRepository(failures=1, error=IntegrityError("UPDATE request", {}, Exception("constraint")))
    with pytest.raises(IntegrityError):
        await apply_transition(repo, REQUEST_WORKFLOW, _request(), TEAMLEAD, RequestStatus.APPROVED_BY_TEAMLEAD)  # type: ignore[arg-type]
    assert repo.calls == 1


async def test_business_rejection_never_touches_database() -> None:
    repo = _FlakyRepository(failures=0)
    with pytest.raises(IllegalTransitionError):
        await apply_transition(repo, REQUEST_WORKFLOW, _request(), FINANCE, RequestStatus.COMPLETED)  # type: ignore[arg-type]
    assert repo.calls == 0


class _FailingOnceRepository(RequestRepository):
    """Real repository whose first status writes raise a connection error."""

    def __init__(self, session: AsyncSession, failures: int) -> None:
        super().__init__(session)
        self.failures = failures
        self.calls = 0

    async def compare_and_set(self, definition: Any, envelope_id: uuid.UUID, expected: str, values: Any) -> bool:
        self.calls += 1
        if self.calls <= self.failures:
            raise OperationalError("UPDATE request", {}, Exception("connection reset"))
        return await super().compare_and_set(definition, envelope_id, expected, values)


async def test_retry_after_rollback_with_real_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    async with session_factory() as session:
        seeded = _request()
        session.add(seeded)
        await session.commit()
        envelope_id = seeded.id

    async with session_factory() as session:
        repo = _FailingOnceRepository(session, failures=1)
        envelope = await repo.get(REQUEST_WORKFLOW, envelope_id, ScopeFilter(unrestricted=True))

        plan = await apply_transition(repo, REQUEST_WORKFLOW, envelope, TEAMLEAD, RequestStatus.APPROVED_BY_TEAMLEAD)
        await repo.commit()
        await repo.refresh(envelope)

        assert repo.calls == 2
        assert plan.source == RequestStatus.PENDING
        assert envelope.status == RequestStatus.APPROVED_BY_TEAMLEAD
        assert envelope.teamlead_id == TEAMLEAD.id


async def test_persistence_error_with_real_session_leaves_status(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    async with session_factory() as session:
        seeded = _request()
        session.add(seeded)
        await session.commit()
        envelope_id = seeded.id

    async with session_factory() as session:
        repo = _FailingOnceRepository(session, failures=2)
        envelope = await repo.get(REQUEST_WORKFLOW, envelope_id, ScopeFilter(unrestricted=True))
        with pytest.raises(PersistenceError):
            await apply_transition(repo, REQUEST_WORKFLOW, envelope, TEAMLEAD, RequestStatus.APPROVED_BY_TEAMLEAD)

    async with session_factory() as session:
        stored = await session.get(Request, envelope_id)
        assert stored is not None
        assert stored.status == RequestStatus.PENDING
        assert stored.teamlead_id is None
