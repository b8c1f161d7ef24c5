"""Declarative workflow definitions.

Each workflow kind (request, salary, payout) is described as data: its
status vocabulary, the directed status graph, the role allow-list for every
edge, who may edit fields in which status, and which approver fields a
transition stamps. The engine in ``transitions`` and the validator in
``fields`` only interpret these tables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from finflow.models.enums import (
    AuditEntityType,
    PayoutStatus,
    RequestStatus,
    Role,
    SalaryStatus,
    WorkflowKind,
)
from finflow.models.payout import PayoutRequest
from finflow.models.request import Request
from finflow.models.salary import Salary

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlmodel import SQLModel

Edge = tuple[str, str]


@dataclass(frozen=True)
class WorkflowDefinition:
    """Status graph, permissions and side effects for one envelope family."""

    kind: WorkflowKind
    model: type[SQLModel]
    entity_type: AuditEntityType
    label: str
    statuses: frozenset[str]
    initial_status: str
    terminal: frozenset[str]
    graph: Mapping[str, frozenset[str]]
    # (from, to) -> roles allowed to apply the edge (admin is implicit).
    rules: Mapping[Edge, frozenset[Role]]
    # Column holding the owning user (requester / payee / creator).
    owner_field: str
    cancel_status: str | None = None
    # Non-admin edit windows: role -> statuses in which the role may edit.
    edit_windows: Mapping[Role, frozenset[str]] = field(default_factory=dict)
    # Statuses in which the owner may edit their own envelope.
    owner_edit_statuses: frozenset[str] = frozenset()
    # Target status -> approver-id fields stamped with the actor id.
    actor_stamps: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    # Target status -> timestamp fields stamped with the transition time.
    time_stamps: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    # Target status -> {transition detail key: column} copied onto the envelope.
    detail_columns: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    # Target status -> detail keys that must be present for the transition.
    required_details: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    # Roles whose rules only apply to envelopes of the actor's own team.
    team_bound_roles: frozenset[Role] = frozenset({Role.TEAMLEAD})

    def is_terminal(self, status: str) -> bool:
        return status in self.terminal

    def successors(self, status: str) -> frozenset[str]:
        return self.graph.get(status, frozenset())


def _rules(*entries: tuple[str, str, Role | tuple[Role, ...]]) -> dict[Edge, frozenset[Role]]:
    table: dict[Edge, frozenset[Role]] = {}
    for source, target, roles in entries:
        role_set = frozenset(roles) if isinstance(roles, tuple) else frozenset({roles})
        table[(source, target)] = table.get((source, target), frozenset()) | role_set
    return table


_RS = RequestStatus

REQUEST_WORKFLOW = WorkflowDefinition(
    kind=WorkflowKind.REQUEST,
    model=Request,
    entity_type=AuditEntityType.REQUEST,
    label="Request",
    statuses=frozenset(_RS),
    initial_status=_RS.PENDING,
    terminal=frozenset({_RS.REJECTED_BY_TEAMLEAD, _RS.REJECTED_BY_FINANCE, _RS.COMPLETED, _RS.CANCELLED}),
    graph={
        _RS.PENDING: frozenset({_RS.APPROVED_BY_TEAMLEAD, _RS.REJECTED_BY_TEAMLEAD, _RS.CANCELLED}),
        _RS.APPROVED_BY_TEAMLEAD: frozenset({_RS.APPROVED_BY_FINANCE, _RS.REJECTED_BY_FINANCE, _RS.CANCELLED}),
        _RS.APPROVED_BY_FINANCE: frozenset({_RS.COMPLETED, _RS.CANCELLED}),
    },
    rules=_rules(
        (_RS.PENDING, _RS.APPROVED_BY_TEAMLEAD, Role.TEAMLEAD),
        (_RS.PENDING, _RS.REJECTED_BY_TEAMLEAD, Role.TEAMLEAD),
        (_RS.APPROVED_BY_TEAMLEAD, _RS.APPROVED_BY_FINANCE, Role.FINANCE_MANAGER),
        (_RS.APPROVED_BY_TEAMLEAD, _RS.REJECTED_BY_FINANCE, Role.FINANCE_MANAGER),
        (_RS.APPROVED_BY_TEAMLEAD, _RS.CANCELLED, Role.FINANCE_MANAGER),
        (_RS.APPROVED_BY_FINANCE, _RS.COMPLETED, Role.FINANCE_MANAGER),
    ),
    owner_field="requester_id",
    cancel_status=_RS.CANCELLED,
    edit_windows={
        Role.FINANCE_MANAGER: frozenset({_RS.APPROVED_BY_TEAMLEAD}),
        Role.TEAMLEAD: frozenset({_RS.PENDING}),
    },
    owner_edit_statuses=frozenset({_RS.PENDING}),
    actor_stamps={
        _RS.APPROVED_BY_TEAMLEAD: ("teamlead_id",),
        _RS.REJECTED_BY_TEAMLEAD: ("teamlead_id",),
        _RS.APPROVED_BY_FINANCE: ("finance_manager_id",),
        _RS.REJECTED_BY_FINANCE: ("finance_manager_id",),
    },
)


_SS = SalaryStatus

SALARY_WORKFLOW = WorkflowDefinition(
    kind=WorkflowKind.SALARY,
    model=Salary,
    entity_type=AuditEntityType.SALARY,
    label="Salary",
    statuses=frozenset(_SS),
    initial_status=_SS.PENDING,
    terminal=frozenset({_SS.REJECTED, _SS.PAID}),
    graph={
        _SS.PENDING: frozenset({_SS.APPROVED, _SS.REJECTED}),
        _SS.APPROVED: frozenset({_SS.PAID}),
    },
    rules=_rules(
        (_SS.PENDING, _SS.APPROVED, Role.FINANCE_MANAGER),
        (_SS.PENDING, _SS.REJECTED, Role.FINANCE_MANAGER),
        (_SS.APPROVED, _SS.PAID, Role.FINANCE_MANAGER),
    ),
    owner_field="user_id",
    edit_windows={
        Role.FINANCE_MANAGER: frozenset({_SS.PENDING, _SS.APPROVED}),
    },
    actor_stamps={
        _SS.APPROVED: ("approved_by",),
        _SS.PAID: ("finance_manager_id",),
    },
    time_stamps={
        _SS.APPROVED: ("approved_at",),
        _SS.PAID: ("paid_at",),
    },
    detail_columns={
        _SS.PAID: {
            "transaction_hash": "payment_transaction_hash",
            "payment_network": "payment_network",
            "payment_address": "payment_address",
        },
    },
    required_details={_SS.PAID: ("transaction_hash", "payment_address")},
)


_PS = PayoutStatus
_PAYOUT_OPEN = (_PS.DRAFT, _PS.PENDING, _PS.APPROVED, _PS.IN_PAYMENT)

PAYOUT_WORKFLOW = WorkflowDefinition(
    kind=WorkflowKind.PAYOUT,
    model=PayoutRequest,
    entity_type=AuditEntityType.PAYOUT,
    label="Payout request",
    statuses=frozenset(_PS),
    initial_status=_PS.DRAFT,
    terminal=frozenset({_PS.COMPLETED, _PS.REJECTED, _PS.CANCELLED}),
    graph={
        _PS.DRAFT: frozenset({_PS.PENDING, _PS.APPROVED, _PS.REJECTED, _PS.CANCELLED}),
        _PS.PENDING: frozenset({_PS.APPROVED, _PS.REJECTED, _PS.CANCELLED}),
        _PS.APPROVED: frozenset({_PS.IN_PAYMENT, _PS.REJECTED, _PS.CANCELLED}),
        _PS.IN_PAYMENT: frozenset({_PS.COMPLETED, _PS.REJECTED, _PS.CANCELLED}),
    },
    rules=_rules(
        (_PS.DRAFT, _PS.PENDING, Role.BIZDEV),
        (_PS.DRAFT, _PS.APPROVED, Role.FINANCE_MANAGER),
        (_PS.PENDING, _PS.APPROVED, Role.FINANCE_MANAGER),
        (_PS.APPROVED, _PS.IN_PAYMENT, Role.FINANCE_MANAGER),
        (_PS.IN_PAYMENT, _PS.COMPLETED, Role.FINANCE_MANAGER),
        *((source, _PS.REJECTED, Role.FINANCE_MANAGER) for source in _PAYOUT_OPEN),
        *((source, _PS.CANCELLED, Role.FINANCE_MANAGER) for source in _PAYOUT_OPEN),
    ),
    owner_field="created_by",
    cancel_status=_PS.CANCELLED,
    edit_windows={
        Role.FINANCE_MANAGER: frozenset({_PS.PENDING}),
    },
    owner_edit_statuses=frozenset({_PS.DRAFT, _PS.PENDING}),
    actor_stamps={_PS.APPROVED: ("approved_by",)},
    time_stamps={_PS.APPROVED: ("approved_at",)},
)


WORKFLOWS: dict[WorkflowKind, WorkflowDefinition] = {
    WorkflowKind.REQUEST: REQUEST_WORKFLOW,
    WorkflowKind.SALARY: SALARY_WORKFLOW,
    WorkflowKind.PAYOUT: PAYOUT_WORKFLOW,
}


def get_workflow(kind: WorkflowKind) -> WorkflowDefinition:
    return WORKFLOWS[kind]
