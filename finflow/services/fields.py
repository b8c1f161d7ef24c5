# ruff: noqa: TC003
"""Subtype payload validation and field-level edit permissions."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from finflow.exceptions import FieldError, NoFieldsToUpdateError, PayloadValidationError
from finflow.models.enums import Currency, PayoutNetwork, RequestType, WorkflowKind
from finflow.services.transitions import is_owner

if TYPE_CHECKING:
    from finflow.services.definitions import WorkflowDefinition
    from finflow.services.scope import Actor


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class AgentRefillPayload(_Payload):
    agent_id: int | None = None
    amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)
    server: str | None = Field(default=None, max_length=255)
    wallet_address: str | None = Field(default=None, max_length=255)
    network: str | None = Field(default=None, max_length=50)
    transaction_hash: str | None = Field(default=None, max_length=255)
    fee: Decimal | None = Field(default=None, ge=0, max_digits=18, decimal_places=2)


class ExpensePayload(_Payload):
    purpose: str = Field(min_length=1, max_length=1000)
    seller_service: str | None = Field(default=None, max_length=255)
    amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)
    network: str | None = Field(default=None, max_length=50)
    wallet_address: str | None = Field(default=None, max_length=255)
    need_transaction_time: bool = False
    transaction_time: str | None = Field(default=None, max_length=100)
    need_transaction_hash: bool = False
    transaction_hash: str | None = Field(default=None, max_length=255)
    expense_type_id: int | None = None


class SalaryPayload(_Payload):
    user_id: uuid.UUID
    amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    description: str | None = Field(default=None, max_length=1000)


class PayoutFlowPayload(_Payload):
    flow_id: int
    flow_amount: Decimal = Field(default=Decimal(0), ge=0, max_digits=18, decimal_places=2)
    conversion_count: int = Field(default=0, ge=0)
    notes: str | None = Field(default=None, max_length=1000)


class PayoutPayload(_Payload):
    partner_id: int
    team_id: int | None = None
    period_start: date
    period_end: date
    total_amount: Decimal | None = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    currency: Currency = Currency.USD
    description: str | None = Field(default=None, max_length=1000)
    notes: str | None = Field(default=None, max_length=2000)
    wallet_address: str | None = Field(default=None, max_length=255)
    network: PayoutNetwork | None = None
    flows: list[PayoutFlowPayload] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_period_and_total(self) -> PayoutPayload:
        if self.period_start >= self.period_end:
            raise ValueError("period_start must be before period_end")
        flow_total = sum((flow.flow_amount for flow in self.flows), Decimal(0))
        if self.total_amount is None:
            if not self.flows:
                raise ValueError("Either total_amount or flows must be provided")
            self.total_amount = flow_total
        elif self.flows and flow_total != self.total_amount:
            raise ValueError(f"Sum of flow amounts ({flow_total}) does not match total_amount ({self.total_amount})")
        return self


PAYLOAD_MODELS: dict[RequestType, type[_Payload]] = {
    RequestType.AGENT_REFILL: AgentRefillPayload,
    RequestType.EXPENSES: ExpensePayload,
    RequestType.SALARY: SalaryPayload,
    RequestType.PAYOUT: PayoutPayload,
}

# team_id, department_id and ownership columns are never editable.
EDITABLE_FIELDS: dict[RequestType, frozenset[str]] = {
    RequestType.AGENT_REFILL: frozenset(
        {"amount", "server", "wallet_address", "network", "transaction_hash", "fee"}
    ),
    RequestType.EXPENSES: frozenset(
        {
            "purpose",
            "seller_service",
            "amount",
            "network",
            "wallet_address",
            "need_transaction_time",
            "transaction_time",
            "need_transaction_hash",
            "transaction_hash",
            "expense_type_id",
        }
    ),
    RequestType.SALARY: frozenset({"amount", "description"}),
    RequestType.PAYOUT: frozenset(
        {
            "partner_id",
            "period_start",
            "period_end",
            "total_amount",
            "currency",
            "description",
            "notes",
            "wallet_address",
            "network",
            "flows",
        }
    ),
}


def _to_field_errors(exc: ValidationError) -> list[FieldError]:
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "payload"
        message = err["msg"].removeprefix("Value error, ")
        errors.append(FieldError(field=field, message=message))
    return errors


def validate_payload(request_type: RequestType, payload: dict[str, Any]) -> Any:
    """Validate a full subtype payload. Unknown keys are dropped.

    Raises PayloadValidationError with per-field detail.
    """
    model = PAYLOAD_MODELS[request_type]
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise PayloadValidationError(f"Invalid {request_type} payload", errors=_to_field_errors(exc)) from exc


def request_type_of(definition: WorkflowDefinition, envelope: Any) -> RequestType:
    if definition.kind == WorkflowKind.REQUEST:
        return RequestType(envelope.request_type)
    return RequestType(definition.kind.value)


def compute_editable_fields(definition: WorkflowDefinition, envelope: Any, actor: Actor) -> frozenset[str]:
    """Fields *actor* may edit on *envelope* in its current status. Empty means none."""
    fields = EDITABLE_FIELDS[request_type_of(definition, envelope)]
    if actor.is_admin:
        return fields

    window = definition.edit_windows.get(actor.role, frozenset())
    if envelope.status in window:
        team_ok = actor.role not in definition.team_bound_roles or (
            actor.team_id is not None and envelope.team_id == actor.team_id
        )
        if team_ok:
            return fields

    if envelope.status in definition.owner_edit_statuses and is_owner(definition, envelope, actor):
        return fields
    return frozenset()


def recognized_changes(request_type: RequestType, patch: dict[str, Any]) -> dict[str, Any]:
    """Keep only editable keys of *patch*. Raises NoFieldsToUpdateError if none remain."""
    changes = {key: value for key, value in patch.items() if key in EDITABLE_FIELDS[request_type]}
    if not changes:
        raise NoFieldsToUpdateError()
    return changes


def validate_changes(request_type: RequestType, current: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    """Validate *changes* against the merged record and return normalized new values.

    Cross-field rules (payout period order, flow totals) are checked on
    ``current`` overlaid with ``changes``.
    """
    merged = {**current, **changes}
    if request_type == RequestType.PAYOUT and changes.get("flows") and "total_amount" not in changes:
        # Flow edits without an explicit total re-derive it.
        merged.pop("total_amount", None)
        changes = {**changes, "total_amount": None}

    validated = validate_payload(request_type, merged)
    values = {key: getattr(validated, key) for key in changes}
    if "flows" in values:
        values["flows"] = [flow.model_dump() for flow in values["flows"]]
    return values
