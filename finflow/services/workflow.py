# ruff: noqa: TC003
from __future__ import annotations

import logging
import math
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError

from finflow.config import get_settings
from finflow.exceptions import DuplicateRequestError, ForbiddenError, IllegalTransitionError, NotEditableError
from finflow.models.base import now_utc
from finflow.models.enums import AuditAction, RequestType, Role, WorkflowKind
from finflow.models.payout import PayoutFlow, PayoutRequest
from finflow.models.request import Request
from finflow.models.salary import Salary
from finflow.schemas.common import PaginationInfo
from finflow.schemas.payout import (
    PayoutFlowResponse,
    PayoutListResponse,
    PayoutResponse,
    PayoutStatusChangeResponse,
)
from finflow.schemas.request import (
    AgentRefillDetailsResponse,
    ExpenseDetailsResponse,
    RequestListResponse,
    RequestResponse,
    RequestStatusChangeResponse,
)
from finflow.schemas.salary import SalaryListResponse, SalaryResponse, SalaryStatusChangeResponse
from finflow.services.audit import model_to_audit_dict, write_audit_log
from finflow.services.definitions import get_workflow
from finflow.services.fields import (
    compute_editable_fields,
    recognized_changes,
    request_type_of,
    validate_changes,
    validate_payload,
)
from finflow.services.notifier import StatusChangeEvent
from finflow.services.repository import DETAIL_MODELS, Page, RequestRepository
from finflow.services.scope import resolve_actor, resolve_scope
from finflow.services.transitions import apply_transition, available_transitions, describe_transition

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pydantic import BaseModel

    from finflow.schemas.auth import AuthContext
    from finflow.schemas.payout import PayoutFilters
    from finflow.schemas.request import RequestFilters
    from finflow.schemas.salary import SalaryFilters
    from finflow.services.definitions import WorkflowDefinition
    from finflow.services.directory import UserDirectory
    from finflow.services.notifier import StatusChangeNotifier
    from finflow.services.scope import Actor, ScopeFilter

logger = logging.getLogger(__name__)

EnvelopeResponse = RequestResponse | SalaryResponse | PayoutResponse

# Request types restricted to specific creator roles; others are open to every role.
CREATE_ROLES: dict[RequestType, frozenset[Role]] = {
    RequestType.SALARY: frozenset({Role.ADMIN, Role.FINANCE_MANAGER}),
    RequestType.PAYOUT: frozenset({Role.ADMIN, Role.BIZDEV}),
}

_LIST_SCHEMAS: dict[WorkflowKind, type[BaseModel]] = {
    WorkflowKind.REQUEST: RequestListResponse,
    WorkflowKind.SALARY: SalaryListResponse,
    WorkflowKind.PAYOUT: PayoutListResponse,
}

_STATUS_CHANGE_SCHEMAS: dict[WorkflowKind, type[BaseModel]] = {
    WorkflowKind.REQUEST: RequestStatusChangeResponse,
    WorkflowKind.SALARY: SalaryStatusChangeResponse,
    WorkflowKind.PAYOUT: PayoutStatusChangeResponse,
}

_SALARY_EDIT_BASE = ("user_id", "amount", "month", "year", "description")
_PAYOUT_EDIT_BASE = (
    "partner_id",
    "period_start",
    "period_end",
    "total_amount",
    "currency",
    "description",
    "notes",
    "wallet_address",
    "network",
)


def _flow_values(flow: PayoutFlow) -> dict[str, Any]:
    return flow.model_dump(include={"flow_id", "flow_amount", "conversion_count", "notes"})


class WorkflowService:
    """Entry point for every envelope operation.

    Each operation resolves the actor and its scope first, then delegates to
    the validator or the transition engine, and persists the change together
    with its audit row in one transaction. Notifications go out after commit.
    """

    def __init__(
        self,
        repository: RequestRepository,
        directory: UserDirectory,
        notifier: StatusChangeNotifier,
    ) -> None:
        self.repository = repository
        self.directory = directory
        self.notifier = notifier

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _resolve(self, auth: AuthContext) -> tuple[Actor, ScopeFilter]:
        actor = await resolve_actor(auth, self.directory)
        return actor, resolve_scope(actor)

    async def _snapshot(self, definition: WorkflowDefinition, envelope: Any) -> dict[str, Any]:
        """JSON-safe view of an envelope with its payload, for the audit log."""
        if definition.kind == WorkflowKind.REQUEST:
            details = await self.repository.get_details(envelope)
            payload = details.model_dump(exclude={"request_id"}) if details is not None else None
            return model_to_audit_dict(envelope, details=payload)
        if definition.kind == WorkflowKind.PAYOUT:
            flows = (await self.repository.get_flows([envelope.id]))[envelope.id]
            return model_to_audit_dict(envelope, flows=[_flow_values(flow) for flow in flows])
        return model_to_audit_dict(envelope)

    async def _current_values(self, definition: WorkflowDefinition, envelope: Any) -> dict[str, Any]:
        """Stored subtype fields that partial edits are merged onto."""
        if definition.kind == WorkflowKind.REQUEST:
            details = await self.repository.get_details(envelope)
            return details.model_dump(exclude={"request_id"}) if details is not None else {}
        if definition.kind == WorkflowKind.SALARY:
            return envelope.model_dump(include=set(_SALARY_EDIT_BASE))
        flows = (await self.repository.get_flows([envelope.id]))[envelope.id]
        return {**envelope.model_dump(include=set(_PAYOUT_EDIT_BASE)), "flows": [_flow_values(f) for f in flows]}

    async def _build_responses(
        self, definition: WorkflowDefinition, envelopes: Sequence[Any], actor: Actor
    ) -> list[Any]:
        """Map envelopes to their response schemas, batch-loading payload rows."""
        if definition.kind == WorkflowKind.REQUEST:
            details_map = await self.repository.get_details_map(envelopes)
            responses: list[Any] = []
            for envelope in envelopes:
                details = details_map.get(envelope.id)
                detail_schema = (
                    AgentRefillDetailsResponse
                    if envelope.request_type == RequestType.AGENT_REFILL
                    else ExpenseDetailsResponse
                )
                responses.append(
                    RequestResponse(
                        **envelope.model_dump(),
                        details=detail_schema.model_validate(details, from_attributes=True) if details else None,
                        available_transitions=available_transitions(definition, envelope, actor),
                    )
                )
            return responses

        if definition.kind == WorkflowKind.SALARY:
            return [
                SalaryResponse(
                    **envelope.model_dump(),
                    available_transitions=available_transitions(definition, envelope, actor),
                )
                for envelope in envelopes
            ]

        flows_map = await self.repository.get_flows([envelope.id for envelope in envelopes])
        return [
            PayoutResponse(
                **envelope.model_dump(),
                flows=[PayoutFlowResponse.model_validate(flow, from_attributes=True) for flow in flows_map[envelope.id]],
                available_transitions=available_transitions(definition, envelope, actor),
            )
            for envelope in envelopes
        ]

    async def _build_response(self, definition: WorkflowDefinition, envelope: Any, actor: Actor) -> Any:
        return (await self._build_responses(definition, [envelope], actor))[0]

    async def _notify(self, event: StatusChangeEvent) -> None:
        # The change is already committed; a delivery failure must not turn it into an error response.
        try:
            await self.notifier.notify(event)
        except Exception:
            logger.exception("Status change notification failed for %s %s", event.kind, event.entity_id)

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    async def create_request(
        self, auth: AuthContext, request_type: RequestType, payload: dict[str, Any]
    ) -> EnvelopeResponse:
        """Create an envelope of *request_type* in its workflow's initial status."""
        actor, _ = await self._resolve(auth)
        definition = get_workflow(request_type.kind)

        allowed_roles = CREATE_ROLES.get(request_type)
        if allowed_roles is not None and actor.role not in allowed_roles:
            raise ForbiddenError(f'Role "{actor.role}" cannot create {request_type} requests')

        validated = validate_payload(request_type, payload)

        envelope: Any
        if definition.kind == WorkflowKind.REQUEST:
            envelope = Request(
                request_type=request_type.value,
                status=definition.initial_status,
                requester_id=actor.id,
                team_id=actor.team_id,
                department_id=actor.department_id,
            )
            self.repository.add(envelope)
            await self.repository.flush()
            detail_model = DETAIL_MODELS[request_type]
            self.repository.add(detail_model(request_id=envelope.id, **validated.model_dump()))
            await self.repository.flush()

        elif definition.kind == WorkflowKind.SALARY:
            # Organization snapshot comes from the payee, not the creator.
            payee = await self.directory.get_user(validated.user_id)
            envelope = Salary(
                **validated.model_dump(),
                team_id=payee.team_id if payee else None,
                department_id=payee.department_id if payee else None,
                status=definition.initial_status,
                created_by=actor.id,
            )
            self.repository.add(envelope)
            try:
                await self.repository.flush()
            except IntegrityError:
                await self.repository.rollback()
                raise DuplicateRequestError(
                    f"Salary for user {validated.user_id} for {validated.month:02d}/{validated.year} already exists"
                ) from None

        else:
            envelope = PayoutRequest(
                **validated.model_dump(exclude={"flows", "team_id"}),
                team_id=validated.team_id if validated.team_id is not None else actor.team_id,
                department_id=actor.department_id,
                status=definition.initial_status,
                created_by=actor.id,
            )
            self.repository.add(envelope)
            await self.repository.flush()
            await self.repository.replace_flows(envelope.id, [flow.model_dump() for flow in validated.flows])
            await self.repository.flush()

        await write_audit_log(
            self.repository.session,
            actor=actor,
            entity_type=definition.entity_type,
            entity_id=envelope.id,
            action=AuditAction.CREATE,
            after_json=await self._snapshot(definition, envelope),
        )
        await self.repository.commit()
        logger.info("Created %s %s (%s) by %s", definition.kind, envelope.id, request_type, actor.id)
        return await self._build_response(definition, envelope, actor)

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    async def get_request(self, auth: AuthContext, kind: WorkflowKind, envelope_id: uuid.UUID) -> EnvelopeResponse:
        actor, scope = await self._resolve(auth)
        definition = get_workflow(kind)
        envelope = await self.repository.get(definition, envelope_id, scope)
        return await self._build_response(definition, envelope, actor)

    async def list_requests(
        self,
        auth: AuthContext,
        kind: WorkflowKind,
        filters: RequestFilters | SalaryFilters | PayoutFilters,
    ) -> Any:
        """List envelopes of *kind* visible to the caller, filtered and paginated."""
        actor, scope = await self._resolve(auth)
        definition = get_workflow(kind)
        settings = get_settings()

        page_size = min(filters.page_size or settings.default_page_size, settings.max_page_size)
        page = Page(
            page=filters.page,
            page_size=page_size,
            sort_by=filters.sort_by,
            sort_order=filters.sort_order,
        )

        if kind == WorkflowKind.REQUEST:
            items, total = await self.repository.list_requests(definition, scope, filters, page)
        elif kind == WorkflowKind.SALARY:
            items, total = await self.repository.list_salaries(definition, scope, filters, page)
        else:
            items, total = await self.repository.list_payouts(definition, scope, filters, page)

        pagination = PaginationInfo(
            page=page.page,
            page_size=page_size,
            total=total,
            total_pages=math.ceil(total / page_size),
        )
        responses = await self._build_responses(definition, items, actor)
        return _LIST_SCHEMAS[kind](items=responses, pagination=pagination)

    # -----------------------------------------------------------------------
    # Field edits
    # -----------------------------------------------------------------------

    async def update_request_fields(
        self,
        auth: AuthContext,
        kind: WorkflowKind,
        envelope_id: uuid.UUID,
        patch: dict[str, Any],
    ) -> EnvelopeResponse:
        """Apply a partial edit of subtype fields within the actor's edit window."""
        actor, scope = await self._resolve(auth)
        definition = get_workflow(kind)
        envelope = await self.repository.get(definition, envelope_id, scope)
        request_type = request_type_of(definition, envelope)

        # 1. Edit window for role x status.
        if not compute_editable_fields(definition, envelope, actor):
            raise NotEditableError(f'{definition.label} cannot be edited by "{actor.role}" in status "{envelope.status}"')

        # 2. Drop unknown keys, then validate against the merged record.
        changes = recognized_changes(request_type, patch)
        current = await self._current_values(definition, envelope)
        values = validate_changes(request_type, current, changes)
        before = await self._snapshot(definition, envelope)

        # 3. Envelope write is conditional on the status the window was checked against.
        envelope_values: dict[str, Any] = {"updated_at": now_utc()}
        if definition.kind != WorkflowKind.REQUEST:
            envelope_values.update({key: value for key, value in values.items() if key != "flows"})
        applied = await self.repository.compare_and_set(definition, envelope.id, envelope.status, envelope_values)
        if not applied:
            await self.repository.rollback()
            raise NotEditableError(f'{definition.label} status changed during the edit; reload and try again')

        if definition.kind == WorkflowKind.REQUEST:
            await self.repository.update_details(envelope, values)
        elif "flows" in values:
            await self.repository.replace_flows(envelope.id, values["flows"])
        await self.repository.flush()
        await self.repository.refresh(envelope)

        await write_audit_log(
            self.repository.session,
            actor=actor,
            entity_type=definition.entity_type,
            entity_id=envelope.id,
            action=AuditAction.UPDATE,
            before_json=before,
            after_json=await self._snapshot(definition, envelope),
        )
        await self.repository.commit()
        logger.info("Updated %s %s fields %s by %s", definition.kind, envelope.id, sorted(values), actor.id)
        return await self._build_response(definition, envelope, actor)

    # -----------------------------------------------------------------------
    # Status changes
    # -----------------------------------------------------------------------

    async def change_status(
        self,
        auth: AuthContext,
        kind: WorkflowKind,
        envelope_id: uuid.UUID,
        target: str,
        details: dict[str, Any] | None = None,
    ) -> Any:
        """Move an envelope to *target* and return it with a human-readable message."""
        actor, scope = await self._resolve(auth)
        definition = get_workflow(kind)
        envelope = await self.repository.get(definition, envelope_id, scope)
        details = dict(details or {})

        if kind == WorkflowKind.SALARY and not details.get("payment_address"):
            payee = await self.directory.get_user(envelope.user_id)
            if payee is not None and payee.salary_wallet_address:
                details["payment_address"] = payee.salary_wallet_address

        before = await self._snapshot(definition, envelope)
        plan = await apply_transition(self.repository, definition, envelope, actor, target, details)
        await self.repository.refresh(envelope)

        await write_audit_log(
            self.repository.session,
            actor=actor,
            entity_type=definition.entity_type,
            entity_id=envelope.id,
            action=AuditAction.STATUS_CHANGE,
            before_json=before,
            after_json=await self._snapshot(definition, envelope),
        )
        await self.repository.commit()

        message = describe_transition(definition, plan.source, plan.target)
        logger.info("%s %s: %s -> %s by %s (%s)", definition.label, envelope.id, plan.source, plan.target, actor.id, actor.role)

        await self._notify(
            StatusChangeEvent(
                kind=definition.kind,
                entity_id=envelope.id,
                owner_id=getattr(envelope, definition.owner_field),
                team_id=envelope.team_id,
                old_status=plan.source,
                new_status=plan.target,
                actor_id=actor.id,
                actor_role=actor.role,
                message=message,
                occurred_at=plan.values["updated_at"],
            )
        )
        item = await self._build_response(definition, envelope, actor)
        return _STATUS_CHANGE_SCHEMAS[kind](item=item, message=message)

    async def cancel_request(self, auth: AuthContext, kind: WorkflowKind, envelope_id: uuid.UUID) -> Any:
        """Shorthand for a status change to ``cancelled``."""
        definition = get_workflow(kind)
        return await self.change_status(auth, kind, envelope_id, definition.cancel_status or "cancelled")

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    async def delete_request(self, auth: AuthContext, kind: WorkflowKind, envelope_id: uuid.UUID) -> None:
        """Hard-delete a non-terminal envelope. Admin only."""
        actor, scope = await self._resolve(auth)
        definition = get_workflow(kind)
        envelope = await self.repository.get(definition, envelope_id, scope)

        if not actor.is_admin:
            raise ForbiddenError(f"Only admin can delete a {definition.label.lower()}")
        if definition.is_terminal(envelope.status):
            raise IllegalTransitionError(f'{definition.label} in status "{envelope.status}" cannot be deleted')

        before = await self._snapshot(definition, envelope)
        deleted = await self.repository.delete(definition, envelope)
        if not deleted:
            await self.repository.rollback()
            raise IllegalTransitionError(f'{definition.label} status changed; reload and try again')

        await write_audit_log(
            self.repository.session,
            actor=actor,
            entity_type=definition.entity_type,
            entity_id=envelope_id,
            action=AuditAction.DELETE,
            before_json=before,
        )
        await self.repository.commit()
        logger.info("Deleted %s %s by %s", definition.kind, envelope_id, actor.id)
