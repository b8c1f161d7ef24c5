"""Status transition engine.

Evaluation order for a requested ``target`` status:

1. ``target`` must belong to the workflow's status vocabulary.
2. Admin bypasses the graph and the allow-list entirely. This is the
   documented override path, including exits from terminal statuses.
3. ``target`` must be a successor of the stored status in the graph.
4. The (from, to) edge must list the actor's role; team-bound roles also
   need the envelope to belong to the actor's team.
5. Failing 4, the envelope's owner may still move to the workflow's
   cancel status from any non-terminal status.

The status write is a compare-and-set against the status the decision was
made on, so a concurrent winner turns the loser into IllegalTransitionError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import DBAPIError, IntegrityError

from finflow.config import get_settings
from finflow.exceptions import (
    FieldError,
    IllegalTransitionError,
    InvalidTargetStatusError,
    PayloadValidationError,
    PersistenceError,
)
from finflow.models.base import now_utc

if TYPE_CHECKING:
    from collections.abc import Mapping

    from finflow.services.definitions import WorkflowDefinition
    from finflow.services.repository import RequestRepository
    from finflow.services.scope import Actor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionPlan:
    """A validated status change and the column values it writes."""

    source: str
    target: str
    values: dict[str, Any]
    override: bool = False


def is_owner(definition: WorkflowDefinition, envelope: Any, actor: Actor) -> bool:
    return getattr(envelope, definition.owner_field) == actor.id


def _role_may_apply(definition: WorkflowDefinition, envelope: Any, actor: Actor, source: str, target: str) -> bool:
    roles = definition.rules.get((source, target), frozenset())
    if actor.role not in roles:
        return False
    if actor.role in definition.team_bound_roles:
        return actor.team_id is not None and envelope.team_id == actor.team_id
    return True


def _owner_may_cancel(definition: WorkflowDefinition, envelope: Any, actor: Actor, source: str, target: str) -> bool:
    return (
        definition.cancel_status is not None
        and target == definition.cancel_status
        and not definition.is_terminal(source)
        and is_owner(definition, envelope, actor)
    )


def check_transition(definition: WorkflowDefinition, envelope: Any, actor: Actor, target: str) -> bool:
    """Validate moving *envelope* to *target*. Returns True when admin override was used.

    Raises InvalidTargetStatusError or IllegalTransitionError.
    """
    source = envelope.status
    if target not in definition.statuses:
        allowed = ", ".join(sorted(definition.statuses))
        raise InvalidTargetStatusError(f'Invalid status "{target}". Allowed values: {allowed}')

    if actor.is_admin:
        return True

    if target not in definition.successors(source):
        raise IllegalTransitionError(f'Cannot change status from "{source}" to "{target}"')

    if _role_may_apply(definition, envelope, actor, source, target):
        return False
    if _owner_may_cancel(definition, envelope, actor, source, target):
        return False
    raise IllegalTransitionError(f'Role "{actor.role}" cannot change status from "{source}" to "{target}"')


def is_transition_allowed(definition: WorkflowDefinition, envelope: Any, actor: Actor, target: str) -> bool:
    """Boolean form of check_transition, for listing available actions."""
    try:
        check_transition(definition, envelope, actor, target)
    except (IllegalTransitionError, InvalidTargetStatusError):
        return False
    return True


def available_transitions(definition: WorkflowDefinition, envelope: Any, actor: Actor) -> list[str]:
    """Targets the actor may move *envelope* to right now (graph edges only, also for admin)."""
    return sorted(t for t in definition.successors(envelope.status) if is_transition_allowed(definition, envelope, actor, t))


def plan_transition(
    definition: WorkflowDefinition,
    envelope: Any,
    actor: Actor,
    target: str,
    details: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> TransitionPlan:
    """Check the transition and compute every column it writes."""
    override = check_transition(definition, envelope, actor, target)
    details = details or {}
    now = now or now_utc()

    missing = [key for key in definition.required_details.get(target, ()) if not details.get(key)]
    if missing:
        raise PayloadValidationError(
            f'Status "{target}" requires: {", ".join(missing)}',
            errors=[FieldError(field=key, message="Field required") for key in missing],
        )

    values: dict[str, Any] = {"status": target, "updated_at": now}
    # Approver fields are written once and never cleared.
    for column in definition.actor_stamps.get(target, ()):
        if getattr(envelope, column) is None:
            values[column] = actor.id
    for column in definition.time_stamps.get(target, ()):
        if getattr(envelope, column) is None:
            values[column] = now
    for key, column in definition.detail_columns.get(target, {}).items():
        if details.get(key) is not None:
            values[column] = details[key]

    return TransitionPlan(source=envelope.status, target=target, values=values, override=override)


async def apply_transition(
    repository: RequestRepository,
    definition: WorkflowDefinition,
    envelope: Any,
    actor: Actor,
    target: str,
    details: Mapping[str, Any] | None = None,
) -> TransitionPlan:
    """Validate and write a status change as one compare-and-set statement.

    Transient database errors get one immediate retry of the write only;
    business validation is never retried.
    """
    plan = plan_transition(definition, envelope, actor, target, details)
    attempts = 1 + max(get_settings().status_write_retries, 0)
    # A rollback expires the loaded envelope; only these locals are read after one.
    envelope_id = envelope.id

    for attempt in range(1, attempts + 1):
        try:
            applied = await repository.compare_and_set(definition, envelope_id, plan.source, plan.values)
            break
        except IntegrityError:
            raise
        except DBAPIError as exc:
            await repository.rollback()
            if attempt == attempts:
                logger.error("Status write for %s %s failed after %d attempts", definition.kind, envelope_id, attempt)
                raise PersistenceError from exc
            logger.warning("Retrying status write for %s %s after database error: %s", definition.kind, envelope_id, exc)

    if not applied:
        await repository.rollback()
        logger.warning(
            "Lost status race on %s %s: %s -> %s by %s", definition.kind, envelope_id, plan.source, target, actor.id
        )
        raise IllegalTransitionError(f'Status is no longer "{plan.source}"; reload and try again')

    if plan.override:
        logger.info("Admin override on %s %s: %s -> %s by %s", definition.kind, envelope_id, plan.source, target, actor.id)
    return plan


def describe_transition(definition: WorkflowDefinition, source: str, target: str) -> str:
    """Human-readable message for a committed status change."""
    return f'{definition.label} status changed from "{source}" to "{target}"'
