# ruff: noqa: TC003
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from finflow.exceptions import ScopeError
from finflow.models.enums import Role

if TYPE_CHECKING:
    from finflow.schemas.auth import AuthContext
    from finflow.services.definitions import WorkflowDefinition
    from finflow.services.directory import UserDirectory

GLOBAL_ROLES = frozenset({Role.FINANCE_MANAGER, Role.ADMIN})


@dataclass(frozen=True)
class Actor:
    """Authenticated caller enriched with its organizational placement."""

    id: uuid.UUID
    role: Role
    team_id: int | None = None
    department_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class ScopeFilter:
    """Subset of envelopes an actor may see or act on.

    Exactly one of ``owner_id`` / ``team_id`` is set unless ``unrestricted``.
    """

    unrestricted: bool = False
    owner_id: uuid.UUID | None = None
    team_id: int | None = None

    def allows(self, definition: WorkflowDefinition, envelope: Any) -> bool:
        """Return True if *envelope* falls inside this scope."""
        if self.unrestricted:
            return True
        if self.owner_id is not None:
            return getattr(envelope, definition.owner_field) == self.owner_id
        if self.team_id is not None:
            return envelope.team_id == self.team_id
        return False


async def resolve_actor(auth: AuthContext, directory: UserDirectory) -> Actor:
    """Build an Actor from the authenticated identity and the user directory.

    Team and department come from the directory's *current* profile; the
    role always comes from the authenticated context.
    """
    profile = await directory.get_user(auth.user_id)
    if profile is None:
        return Actor(id=auth.user_id, role=auth.role)
    return Actor(
        id=auth.user_id,
        role=auth.role,
        team_id=profile.team_id,
        department_id=profile.department_id,
    )


def resolve_scope(actor: Actor) -> ScopeFilter:
    """Compute the visibility scope for *actor*. Pure function of role and team."""
    if actor.role in GLOBAL_ROLES:
        return ScopeFilter(unrestricted=True)
    if actor.role == Role.TEAMLEAD:
        if actor.team_id is None:
            raise ScopeError("Team lead is not assigned to a team")
        return ScopeFilter(team_id=actor.team_id)
    return ScopeFilter(owner_id=actor.id)
