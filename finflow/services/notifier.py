# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from finflow.models.enums import Role, WorkflowKind

logger = logging.getLogger(__name__)


class StatusChangeEvent(BaseModel):
    """Read-only snapshot of a committed status change."""

    model_config = ConfigDict(frozen=True)

    kind: WorkflowKind
    entity_id: uuid.UUID
    owner_id: uuid.UUID
    team_id: int | None = None
    old_status: str
    new_status: str
    actor_id: uuid.UUID
    actor_role: Role
    message: str
    occurred_at: datetime


@runtime_checkable
class StatusChangeNotifier(Protocol):
    """Interface for delivering status-change notifications."""

    async def notify(self, event: StatusChangeEvent) -> None:
        """Deliver *event*. Called only after the change is committed."""
        ...


class LoggingStatusChangeNotifier:
    """Default notifier: writes each committed status change to the log and keeps nothing."""

    async def notify(self, event: StatusChangeEvent) -> None:
        logger.info(
            "Status change on %s %s by %s (%s): %s",
            event.kind,
            event.entity_id,
            event.actor_id,
            event.actor_role,
            event.message,
        )


class InMemoryStatusChangeNotifier:
    """Recording stub for tests. Keeps every delivered event until cleared."""

    def __init__(self) -> None:
        self.events: list[StatusChangeEvent] = []

    async def notify(self, event: StatusChangeEvent) -> None:
        logger.debug("Status change on %s %s: %s", event.kind, event.entity_id, event.message)
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()


_notifier: StatusChangeNotifier = LoggingStatusChangeNotifier()


def get_status_notifier() -> StatusChangeNotifier:
    """FastAPI dependency for the status-change notifier."""
    return _notifier


def set_status_notifier(notifier: StatusChangeNotifier) -> None:
    """Override the notifier (for testing or production wiring)."""
    global _notifier
    _notifier = notifier
