# ruff: noqa: TC003
from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update
from sqlmodel import col

from finflow.exceptions import NotFoundError
from finflow.models.enums import RequestType
from finflow.models.payout import PayoutFlow, PayoutRequest
from finflow.models.request import AgentRefillDetails, ExpenseDetails, Request
from finflow.models.salary import Salary

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.elements import ColumnElement
    from sqlmodel import SQLModel

    from finflow.schemas.payout import PayoutFilters
    from finflow.schemas.request import RequestFilters
    from finflow.schemas.salary import SalaryFilters
    from finflow.services.definitions import WorkflowDefinition
    from finflow.services.scope import ScopeFilter

DETAIL_MODELS: dict[RequestType, type[AgentRefillDetails] | type[ExpenseDetails]] = {
    RequestType.AGENT_REFILL: AgentRefillDetails,
    RequestType.EXPENSES: ExpenseDetails,
}


@dataclass(frozen=True)
class Page:
    """Pagination and ordering for list queries."""

    page: int = 1
    page_size: int = 10
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=UTC)


def _created_between(model: Any, start: date | None, end: date | None) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if start is not None:
        conditions.append(col(model.created_at) >= _day_start(start))
    if end is not None:
        conditions.append(col(model.created_at) < _day_start(end + timedelta(days=1)))
    return conditions


class RequestRepository:
    """Persistence for envelopes and their subtype payloads.

    Every read takes a ScopeFilter so an out-of-scope row is indistinguishable
    from an absent one. Status writes are compare-and-set on the stored status.
    The repository never commits on its own; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # -- transaction control -------------------------------------------------

    async def flush(self) -> None:
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def refresh(self, instance: SQLModel) -> None:
        await self.session.refresh(instance)

    def add(self, instance: SQLModel) -> None:
        self.session.add(instance)

    # -- scoping -------------------------------------------------------------

    @staticmethod
    def scope_conditions(definition: WorkflowDefinition, scope: ScopeFilter) -> list[ColumnElement[bool]]:
        model: Any = definition.model
        if scope.unrestricted:
            return []
        if scope.owner_id is not None:
            return [col(getattr(model, definition.owner_field)) == scope.owner_id]
        if scope.team_id is not None:
            return [col(model.team_id) == scope.team_id]
        # An empty scope matches nothing.
        return [col(model.id).is_(None)]

    # -- reads ---------------------------------------------------------------

    async def get(self, definition: WorkflowDefinition, envelope_id: uuid.UUID, scope: ScopeFilter) -> Any:
        """Fetch an envelope visible under *scope*. Raises NotFoundError otherwise."""
        model: Any = definition.model
        result = await self.session.execute(
            select(model)
            .where(col(model.id) == envelope_id, *self.scope_conditions(definition, scope))
            .execution_options(populate_existing=True)
        )
        envelope = result.scalar_one_or_none()
        if envelope is None:
            raise NotFoundError(f"{definition.label} not found")
        return envelope

    async def get_details(self, request: Request) -> AgentRefillDetails | ExpenseDetails | None:
        detail_model = DETAIL_MODELS[RequestType(request.request_type)]
        return await self.session.get(detail_model, request.id, populate_existing=True)

    async def get_details_map(
        self, requests: Sequence[Request]
    ) -> dict[uuid.UUID, AgentRefillDetails | ExpenseDetails]:
        """Bulk-load subtype payloads for a page of request envelopes."""
        details: dict[uuid.UUID, AgentRefillDetails | ExpenseDetails] = {}
        for request_type, detail_model in DETAIL_MODELS.items():
            ids = [r.id for r in requests if r.request_type == request_type]
            if not ids:
                continue
            result = await self.session.execute(
                select(detail_model)
                .where(col(detail_model.request_id).in_(ids))
                .execution_options(populate_existing=True)
            )
            for row in result.scalars().all():
                details[row.request_id] = row
        return details

    async def get_flows(self, payout_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, list[PayoutFlow]]:
        flows: dict[uuid.UUID, list[PayoutFlow]] = {payout_id: [] for payout_id in payout_ids}
        if not payout_ids:
            return flows
        result = await self.session.execute(
            select(PayoutFlow)
            .where(col(PayoutFlow.payout_request_id).in_(payout_ids))
            .order_by(col(PayoutFlow.flow_id))
            .execution_options(populate_existing=True)
        )
        for flow in result.scalars().all():
            flows[flow.payout_request_id].append(flow)
        return flows

    async def _paginate(
        self,
        model: Any,
        base_query: Any,
        conditions: list[ColumnElement[bool]],
        order_column: Any,
        page: Page,
    ) -> tuple[list[Any], int]:
        count_query = select(func.count()).select_from(base_query.where(*conditions).subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        order = order_column.asc() if page.sort_order == "asc" else order_column.desc()
        result = await self.session.execute(
            base_query.where(*conditions).order_by(order, col(model.id)).offset(page.offset).limit(page.page_size)
        )
        return list(result.scalars().all()), total

    async def list_requests(
        self,
        definition: WorkflowDefinition,
        scope: ScopeFilter,
        filters: RequestFilters,
        page: Page,
    ) -> tuple[list[Request], int]:
        amount = func.coalesce(col(AgentRefillDetails.amount), col(ExpenseDetails.amount))
        network = func.coalesce(col(AgentRefillDetails.network), col(ExpenseDetails.network))
        base = (
            select(Request)
            .outerjoin(AgentRefillDetails, col(AgentRefillDetails.request_id) == col(Request.id))
            .outerjoin(ExpenseDetails, col(ExpenseDetails.request_id) == col(Request.id))
        )

        conditions = self.scope_conditions(definition, scope)
        if filters.status is not None:
            conditions.append(col(Request.status) == filters.status)
        if filters.request_type is not None:
            conditions.append(col(Request.request_type) == filters.request_type)
        if filters.requester_id is not None:
            conditions.append(col(Request.requester_id) == filters.requester_id)
        if filters.team_id is not None:
            conditions.append(col(Request.team_id) == filters.team_id)
        if filters.department_id is not None:
            conditions.append(col(Request.department_id) == filters.department_id)
        if filters.teamlead_id is not None:
            conditions.append(col(Request.teamlead_id) == filters.teamlead_id)
        if filters.finance_manager_id is not None:
            conditions.append(col(Request.finance_manager_id) == filters.finance_manager_id)
        if filters.min_amount is not None:
            conditions.append(amount >= filters.min_amount)
        if filters.max_amount is not None:
            conditions.append(amount <= filters.max_amount)
        if filters.network is not None:
            conditions.append(network == filters.network)
        conditions.extend(_created_between(Request, filters.start_date, filters.end_date))

        order_columns = {
            "created_at": col(Request.created_at),
            "updated_at": col(Request.updated_at),
            "status": col(Request.status),
            "amount": amount,
        }
        return await self._paginate(Request, base, conditions, order_columns[page.sort_by], page)

    async def list_salaries(
        self,
        definition: WorkflowDefinition,
        scope: ScopeFilter,
        filters: SalaryFilters,
        page: Page,
    ) -> tuple[list[Salary], int]:
        conditions = self.scope_conditions(definition, scope)
        if filters.status is not None:
            conditions.append(col(Salary.status) == filters.status)
        if filters.user_id is not None:
            conditions.append(col(Salary.user_id) == filters.user_id)
        if filters.team_id is not None:
            conditions.append(col(Salary.team_id) == filters.team_id)
        if filters.department_id is not None:
            conditions.append(col(Salary.department_id) == filters.department_id)
        if filters.month is not None:
            conditions.append(col(Salary.month) == filters.month)
        if filters.year is not None:
            conditions.append(col(Salary.year) == filters.year)

        order_columns = {
            "created_at": col(Salary.created_at),
            "updated_at": col(Salary.updated_at),
            "amount": col(Salary.amount),
            "period": col(Salary.year) * 100 + col(Salary.month),
        }
        return await self._paginate(Salary, select(Salary), conditions, order_columns[page.sort_by], page)

    async def list_payouts(
        self,
        definition: WorkflowDefinition,
        scope: ScopeFilter,
        filters: PayoutFilters,
        page: Page,
    ) -> tuple[list[PayoutRequest], int]:
        conditions = self.scope_conditions(definition, scope)
        if filters.status is not None:
            conditions.append(col(PayoutRequest.status) == filters.status)
        if filters.partner_id is not None:
            conditions.append(col(PayoutRequest.partner_id) == filters.partner_id)
        if filters.team_id is not None:
            conditions.append(col(PayoutRequest.team_id) == filters.team_id)
        if filters.start_date is not None:
            conditions.append(col(PayoutRequest.period_end) >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(col(PayoutRequest.period_start) <= filters.end_date)

        order_columns = {
            "created_at": col(PayoutRequest.created_at),
            "updated_at": col(PayoutRequest.updated_at),
            "total_amount": col(PayoutRequest.total_amount),
            "period_start": col(PayoutRequest.period_start),
        }
        return await self._paginate(
            PayoutRequest, select(PayoutRequest), conditions, order_columns[page.sort_by], page
        )

    # -- writes --------------------------------------------------------------

    async def compare_and_set(
        self,
        definition: WorkflowDefinition,
        envelope_id: uuid.UUID,
        expected_status: str,
        values: dict[str, Any],
    ) -> bool:
        """Apply *values* only if the stored status still equals *expected_status*.

        Returns False when the row is gone or its status moved on.
        """
        model: Any = definition.model
        result = await self.session.execute(
            update(model)
            .where(col(model.id) == envelope_id, col(model.status) == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def update_details(self, request: Request, values: dict[str, Any]) -> None:
        detail_model: Any = DETAIL_MODELS[RequestType(request.request_type)]
        await self.session.execute(
            update(detail_model)
            .where(col(detail_model.request_id) == request.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def replace_flows(self, payout_id: uuid.UUID, flows: Sequence[dict[str, Any]]) -> None:
        await self.session.execute(delete(PayoutFlow).where(col(PayoutFlow.payout_request_id) == payout_id))
        for line in flows:
            self.session.add(PayoutFlow(payout_request_id=payout_id, **line))

    async def delete(self, definition: WorkflowDefinition, envelope: Any) -> bool:
        """Delete an envelope with its payload rows if its status is unchanged."""
        model: Any = definition.model
        if isinstance(envelope, Request):
            detail_model: Any = DETAIL_MODELS[RequestType(envelope.request_type)]
            await self.session.execute(delete(detail_model).where(col(detail_model.request_id) == envelope.id))
        elif isinstance(envelope, PayoutRequest):
            await self.session.execute(delete(PayoutFlow).where(col(PayoutFlow.payout_request_id) == envelope.id))
        result = await self.session.execute(
            delete(model)
            .where(col(model.id) == envelope.id, col(model.status) == envelope.status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]
