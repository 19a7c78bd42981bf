"""Ground-truth earnings aggregated from active work orders."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import Numeric, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from plantation_payroll.calculators.types import (
    WorkOrderRateType,
    WorkOrderStatus,
    round_to_cents,
    to_decimal,
)
from plantation_payroll.models import WorkOrder, WorkOrderWorker
from plantation_payroll.periods import month_bounds


def assignment_amount_expression() -> Any:
    """SQL twin of compute_gross_salary: round(rate * quantity, 2)."""
    quantity = case(
        (
            WorkOrder.work_order_rate_type == WorkOrderRateType.WORK_DAYS.value,
            func.coalesce(WorkOrderWorker.work_days, 0),
        ),
        else_=func.coalesce(WorkOrderWorker.work_area_size, 0),
    )
    return func.round(func.coalesce(WorkOrderWorker.rate, 0) * quantity, 2)


async def active_earnings_by_worker(
    session: AsyncSession,
    month_year: str,
    worker_ids: Iterable[UUID] | None = None,
    exclude_work_order_id: UUID | None = None,
) -> dict[UUID, Decimal]:
    """Sum earnings per worker over active, completed work orders in a month.

    Runs as one GROUP BY query regardless of how many workers are asked
    for. Discarded work orders, discarded assignments and resource-only
    work orders never count.
    """
    start, end = month_bounds(month_year)

    stmt = (
        select(
            WorkOrderWorker.worker_id,
            func.sum(assignment_amount_expression(), type_=Numeric(14, 2)),
        )
        .join(WorkOrder, WorkOrder.work_order_id == WorkOrderWorker.work_order_id)
        .where(
            WorkOrderWorker.discarded_at.is_(None),
            WorkOrder.discarded_at.is_(None),
            WorkOrder.work_order_status == WorkOrderStatus.COMPLETED.value,
            WorkOrder.work_order_rate_type != WorkOrderRateType.RESOURCES.value,
            WorkOrder.completion_date >= start,
            WorkOrder.completion_date < end,
        )
        .group_by(WorkOrderWorker.worker_id)
    )

    if worker_ids is not None:
        ids = list(worker_ids)
        if not ids:
            return {}
        stmt = stmt.where(WorkOrderWorker.worker_id.in_(ids))

    if exclude_work_order_id is not None:
        stmt = stmt.where(WorkOrder.work_order_id != exclude_work_order_id)

    result = await session.execute(stmt)
    return {worker_id: round_to_cents(to_decimal(total)) for worker_id, total in result.all()}
