"""Loading work orders for pay processing."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from plantation_payroll.models import WorkOrder, WorkOrderWorker
from plantation_payroll.periods import month_key


def work_order_id_of(work_order: WorkOrder | UUID) -> UUID:
    """Accept either a work order instance or its id."""
    if isinstance(work_order, WorkOrder):
        return work_order.work_order_id
    return work_order


async def load_work_order(session: AsyncSession, work_order_id: UUID) -> WorkOrder | None:
    """Load a work order with its assignments and their workers."""
    result = await session.execute(
        select(WorkOrder)
        .where(WorkOrder.work_order_id == work_order_id)
        .options(selectinload(WorkOrder.assignments).selectinload(WorkOrderWorker.worker))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def pay_month_for(work_order: WorkOrder) -> str:
    """Month a work order's earnings are booked to (completion month)."""
    return month_key(work_order.completion_date)
