"""Reversal of a work order's earnings from its month."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from plantation_payroll.calculators.snapshot_builder import DeductionSnapshotBuilder
from plantation_payroll.calculators.types import ZERO
from plantation_payroll.database import session_scope
from plantation_payroll.models import WorkOrder
from plantation_payroll.periods import month_key
from plantation_payroll.services.deduction_snapshots import (
    DeductionSnapshotService,
    default_snapshot_builder,
)
from plantation_payroll.services.earnings import active_earnings_by_worker
from plantation_payroll.services.pay_calculations import (
    get_pay_calculation,
    lock_details,
    settle_pay_calculation,
)
from plantation_payroll.services.results import ServiceResult
from plantation_payroll.services.work_orders import load_work_order, work_order_id_of

logger = logging.getLogger(__name__)


class ReverseWorkOrderService:
    """Removes a work order's contribution by recomputing from ground truth.

    Instead of subtracting, every affected worker's gross salary is
    re-summed from the month's other active completed work orders:
    - Zero remaining earnings: the detail is deleted
    - Otherwise: gross is replaced and the snapshot rebuilt
    - An emptied month is deleted, otherwise its totals are recomputed
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        builder: DeductionSnapshotBuilder | None = None,
    ):
        self.session_factory = session_factory
        self.builder = builder or default_snapshot_builder()

    async def call(self, work_order: WorkOrder | UUID) -> ServiceResult:
        work_order_id = work_order_id_of(work_order)
        try:
            async with session_scope(self.session_factory) as session:
                return await self._reverse(session, work_order_id)
        except Exception as e:
            logger.exception("Failed to reverse pay calculation for work order %s", work_order_id)
            return ServiceResult.fail(f"Failed to reverse: {e}")

    async def _reverse(self, session: AsyncSession, work_order_id: UUID) -> ServiceResult:
        work_order = await load_work_order(session, work_order_id)
        if work_order is None:
            raise LookupError(f"Work order {work_order_id} not found")

        if not work_order.is_completed:
            return ServiceResult.ok("Not completed")
        if work_order.completion_date is None:
            return ServiceResult.ok("No completion date")
        if work_order.is_resource_only:
            return ServiceResult.ok("Resource-only work order, no pay calculation impact")

        month_year = month_key(work_order.completion_date)
        pay_calculation = await get_pay_calculation(session, month_year, for_update=True)
        if pay_calculation is None:
            return ServiceResult.ok("No pay calculation found")

        # Discarded assignments still had their earnings booked
        worker_ids = sorted({a.worker_id for a in work_order.assignments})
        remaining = await active_earnings_by_worker(
            session,
            month_year,
            worker_ids=worker_ids,
            exclude_work_order_id=work_order_id,
        )

        snapshots = DeductionSnapshotService(session, self.builder)
        details = await lock_details(session, pay_calculation.pay_calculation_id, worker_ids)
        for detail in details:
            gross = remaining.get(detail.worker_id, ZERO)
            if gross == ZERO:
                logger.info("Removing detail for worker %s in %s", detail.worker_id, month_year)
                await session.delete(detail)
                continue

            logger.info(
                "Updating worker %s in %s: gross %s -> %s",
                detail.worker_id,
                month_year,
                detail.gross_salary,
                gross,
            )
            detail.set_gross_salary(gross)
            await snapshots.rebuild_snapshot(detail, detail.worker)

        if await settle_pay_calculation(session, pay_calculation):
            logger.info("Removed empty pay calculation for %s", month_year)

        return ServiceResult.ok(f"Reversed pay calculation for {month_year}")
