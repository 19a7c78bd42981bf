"""Forward pay processing for a completed work order."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from plantation_payroll.calculators.snapshot_builder import DeductionSnapshotBuilder
from plantation_payroll.database import session_scope
from plantation_payroll.models import WorkOrder
from plantation_payroll.services.deduction_snapshots import (
    DeductionSnapshotService,
    default_snapshot_builder,
)
from plantation_payroll.services.pay_calculations import (
    find_or_create_pay_calculation,
    recalculate_overall_total,
)
from plantation_payroll.services.results import ServiceResult
from plantation_payroll.services.worker_pay_accumulator import WorkerPayAccumulator
from plantation_payroll.services.work_orders import (
    load_work_order,
    pay_month_for,
    work_order_id_of,
)

logger = logging.getLogger(__name__)


class ProcessWorkOrderService:
    """Books a completed work order's earnings into its month.

    One call is one transaction:
    1. Find or create the month's PayCalculation and lock it
    2. Accumulate every active assignment into its worker's detail
    3. Recompute the month totals

    Not idempotent: calling twice for the same completion adds the
    earnings twice. Callers deliver each completion event at most once.
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
                return await self._process(session, work_order_id)
        except Exception as e:
            logger.exception("Failed to process pay calculation for work order %s", work_order_id)
            return ServiceResult.fail(f"Failed to process pay calculation: {e}")

    async def _process(self, session: AsyncSession, work_order_id: UUID) -> ServiceResult:
        work_order = await load_work_order(session, work_order_id)
        if work_order is None:
            raise LookupError(f"Work order {work_order_id} not found")

        if work_order.is_resource_only:
            return ServiceResult.ok("Resource-only work order, no pay calculation needed")
        if work_order.is_discarded:
            return ServiceResult.ok("Discarded work order, no pay calculation needed")
        if not work_order.is_completed:
            return ServiceResult.ok("Work order not completed, no pay calculation needed")
        if work_order.completion_date is None:
            return ServiceResult.ok("No completion date")

        assignments = work_order.active_assignments
        if not assignments:
            return ServiceResult.ok("No workers to process")

        month_year = pay_month_for(work_order)
        pay_calculation = await find_or_create_pay_calculation(session, month_year)

        snapshots = DeductionSnapshotService(session, self.builder)
        accumulator = WorkerPayAccumulator(session, snapshots)
        for assignment in sorted(assignments, key=lambda a: a.worker_id):
            await accumulator.process(assignment, work_order, pay_calculation)

        await recalculate_overall_total(session, pay_calculation)

        logger.info(
            "Processed work order %s into %s (%d workers, gross %s)",
            work_order_id,
            month_year,
            len(assignments),
            pay_calculation.overall_gross_salary,
        )
        return ServiceResult.ok(f"Pay calculation processed successfully for {month_year}")
