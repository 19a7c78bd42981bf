"""Work order lifecycle hooks for the payroll engine."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from plantation_payroll.calculators.snapshot_builder import DeductionSnapshotBuilder
from plantation_payroll.models import WorkOrder
from plantation_payroll.services.deduction_snapshots import default_snapshot_builder
from plantation_payroll.services.process_work_order import ProcessWorkOrderService
from plantation_payroll.services.results import ServiceResult
from plantation_payroll.services.reverse_work_order import ReverseWorkOrderService
from plantation_payroll.services.work_orders import work_order_id_of

logger = logging.getLogger(__name__)


class PayrollLifecycle:
    """Maps work order events to pay calculation operations.

    - completed: book the work order's earnings
    - discarded: reverse them
    - restored: book them again

    Events must be delivered at most once each.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        builder: DeductionSnapshotBuilder | None = None,
    ):
        builder = builder or default_snapshot_builder()
        self.processor = ProcessWorkOrderService(session_factory, builder)
        self.reverser = ReverseWorkOrderService(session_factory, builder)

    async def work_order_completed(self, work_order: WorkOrder | UUID) -> ServiceResult:
        result = await self.processor.call(work_order)
        self._log("completed", work_order, result)
        return result

    async def work_order_discarded(self, work_order: WorkOrder | UUID) -> ServiceResult:
        result = await self.reverser.call(work_order)
        self._log("discarded", work_order, result)
        return result

    async def work_order_restored(self, work_order: WorkOrder | UUID) -> ServiceResult:
        result = await self.processor.call(work_order)
        self._log("restored", work_order, result)
        return result

    @staticmethod
    def _log(event: str, work_order: WorkOrder | UUID, result: ServiceResult) -> None:
        work_order_id = work_order_id_of(work_order)
        if result.success:
            logger.info("Work order %s %s: %s", work_order_id, event, result.message)
        else:
            logger.warning("Work order %s %s: %s", work_order_id, event, result.message)
