"""Accumulates one worker's monthly gross salary from work assignments."""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from plantation_payroll.calculators.gross_salary import compute_gross_salary
from plantation_payroll.calculators.types import ZERO
from plantation_payroll.config import get_settings
from plantation_payroll.database import dialect_insert
from plantation_payroll.models import (
    PayCalculation,
    PayCalculationDetail,
    WorkOrder,
    WorkOrderWorker,
)
from plantation_payroll.services.deduction_snapshots import DeductionSnapshotService

logger = logging.getLogger(__name__)


class WorkerPayAccumulator:
    """Adds an assignment's earnings to the worker's monthly detail.

    Steps per assignment:
    1. Insert the detail if missing (ON CONFLICT DO NOTHING)
    2. Row-lock the detail
    3. New detail: gross = contribution
       Existing detail: atomic SQL increment of gross by contribution
    4. Rebuild the deduction snapshot against the running total

    Deductions therefore track cumulative monthly earnings; the previous
    snapshot is replaced on every accumulation.
    """

    def __init__(
        self,
        session: AsyncSession,
        snapshots: DeductionSnapshotService,
        currency: str | None = None,
    ):
        self.session = session
        self.snapshots = snapshots
        self.currency = currency or get_settings().default_currency

    async def process(
        self,
        assignment: WorkOrderWorker,
        work_order: WorkOrder,
        pay_calculation: PayCalculation,
    ) -> PayCalculationDetail:
        """Accumulate one assignment into its worker's monthly detail."""
        contribution = compute_gross_salary(assignment, work_order.work_order_rate_type)
        created = await self._insert_detail_if_missing(
            pay_calculation.pay_calculation_id, assignment.worker_id
        )

        detail = await self._lock_detail(pay_calculation.pay_calculation_id, assignment.worker_id)

        if created:
            detail.set_gross_salary(contribution)
        else:
            await self._increment_gross_salary(detail, contribution)
            detail = await self._lock_detail(
                pay_calculation.pay_calculation_id, assignment.worker_id
            )

        await self.snapshots.rebuild_snapshot(detail, assignment.worker)
        await self.session.flush()

        logger.debug(
            "Accumulated %s for worker %s into %s (gross now %s)",
            contribution,
            assignment.worker_id,
            pay_calculation.month_year,
            detail.gross_salary,
        )
        return detail

    async def _insert_detail_if_missing(self, pay_calculation_id: UUID, worker_id: UUID) -> bool:
        """Returns True if a new detail row was inserted."""
        result = await self.session.execute(
            dialect_insert(self.session, PayCalculationDetail)
            .values(
                pay_calculation_detail_id=uuid4(),
                pay_calculation_id=pay_calculation_id,
                worker_id=worker_id,
                gross_salary=ZERO,
                deduction_breakdown={},
                employee_deductions=ZERO,
                employer_deductions=ZERO,
                net_salary=ZERO,
                currency=self.currency,
            )
            .on_conflict_do_nothing(index_elements=["pay_calculation_id", "worker_id"])
        )
        return (result.rowcount or 0) > 0

    async def _lock_detail(self, pay_calculation_id: UUID, worker_id: UUID) -> PayCalculationDetail:
        result = await self.session.execute(
            select(PayCalculationDetail)
            .where(
                PayCalculationDetail.pay_calculation_id == pay_calculation_id,
                PayCalculationDetail.worker_id == worker_id,
            )
            .options(selectinload(PayCalculationDetail.worker))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _increment_gross_salary(
        self,
        detail: PayCalculationDetail,
        contribution: Decimal,
    ) -> None:
        await self.session.execute(
            update(PayCalculationDetail)
            .where(
                PayCalculationDetail.pay_calculation_detail_id
                == detail.pay_calculation_detail_id
            )
            .values(gross_salary=PayCalculationDetail.gross_salary + contribution)
            .execution_options(synchronize_session=False)
        )
