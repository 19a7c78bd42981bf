"""Batch reconciliation of stored pay calculations.

Recomputes every detail's gross salary from active completed work orders,
rebuilds deduction snapshots against current deduction types, and drops
details and months with nothing left to pay. Safe to run repeatedly: a
second run over unchanged data updates nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from plantation_payroll.calculators.snapshot_builder import DeductionSnapshotBuilder
from plantation_payroll.calculators.types import ZERO
from plantation_payroll.database import session_scope
from plantation_payroll.models import PayCalculation, PayCalculationDetail
from plantation_payroll.periods import parse_month_year
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

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Result of a reconciliation run."""

    month_year: str | None = None
    months_processed: int = 0
    details_processed: int = 0
    details_updated: int = 0
    details_removed: int = 0
    pay_calculations_removed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether every month reconciled without errors."""
        return len(self.errors) == 0

    def merge(self, other: ReconciliationResult) -> None:
        self.months_processed += other.months_processed
        self.details_processed += other.details_processed
        self.details_updated += other.details_updated
        self.details_removed += other.details_removed
        self.pay_calculations_removed += other.pay_calculations_removed
        self.errors.extend(other.errors)


def _detail_state(detail: PayCalculationDetail) -> tuple[Any, ...]:
    return (
        detail.gross_salary,
        detail.deduction_breakdown,
        detail.employee_deductions,
        detail.employer_deductions,
        detail.net_salary,
    )


class PayCalculationReconciler:
    """Recalculates pay calculations month by month.

    Each month is reconciled in its own transaction. A failing month is
    rolled back, recorded in ``errors``, and the sweep moves on.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        builder: DeductionSnapshotBuilder | None = None,
    ):
        self.session_factory = session_factory
        self.builder = builder or default_snapshot_builder()

    async def recalculate_all(self) -> ReconciliationResult:
        """Reconcile every month that has a pay calculation."""
        async with session_scope(self.session_factory) as session:
            result = await session.execute(
                select(PayCalculation.month_year).order_by(PayCalculation.month_year)
            )
            months = list(result.scalars().all())

        total = ReconciliationResult()
        for month_year in months:
            total.merge(await self._run_month(month_year))

        logger.info(
            "Reconciled %d months: %d details processed, %d updated, %d removed, "
            "%d pay calculations removed, %d errors",
            total.months_processed,
            total.details_processed,
            total.details_updated,
            total.details_removed,
            total.pay_calculations_removed,
            len(total.errors),
        )
        return total

    async def recalculate_month(self, month_year: str) -> ReconciliationResult:
        """Reconcile one month.

        Raises InvalidMonthYearError for a malformed key.
        """
        parse_month_year(month_year)
        result = await self._run_month(month_year)
        logger.info(
            "Reconciled %s: %d details processed, %d updated, %d removed",
            month_year,
            result.details_processed,
            result.details_updated,
            result.details_removed,
        )
        return result

    async def _run_month(self, month_year: str) -> ReconciliationResult:
        result = ReconciliationResult(month_year=month_year)
        try:
            async with session_scope(self.session_factory) as session:
                await self._reconcile_month(session, month_year, result)
        except Exception as e:
            logger.exception("Failed to reconcile pay calculation for %s", month_year)
            return ReconciliationResult(
                month_year=month_year,
                errors=[{"month_year": month_year, "error": str(e)}],
            )
        return result

    async def _reconcile_month(
        self,
        session: AsyncSession,
        month_year: str,
        result: ReconciliationResult,
    ) -> None:
        pay_calculation = await get_pay_calculation(session, month_year, for_update=True)
        if pay_calculation is None:
            return

        result.months_processed = 1
        details = await lock_details(session, pay_calculation.pay_calculation_id)
        earnings = await active_earnings_by_worker(
            session,
            month_year,
            worker_ids=[detail.worker_id for detail in details],
        )
        snapshots = DeductionSnapshotService(session, self.builder)

        for detail in details:
            result.details_processed += 1
            gross = earnings.get(detail.worker_id, ZERO)

            if gross == ZERO:
                logger.info("Removing detail for worker %s in %s", detail.worker_id, month_year)
                await session.delete(detail)
                result.details_removed += 1
                continue

            before = _detail_state(detail)
            detail.set_gross_salary(gross)
            await snapshots.rebuild_snapshot(detail, detail.worker)
            if _detail_state(detail) != before:
                logger.info(
                    "Updated worker %s in %s: gross %s -> %s",
                    detail.worker_id,
                    month_year,
                    before[0],
                    detail.gross_salary,
                )
                result.details_updated += 1

        if await settle_pay_calculation(session, pay_calculation):
            logger.info("Removed empty pay calculation for %s", month_year)
            result.pay_calculations_removed = 1
