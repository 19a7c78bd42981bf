"""Read-only views of stored pay calculations."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from plantation_payroll.calculators.types import DeductionBreakdown, DeductionSnapshot
from plantation_payroll.models import PayCalculation, PayCalculationDetail
from plantation_payroll.periods import parse_month_year


def sorted_deductions(breakdown: DeductionBreakdown | dict[str, Any] | None) -> list[DeductionSnapshot]:
    """Deductions in presentation order: EPF, SOCSO, EIS/SIP, then the rest."""
    if not isinstance(breakdown, DeductionBreakdown):
        breakdown = DeductionBreakdown.from_document(breakdown)
    return breakdown.sorted_items()


@dataclass(frozen=True)
class WorkerPayView:
    """One worker's stored pay for a month."""

    worker_id: UUID
    worker_name: str | None
    nationality: str | None
    gross_salary: Decimal
    employee_deductions: Decimal
    employer_deductions: Decimal
    net_salary: Decimal
    currency: str
    deductions: tuple[DeductionSnapshot, ...]

    @classmethod
    def from_detail(cls, detail: PayCalculationDetail) -> WorkerPayView:
        worker = detail.worker
        return cls(
            worker_id=detail.worker_id,
            worker_name=worker.name if worker is not None else None,
            nationality=worker.nationality if worker is not None else None,
            gross_salary=detail.gross_salary,
            employee_deductions=detail.employee_deductions,
            employer_deductions=detail.employer_deductions,
            net_salary=detail.net_salary,
            currency=detail.currency,
            deductions=tuple(sorted_deductions(detail.breakdown)),
        )


@dataclass(frozen=True)
class MonthSummary:
    """Month totals with every worker's pay."""

    month_year: str
    overall_gross_salary: Decimal
    overall_deduction: Decimal
    overall_employer_deduction: Decimal
    overall_net: Decimal
    workers: tuple[WorkerPayView, ...]


async def get_month_summary(session: AsyncSession, month_year: str) -> MonthSummary | None:
    """Load a month's totals and details, or None if nothing was booked."""
    parse_month_year(month_year)
    result = await session.execute(
        select(PayCalculation)
        .where(PayCalculation.month_year == month_year)
        .options(selectinload(PayCalculation.details).selectinload(PayCalculationDetail.worker))
    )
    pay_calculation = result.scalar_one_or_none()
    if pay_calculation is None:
        return None

    workers = sorted(
        (WorkerPayView.from_detail(detail) for detail in pay_calculation.details),
        key=lambda view: (view.worker_name or "", str(view.worker_id)),
    )
    return MonthSummary(
        month_year=pay_calculation.month_year,
        overall_gross_salary=pay_calculation.overall_gross_salary,
        overall_deduction=pay_calculation.overall_deduction,
        overall_employer_deduction=pay_calculation.overall_employer_deduction,
        overall_net=pay_calculation.overall_net,
        workers=tuple(workers),
    )


async def get_worker_detail(
    session: AsyncSession,
    month_year: str,
    worker_id: UUID,
) -> WorkerPayView | None:
    """Load one worker's pay for a month."""
    parse_month_year(month_year)
    result = await session.execute(
        select(PayCalculationDetail)
        .join(PayCalculation)
        .where(
            PayCalculation.month_year == month_year,
            PayCalculationDetail.worker_id == worker_id,
        )
        .options(selectinload(PayCalculationDetail.worker))
    )
    detail = result.scalar_one_or_none()
    if detail is None:
        return None
    return WorkerPayView.from_detail(detail)
