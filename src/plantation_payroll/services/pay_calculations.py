"""Month-level pay calculation persistence helpers.

Writers for one month serialize on the pay_calculation row
(SELECT ... FOR UPDATE) before touching any of its details.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from plantation_payroll.calculators.types import ZERO, round_to_cents, to_decimal
from plantation_payroll.database import dialect_insert
from plantation_payroll.models import PayCalculation, PayCalculationDetail
from plantation_payroll.periods import parse_month_year


async def get_pay_calculation(
    session: AsyncSession,
    month_year: str,
    for_update: bool = False,
) -> PayCalculation | None:
    """Load the pay calculation for a month, optionally row-locked."""
    stmt = select(PayCalculation).where(PayCalculation.month_year == month_year)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def find_or_create_pay_calculation(
    session: AsyncSession,
    month_year: str,
) -> PayCalculation:
    """Find or create the month's pay calculation and lock it.

    Uses INSERT ... ON CONFLICT DO NOTHING so concurrent creators of the
    same month converge on one row.
    """
    parse_month_year(month_year)

    await session.execute(
        dialect_insert(session, PayCalculation)
        .values(
            pay_calculation_id=uuid4(),
            month_year=month_year,
            overall_gross_salary=ZERO,
            overall_deduction=ZERO,
            overall_employer_deduction=ZERO,
            overall_net=ZERO,
        )
        .on_conflict_do_nothing(index_elements=["month_year"])
    )

    pay_calculation = await get_pay_calculation(session, month_year, for_update=True)
    if pay_calculation is None:
        raise RuntimeError(f"Pay calculation for {month_year} vanished after insert")
    return pay_calculation


async def lock_details(
    session: AsyncSession,
    pay_calculation_id: UUID,
    worker_ids: list[UUID] | None = None,
) -> list[PayCalculationDetail]:
    """Load and row-lock details of a pay calculation (with their workers)."""
    stmt = (
        select(PayCalculationDetail)
        .where(PayCalculationDetail.pay_calculation_id == pay_calculation_id)
        .options(selectinload(PayCalculationDetail.worker))
        .order_by(PayCalculationDetail.worker_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if worker_ids is not None:
        stmt = stmt.where(PayCalculationDetail.worker_id.in_(worker_ids))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def recalculate_overall_total(
    session: AsyncSession,
    pay_calculation: PayCalculation,
) -> PayCalculation:
    """Recompute month totals as the sums over its details."""
    await session.flush()

    row = (
        await session.execute(
            select(
                func.coalesce(func.sum(PayCalculationDetail.gross_salary), 0),
                func.coalesce(func.sum(PayCalculationDetail.employee_deductions), 0),
                func.coalesce(func.sum(PayCalculationDetail.employer_deductions), 0),
                func.coalesce(func.sum(PayCalculationDetail.net_salary), 0),
            ).where(
                PayCalculationDetail.pay_calculation_id == pay_calculation.pay_calculation_id
            )
        )
    ).one()

    pay_calculation.overall_gross_salary = round_to_cents(to_decimal(row[0]))
    pay_calculation.overall_deduction = round_to_cents(to_decimal(row[1]))
    pay_calculation.overall_employer_deduction = round_to_cents(to_decimal(row[2]))
    pay_calculation.overall_net = round_to_cents(to_decimal(row[3]))
    await session.flush()
    return pay_calculation


async def count_details(session: AsyncSession, pay_calculation_id: UUID) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(PayCalculationDetail)
        .where(PayCalculationDetail.pay_calculation_id == pay_calculation_id)
    )
    return int(result.scalar_one())


async def settle_pay_calculation(
    session: AsyncSession,
    pay_calculation: PayCalculation,
) -> bool:
    """Delete an empty pay calculation or refresh its totals.

    Returns True if the pay calculation was deleted.
    """
    await session.flush()

    if await count_details(session, pay_calculation.pay_calculation_id) == 0:
        await session.delete(pay_calculation)
        await session.flush()
        return True

    await recalculate_overall_total(session, pay_calculation)
    return False
