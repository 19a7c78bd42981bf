"""Gross salary earned by a single work order assignment."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from plantation_payroll.calculators.types import WorkOrderRateType, round_to_cents, to_decimal

if TYPE_CHECKING:
    from plantation_payroll.models import WorkOrderWorker


def assignment_quantity(assignment: WorkOrderWorker, rate_type: str | WorkOrderRateType) -> Decimal:
    """Work days for work-days orders, work area size for everything else."""
    if getattr(rate_type, "value", rate_type) == WorkOrderRateType.WORK_DAYS.value:
        return to_decimal(assignment.work_days)
    return to_decimal(assignment.work_area_size)


def compute_gross_salary(
    assignment: WorkOrderWorker,
    rate_type: str | WorkOrderRateType,
) -> Decimal:
    """Return rate x quantity, rounded to cents. Missing values count as zero."""
    return round_to_cents(to_decimal(assignment.rate) * assignment_quantity(assignment, rate_type))
