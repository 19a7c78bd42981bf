"""ORM models for the plantation payroll engine."""

from plantation_payroll.models.base import Base, TimestampMixin
from plantation_payroll.models.deductions import (
    DeductionType,
    DeductionWageRange,
    validate_wage_ranges,
)
from plantation_payroll.models.pay import PayCalculation, PayCalculationDetail
from plantation_payroll.models.work_orders import WorkOrder, WorkOrderWorker, Worker

__all__ = [
    "Base",
    "TimestampMixin",
    "DeductionType",
    "DeductionWageRange",
    "validate_wage_ranges",
    "PayCalculation",
    "PayCalculationDetail",
    "WorkOrder",
    "WorkOrderWorker",
    "Worker",
]
