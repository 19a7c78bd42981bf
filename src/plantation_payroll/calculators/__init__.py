"""Deduction and gross salary calculators."""

from plantation_payroll.calculators.deduction_calculators import (
    DeductionCalculator,
    FixedCalculator,
    PercentageCalculator,
    UnknownCalculationMethodError,
    WageRangeCalculator,
    WageRangeConfigurationError,
    calculator_for,
    supported_methods,
)
from plantation_payroll.calculators.gross_salary import compute_gross_salary
from plantation_payroll.calculators.snapshot_builder import DeductionSnapshotBuilder
from plantation_payroll.calculators.types import DeductionBreakdown, DeductionSnapshot

__all__ = [
    "DeductionCalculator",
    "FixedCalculator",
    "PercentageCalculator",
    "WageRangeCalculator",
    "UnknownCalculationMethodError",
    "WageRangeConfigurationError",
    "calculator_for",
    "supported_methods",
    "compute_gross_salary",
    "DeductionSnapshotBuilder",
    "DeductionBreakdown",
    "DeductionSnapshot",
]
