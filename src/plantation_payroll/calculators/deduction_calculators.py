"""Deduction calculation strategies.

Each strategy turns one deduction type and a gross salary into an
employee or employer amount. Strategies are pure: they never touch the
database and never catch exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING

from plantation_payroll.calculators.types import (
    ZERO,
    BracketMethod,
    CalculationMethod,
    ContributionField,
    round_half_up,
    to_decimal,
)

if TYPE_CHECKING:
    from plantation_payroll.models import DeductionType, DeductionWageRange


class UnknownCalculationMethodError(ValueError):
    """Raised when a deduction type names an unsupported calculation method."""

    def __init__(self, method: str | None, code: str | None = None):
        self.method = method
        self.code = code
        valid = ", ".join(m.value for m in CalculationMethod)
        super().__init__(
            f"Unknown calculation method '{method}' for deduction '{code}'. "
            f"Valid methods: {valid}"
        )


class WageRangeConfigurationError(Exception):
    """Raised when a wage_range deduction type has unusable bracket data."""

    def __init__(self, code: str, reason: str):
        self.code = code
        self.reason = reason
        super().__init__(f"Wage range configuration error for deduction '{code}': {reason}")


class DeductionCalculator(ABC):
    """Common interface for all deduction strategies."""

    method: CalculationMethod

    def __init__(self, deduction_type: DeductionType):
        self.deduction_type = deduction_type

    @abstractmethod
    def calculate(
        self,
        gross_salary: Decimal,
        field: ContributionField = ContributionField.EMPLOYEE,
    ) -> Decimal:
        """Calculate the deduction amount for one side of the contribution."""

    def contribution_rate(self, field: ContributionField) -> Decimal | None:
        if field == ContributionField.EMPLOYEE:
            return self.deduction_type.employee_rate
        return self.deduction_type.employer_rate

    @property
    def rounding_precision(self) -> int:
        precision = self.deduction_type.rounding_precision
        return 2 if precision is None else precision

    @staticmethod
    def has_rate(rate: Decimal | None) -> bool:
        return rate is not None and rate != 0


class PercentageCalculator(DeductionCalculator):
    """Deduction as a percentage of gross salary.

    Example: EPF employee 11% of RM 3,333.33 = RM 366.67.
    """

    method = CalculationMethod.PERCENTAGE

    def calculate(
        self,
        gross_salary: Decimal,
        field: ContributionField = ContributionField.EMPLOYEE,
    ) -> Decimal:
        rate = self.contribution_rate(field)
        if not self.has_rate(rate):
            return ZERO
        amount = to_decimal(gross_salary) * to_decimal(rate) / 100
        return round_half_up(amount, self.rounding_precision)


class FixedCalculator(DeductionCalculator):
    """Constant deduction regardless of salary."""

    method = CalculationMethod.FIXED

    def calculate(
        self,
        gross_salary: Decimal,
        field: ContributionField = ContributionField.EMPLOYEE,
    ) -> Decimal:
        rate = self.contribution_rate(field)
        if not self.has_rate(rate):
            return ZERO
        return to_decimal(rate)


class WageRangeCalculator(DeductionCalculator):
    """Deduction looked up from the type's salary bracket table.

    The first bracket (by ascending ``min_wage``) containing the salary
    wins. A salary outside every bracket deducts nothing.
    """

    method = CalculationMethod.WAGE_RANGE

    def __init__(self, deduction_type: DeductionType):
        super().__init__(deduction_type)
        self._brackets = sorted(deduction_type.wage_ranges, key=lambda r: r.min_wage)

    def calculate(
        self,
        gross_salary: Decimal,
        field: ContributionField = ContributionField.EMPLOYEE,
    ) -> Decimal:
        if not self._brackets:
            raise WageRangeConfigurationError(self.deduction_type.code, "no wage ranges configured")

        salary = to_decimal(gross_salary)
        bracket = self.find_bracket(salary)
        if bracket is None:
            return ZERO
        return self._amount_for_bracket(bracket, salary, field)

    def find_bracket(self, salary: Decimal) -> DeductionWageRange | None:
        return next((b for b in self._brackets if b.contains(salary)), None)

    def _amount_for_bracket(
        self,
        bracket: DeductionWageRange,
        salary: Decimal,
        field: ContributionField,
    ) -> Decimal:
        employee = field == ContributionField.EMPLOYEE

        if bracket.calculation_method == BracketMethod.FIXED.value:
            return to_decimal(bracket.employee_amount if employee else bracket.employer_amount)

        if bracket.calculation_method == BracketMethod.PERCENTAGE.value:
            pct = to_decimal(
                bracket.employee_percentage if employee else bracket.employer_percentage
            )
            return round_half_up(salary * pct / 100, self.rounding_precision)

        raise WageRangeConfigurationError(
            self.deduction_type.code,
            f"unknown bracket method '{bracket.calculation_method}'",
        )


_CALCULATORS: dict[CalculationMethod, type[DeductionCalculator]] = {
    CalculationMethod.PERCENTAGE: PercentageCalculator,
    CalculationMethod.FIXED: FixedCalculator,
    CalculationMethod.WAGE_RANGE: WageRangeCalculator,
}


def calculator_for(deduction_type: DeductionType) -> DeductionCalculator:
    """Create the strategy matching a deduction type's calculation method.

    Raises:
        UnknownCalculationMethodError: If the method is not supported
    """
    try:
        method = CalculationMethod(deduction_type.calculation_method)
    except ValueError:
        raise UnknownCalculationMethodError(
            deduction_type.calculation_method, deduction_type.code
        ) from None
    return _CALCULATORS[method](deduction_type)


def supported_methods() -> list[str]:
    """All calculation method names the factory accepts."""
    return [m.value for m in _CALCULATORS]
