"""Deduction snapshot builder."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Iterable

from plantation_payroll.calculators.deduction_calculators import calculator_for
from plantation_payroll.calculators.types import (
    EXEMPT_NATIONALITIES,
    ContributionField,
    DeductionBreakdown,
    DeductionSnapshot,
    NationalityClass,
    normalize_nationality,
    to_decimal,
)

if TYPE_CHECKING:
    from plantation_payroll.models import DeductionType


class DeductionSnapshotBuilder:
    """Runs every applicable deduction type over a gross salary.

    Selection rules:
    - Nationality is normalized to a class (unrecognized -> default class)
    - Exempt classes (foreigner without passport) get an empty breakdown
    - A type applies if it is active, effective on the as-of date, and
      targets 'all' or the worker's class
    - If several definitions of one code are effective, the most recent
      ``effective_from`` wins

    The result is an immutable DeductionBreakdown.
    """

    def __init__(
        self,
        today: Callable[[], date] = date.today,
        default_nationality: NationalityClass = NationalityClass.LOCAL,
    ):
        self.today = today
        self.default_nationality = default_nationality

    def nationality_class(self, nationality: str | None) -> NationalityClass:
        return normalize_nationality(nationality, default=self.default_nationality)

    def select_applicable(
        self,
        deduction_types: Iterable[DeductionType],
        nationality: NationalityClass,
        as_of: date | None = None,
    ) -> list[DeductionType]:
        """Filter deduction types down to those applying to this worker."""
        if nationality in EXEMPT_NATIONALITIES:
            return []

        day = as_of or self.today()
        current: dict[str, DeductionType] = {}
        for deduction_type in deduction_types:
            if not deduction_type.is_active:
                continue
            if not deduction_type.is_effective_on(day):
                continue
            if not deduction_type.applies_to(nationality):
                continue
            existing = current.get(deduction_type.code)
            if existing is None or deduction_type.effective_from > existing.effective_from:
                current[deduction_type.code] = deduction_type

        return [current[code] for code in sorted(current)]

    def build(
        self,
        deduction_types: Iterable[DeductionType],
        nationality: str | None,
        gross_salary: Decimal,
        as_of: date | None = None,
    ) -> DeductionBreakdown:
        """Build the frozen breakdown for one worker's gross salary."""
        nationality_class = self.nationality_class(nationality)
        gross = to_decimal(gross_salary)
        snapshots: list[DeductionSnapshot] = []

        for deduction_type in self.select_applicable(deduction_types, nationality_class, as_of):
            calculator = calculator_for(deduction_type)
            snapshots.append(
                DeductionSnapshot(
                    code=deduction_type.code,
                    name=deduction_type.name,
                    employee_rate=to_decimal(deduction_type.employee_rate),
                    employer_rate=to_decimal(deduction_type.employer_rate),
                    employee_amount=calculator.calculate(gross, ContributionField.EMPLOYEE),
                    employer_amount=calculator.calculate(gross, ContributionField.EMPLOYER),
                    gross_salary_at_computation=gross,
                    nationality_at_computation=nationality_class.value,
                )
            )

        return DeductionBreakdown.from_snapshots(snapshots)
