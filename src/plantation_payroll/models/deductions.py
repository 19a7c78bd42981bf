"""Statutory deduction type and wage range bracket models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plantation_payroll.calculators.types import NationalityClass
from plantation_payroll.models.base import Base, TimestampMixin


class DeductionType(Base, TimestampMixin):
    """A statutory deduction definition (EPF, SOCSO, SIP, ...).

    Rates are read-only to the engine. Superseding a rate means closing
    ``effective_until`` on the old row and inserting a new one; snapshots
    already taken keep the old figures.
    """

    __tablename__ = "deduction_type"

    deduction_type_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    calculation_method: Mapped[str] = mapped_column(
        String, nullable=False, default="percentage"
    )
    employee_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    employer_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    rounding_precision: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    applies_to_nationality: Mapped[str | None] = mapped_column(
        String, nullable=True, default=NationalityClass.ALL.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_until: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint("code", "effective_from", name="deduction_type_code_from_unique"),
        CheckConstraint(
            "calculation_method IN ('percentage', 'fixed', 'wage_range')",
            name="deduction_type_method_check",
        ),
        CheckConstraint(
            "employee_rate IS NULL OR employee_rate >= 0",
            name="deduction_type_employee_rate_check",
        ),
        CheckConstraint(
            "employer_rate IS NULL OR employer_rate >= 0",
            name="deduction_type_employer_rate_check",
        ),
        CheckConstraint("rounding_precision >= 0", name="deduction_type_precision_check"),
        CheckConstraint(
            "effective_until IS NULL OR effective_until > effective_from",
            name="deduction_type_dates_check",
        ),
    )

    # Relationships
    wage_ranges: Mapped[list[DeductionWageRange]] = relationship(
        back_populates="deduction_type",
        order_by="DeductionWageRange.min_wage",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def is_effective_on(self, day: date) -> bool:
        """Check the half-open [effective_from, effective_until) window."""
        if self.effective_from > day:
            return False
        return self.effective_until is None or day < self.effective_until

    def applies_to(self, nationality: NationalityClass) -> bool:
        """Check if this deduction applies to a nationality class."""
        target = self.applies_to_nationality or NationalityClass.ALL.value
        return target in (NationalityClass.ALL.value, nationality.value)


class DeductionWageRange(Base, TimestampMixin):
    """A salary bracket owned by a wage_range deduction type.

    ``max_wage`` is inclusive; None means "and above".
    """

    __tablename__ = "deduction_wage_range"

    deduction_wage_range_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    deduction_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("deduction_type.deduction_type_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    min_wage: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    max_wage: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    calculation_method: Mapped[str] = mapped_column(String, nullable=False, default="fixed")
    employee_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    employer_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    employee_percentage: Mapped[Decimal] = mapped_column(
        Numeric(7, 4), nullable=False, default=Decimal("0")
    )
    employer_percentage: Mapped[Decimal] = mapped_column(
        Numeric(7, 4), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        CheckConstraint(
            "calculation_method IN ('fixed', 'percentage')",
            name="deduction_wage_range_method_check",
        ),
        CheckConstraint(
            "max_wage IS NULL OR max_wage >= min_wage",
            name="deduction_wage_range_bounds_check",
        ),
        CheckConstraint("min_wage >= 0", name="deduction_wage_range_min_check"),
    )

    # Relationships
    deduction_type: Mapped[DeductionType] = relationship(back_populates="wage_ranges")

    def contains(self, salary: Decimal) -> bool:
        """Check if salary falls within [min_wage, max_wage]."""
        if salary < self.min_wage:
            return False
        return self.max_wage is None or salary <= self.max_wage


def validate_wage_ranges(ranges: Iterable[DeductionWageRange]) -> list[str]:
    """Validate a bracket table for one deduction type.

    Returns list of error messages (empty if valid). Brackets must not
    overlap and only the highest bracket may be open-ended.
    """
    errors: list[str] = []
    ordered = sorted(ranges, key=lambda r: r.min_wage)

    for i, current in enumerate(ordered):
        if current.max_wage is not None and current.max_wage < current.min_wage:
            errors.append(
                f"Bracket {i} has max_wage {current.max_wage} below min_wage {current.min_wage}"
            )
        if i + 1 >= len(ordered):
            continue
        following = ordered[i + 1]
        if current.max_wage is None:
            errors.append(
                f"Bracket {i} is open-ended but bracket {i + 1} starts at {following.min_wage}"
            )
        elif following.min_wage <= current.max_wage:
            errors.append(
                f"Bracket {i} ({current.min_wage}-{current.max_wage}) overlaps "
                f"bracket {i + 1} starting at {following.min_wage}"
            )

    return errors
