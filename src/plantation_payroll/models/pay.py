"""Monthly pay calculation and per-worker detail models."""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plantation_payroll.calculators.types import (
    ZERO,
    DeductionBreakdown,
    round_to_cents,
    to_decimal,
)
from plantation_payroll.models.base import Base, TimestampMixin
from plantation_payroll.models.work_orders import Worker

BreakdownDocument = JSON().with_variant(JSONB(), "postgresql")


class PayCalculation(Base, TimestampMixin):
    """Month-level aggregate of worker pay.

    Totals are derived from the details and are never set by hand.
    """

    __tablename__ = "pay_calculation"

    pay_calculation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    month_year: Mapped[str] = mapped_column(String(7), nullable=False, unique=True)
    overall_gross_salary: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=ZERO
    )
    overall_deduction: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=ZERO
    )
    overall_employer_deduction: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=ZERO
    )
    overall_net: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)

    # Relationships
    details: Mapped[list[PayCalculationDetail]] = relationship(
        back_populates="pay_calculation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PayCalculationDetail(Base, TimestampMixin):
    """One worker's pay for one month.

    ``deduction_breakdown`` is a snapshot: it only changes through
    ``apply_breakdown``. Changing gross salary alone re-derives net salary
    from the stale employee deduction total.
    """

    __tablename__ = "pay_calculation_detail"

    pay_calculation_detail_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_calculation_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_calculation.pay_calculation_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    worker_id: Mapped[UUID] = mapped_column(
        ForeignKey("worker.worker_id"),
        nullable=False,
        index=True,
    )
    gross_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    deduction_breakdown: Mapped[dict[str, Any]] = mapped_column(
        BreakdownDocument, nullable=False, default=dict
    )
    employee_deductions: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    employer_deductions: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    net_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="RM")

    __table_args__ = (
        UniqueConstraint(
            "pay_calculation_id", "worker_id", name="pay_calculation_detail_worker_unique"
        ),
    )

    # Relationships
    pay_calculation: Mapped[PayCalculation] = relationship(back_populates="details")
    worker: Mapped[Worker] = relationship()

    @property
    def breakdown(self) -> DeductionBreakdown:
        """The stored snapshot as a value object."""
        return DeductionBreakdown.from_document(self.deduction_breakdown)

    def apply_breakdown(self, breakdown: DeductionBreakdown) -> None:
        """Replace the snapshot and its totals, then re-derive net salary."""
        self.deduction_breakdown = breakdown.to_document()
        self.employee_deductions = round_to_cents(breakdown.employee_total)
        self.employer_deductions = round_to_cents(breakdown.employer_total)
        self.net_salary = self._derive_net_salary()

    def set_gross_salary(self, gross_salary: Decimal) -> None:
        """Change gross salary without touching the deduction snapshot."""
        self.gross_salary = round_to_cents(to_decimal(gross_salary))
        self.net_salary = self._derive_net_salary()

    def _derive_net_salary(self) -> Decimal:
        return round_to_cents(
            to_decimal(self.gross_salary) - to_decimal(self.employee_deductions)
        )
