"""Workers, work orders, and worker assignments.

These tables are owned by the work-order side of the back office; the
payroll engine only reads them.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plantation_payroll.calculators.types import WorkOrderRateType, WorkOrderStatus
from plantation_payroll.models.base import Base, TimestampMixin


class Worker(Base, TimestampMixin):
    """A plantation worker."""

    __tablename__ = "worker"

    worker_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    nationality: Mapped[str | None] = mapped_column(String, nullable=True)


class WorkOrder(Base, TimestampMixin):
    """A unit of field work (harvesting, spraying, ...)."""

    __tablename__ = "work_order"

    work_order_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    work_order_status: Mapped[str] = mapped_column(
        String, nullable=False, default=WorkOrderStatus.ONGOING.value
    )
    work_order_rate_type: Mapped[str] = mapped_column(
        String, nullable=False, default=WorkOrderRateType.NORMAL.value, index=True
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    completion_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    discarded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "work_order_status IN ('ongoing', 'pending', 'amendment_required', 'completed')",
            name="work_order_status_check",
        ),
        CheckConstraint(
            "work_order_rate_type IN ('normal', 'resources', 'work_days')",
            name="work_order_rate_type_check",
        ),
    )

    # Relationships
    assignments: Mapped[list[WorkOrderWorker]] = relationship(
        back_populates="work_order",
        cascade="all, delete-orphan",
    )

    @property
    def is_completed(self) -> bool:
        return self.work_order_status == WorkOrderStatus.COMPLETED.value

    @property
    def is_discarded(self) -> bool:
        return self.discarded_at is not None

    @property
    def is_resource_only(self) -> bool:
        """Resource-only work orders carry no worker pay."""
        return self.work_order_rate_type == WorkOrderRateType.RESOURCES.value

    @property
    def active_assignments(self) -> list[WorkOrderWorker]:
        return [a for a in self.assignments if a.discarded_at is None]


class WorkOrderWorker(Base, TimestampMixin):
    """A worker's participation in one work order."""

    __tablename__ = "work_order_worker"

    work_order_worker_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    work_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("work_order.work_order_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    worker_id: Mapped[UUID] = mapped_column(
        ForeignKey("worker.worker_id"),
        nullable=False,
        index=True,
    )
    rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    work_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    work_area_size: Mapped[Decimal | None] = mapped_column(Numeric(10, 3), nullable=True)
    discarded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("rate IS NULL OR rate >= 0", name="work_order_worker_rate_check"),
    )

    # Relationships
    work_order: Mapped[WorkOrder] = relationship(back_populates="assignments")
    worker: Mapped[Worker] = relationship()
