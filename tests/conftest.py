"""Pytest fixtures for plantation payroll tests."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from plantation_payroll.calculators.snapshot_builder import DeductionSnapshotBuilder
from plantation_payroll.database import create_schema, get_engine, make_session_factory
from plantation_payroll.models import (
    DeductionType,
    DeductionWageRange,
    WorkOrder,
    WorkOrderWorker,
    Worker,
)

# On-disk SQLite so every session of a test sees the same database.
TODAY = date(2024, 3, 15)


@pytest.fixture
async def engine(tmp_path):
    """Create test database engine with the full schema."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}")
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def builder() -> DeductionSnapshotBuilder:
    """Snapshot builder with a fixed calendar date."""
    return DeductionSnapshotBuilder(today=lambda: TODAY)


def make_deduction_types() -> list[DeductionType]:
    """EPF 11/12 (local), SOCSO wage-range table, SIP 0.2/0.2 (local)."""
    epf = DeductionType(
        deduction_type_id=uuid4(),
        code="EPF",
        name="EPF",
        calculation_method="percentage",
        employee_rate=Decimal("11.0000"),
        employer_rate=Decimal("12.0000"),
        rounding_precision=2,
        applies_to_nationality="local",
        is_active=True,
        effective_from=date(2024, 1, 1),
    )
    socso = DeductionType(
        deduction_type_id=uuid4(),
        code="SOCSO",
        name="SOCSO",
        calculation_method="wage_range",
        rounding_precision=2,
        applies_to_nationality="all",
        is_active=True,
        effective_from=date(2024, 1, 1),
        wage_ranges=[
            DeductionWageRange(
                min_wage=Decimal("0.00"),
                max_wage=Decimal("999.99"),
                calculation_method="fixed",
                employee_amount=Decimal("5.00"),
                employer_amount=Decimal("10.00"),
            ),
            DeductionWageRange(
                min_wage=Decimal("1000.00"),
                max_wage=Decimal("2000.00"),
                calculation_method="fixed",
                employee_amount=Decimal("10.00"),
                employer_amount=Decimal("20.00"),
            ),
            DeductionWageRange(
                min_wage=Decimal("2000.01"),
                max_wage=Decimal("3000.00"),
                calculation_method="fixed",
                employee_amount=Decimal("15.00"),
                employer_amount=Decimal("30.00"),
            ),
            DeductionWageRange(
                min_wage=Decimal("3000.01"),
                max_wage=None,
                calculation_method="fixed",
                employee_amount=Decimal("20.00"),
                employer_amount=Decimal("40.00"),
            ),
        ],
    )
    sip = DeductionType(
        deduction_type_id=uuid4(),
        code="SIP",
        name="SIP",
        calculation_method="percentage",
        employee_rate=Decimal("0.2000"),
        employer_rate=Decimal("0.2000"),
        rounding_precision=2,
        applies_to_nationality="local",
        is_active=True,
        effective_from=date(2024, 1, 1),
    )
    return [epf, socso, sip]


@pytest.fixture
def unsaved_deduction_types() -> list[DeductionType]:
    return make_deduction_types()


@pytest.fixture
async def deduction_types(session_factory) -> dict[str, DeductionType]:
    """Commit the standard deduction types."""
    types = make_deduction_types()
    async with session_factory() as session:
        session.add_all(types)
        await session.commit()
    return {t.code: t for t in types}


@pytest.fixture
def make_worker(session_factory):
    """Factory creating a committed worker."""

    async def _make(name: str = "Ahmad", nationality: str | None = "local") -> Worker:
        worker = Worker(worker_id=uuid4(), name=name, nationality=nationality)
        async with session_factory() as session:
            session.add(worker)
            await session.commit()
        return worker

    return _make


@pytest.fixture
def make_work_order(session_factory):
    """Factory creating a committed work order with assignments.

    ``assignments`` is a list of (worker, rate, quantity) tuples; quantity
    is work days for work_days orders and area size otherwise.
    """

    async def _make(
        assignments: list[tuple[Worker, str, str]],
        rate_type: str = "work_days",
        status: str = "completed",
        completion_date: date | None = date(2024, 3, 10),
    ) -> WorkOrder:
        work_order = WorkOrder(
            work_order_id=uuid4(),
            work_order_status=status,
            work_order_rate_type=rate_type,
            start_date=date(2024, 3, 1),
            completion_date=completion_date,
        )
        for worker, rate, quantity in assignments:
            assignment = WorkOrderWorker(
                work_order_worker_id=uuid4(),
                worker_id=worker.worker_id,
                rate=Decimal(rate),
            )
            if rate_type == "work_days":
                assignment.work_days = int(quantity)
            else:
                assignment.work_area_size = Decimal(quantity)
            work_order.assignments.append(assignment)

        async with session_factory() as session:
            session.add(work_order)
            await session.commit()
        return work_order

    return _make


@pytest.fixture
def discard_work_order(session_factory):
    """Mark a work order discarded."""

    async def _discard(work_order: WorkOrder) -> None:
        async with session_factory() as session:
            stored = await session.get(WorkOrder, work_order.work_order_id)
            stored.discarded_at = datetime.now(timezone.utc)
            await session.commit()

    return _discard
