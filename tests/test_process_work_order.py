"""Integration tests for forward pay processing."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from plantation_payroll.models import (
    DeductionType,
    PayCalculation,
    PayCalculationDetail,
    WorkOrderWorker,
)
from plantation_payroll.services.process_work_order import ProcessWorkOrderService


async def load_month(session_factory, month_year="2024-03"):
    async with session_factory() as session:
        result = await session.execute(
            select(PayCalculation).where(PayCalculation.month_year == month_year)
        )
        pay_calculation = result.scalar_one_or_none()
        details = {}
        if pay_calculation is not None:
            rows = await session.execute(
                select(PayCalculationDetail).where(
                    PayCalculationDetail.pay_calculation_id == pay_calculation.pay_calculation_id
                )
            )
            details = {d.worker_id: d for d in rows.scalars().all()}
        return pay_calculation, details


@pytest.fixture
def service(session_factory, builder):
    return ProcessWorkOrderService(session_factory, builder)


class TestForwardProcessing:
    """Test booking completed work orders."""

    async def test_single_work_order_scenario(
        self, service, session_factory, deduction_types, make_worker, make_work_order
    ):
        """Local worker earning 3000 in one work order."""
        worker = await make_worker()
        work_order = await make_work_order([(worker, "100", "30")])

        result = await service.call(work_order)

        assert result.success
        assert result.message == "Pay calculation processed successfully for 2024-03"

        pay_calculation, details = await load_month(session_factory)
        detail = details[worker.worker_id]
        assert detail.gross_salary == Decimal("3000.00")
        assert detail.employee_deductions == Decimal("351.00")
        assert detail.employer_deductions == Decimal("396.00")
        assert detail.net_salary == Decimal("2649.00")
        assert detail.currency == "RM"
        assert set(detail.deduction_breakdown) == {"EPF", "SOCSO", "SIP"}

        assert pay_calculation.overall_gross_salary == Decimal("3000.00")
        assert pay_calculation.overall_deduction == Decimal("351.00")
        assert pay_calculation.overall_employer_deduction == Decimal("396.00")
        assert pay_calculation.overall_net == Decimal("2649.00")

    async def test_accumulates_across_work_orders(
        self, service, session_factory, deduction_types, make_worker, make_work_order
    ):
        """Deductions follow the running monthly total, not each work order."""
        worker = await make_worker()
        first = await make_work_order([(worker, "100", "15")])
        second = await make_work_order([(worker, "50", "30")], rate_type="normal")

        assert (await service.call(first)).success
        _, details = await load_month(session_factory)
        assert details[worker.worker_id].employee_deductions == Decimal("178.00")

        assert (await service.call(second)).success
        pay_calculation, details = await load_month(session_factory)
        detail = details[worker.worker_id]

        assert len(details) == 1
        assert detail.gross_salary == Decimal("3000.00")
        assert detail.employee_deductions == Decimal("351.00")
        assert detail.breakdown.by_code["EPF"].gross_salary_at_computation == Decimal("3000.00")
        assert pay_calculation.overall_gross_salary == Decimal("3000.00")

    async def test_month_totals_sum_details(
        self, service, session_factory, deduction_types, make_worker, make_work_order
    ):
        local = await make_worker("Ahmad", "local")
        exempt = await make_worker("Budi", "Foreigner (No Passport)")
        foreign = await make_worker("Chen", "foreigner")
        work_order = await make_work_order(
            [(local, "100", "30"), (exempt, "80", "25"), (foreign, "60", "20")]
        )

        assert (await service.call(work_order)).success

        pay_calculation, details = await load_month(session_factory)
        assert details[exempt.worker_id].deduction_breakdown == {}
        assert details[exempt.worker_id].net_salary == Decimal("2000.00")
        # 1200 falls in the 1000-2000 SOCSO bracket
        assert details[foreign.worker_id].employee_deductions == Decimal("10.00")

        assert pay_calculation.overall_gross_salary == sum(
            (d.gross_salary for d in details.values()), Decimal("0")
        )
        assert pay_calculation.overall_deduction == Decimal("361.00")
        assert pay_calculation.overall_employer_deduction == Decimal("416.00")
        assert pay_calculation.overall_net == Decimal("5839.00")

    async def test_discarded_assignments_skipped(
        self, service, session_factory, deduction_types, make_worker, make_work_order
    ):
        active = await make_worker("Ahmad")
        dropped = await make_worker("Budi")
        work_order = await make_work_order([(active, "100", "10"), (dropped, "100", "10")])
        async with session_factory() as session:
            assignment = (
                await session.execute(
                    select(WorkOrderWorker).where(WorkOrderWorker.worker_id == dropped.worker_id)
                )
            ).scalar_one()
            assignment.discarded_at = datetime.now(timezone.utc)
            await session.commit()

        assert (await service.call(work_order)).success

        _, details = await load_month(session_factory)
        assert set(details) == {active.worker_id}

    async def test_missing_completion_date_books_nothing(
        self, service, session_factory, deduction_types, make_worker, make_work_order
    ):
        """An undated order is not booked to any month."""
        worker = await make_worker()
        work_order = await make_work_order([(worker, "100", "10")], completion_date=None)

        result = await service.call(work_order.work_order_id)

        assert result.success
        assert result.message == "No completion date"
        async with session_factory() as session:
            assert (await session.execute(select(PayCalculation))).first() is None

    async def test_books_to_completion_month(
        self, service, session_factory, deduction_types, make_worker, make_work_order
    ):
        worker = await make_worker()
        work_order = await make_work_order(
            [(worker, "100", "10")], completion_date=date(2024, 1, 31)
        )

        result = await service.call(work_order)

        assert result.message == "Pay calculation processed successfully for 2024-01"
        pay_calculation, _ = await load_month(session_factory, "2024-01")
        assert pay_calculation is not None


class TestShortCircuits:
    """Test no-op outcomes."""

    async def test_resource_only_work_order(
        self, service, session_factory, make_worker, make_work_order
    ):
        worker = await make_worker()
        work_order = await make_work_order([(worker, "100", "10")], rate_type="resources")

        result = await service.call(work_order)

        assert result.success
        assert result.message == "Resource-only work order, no pay calculation needed"
        pay_calculation, _ = await load_month(session_factory)
        assert pay_calculation is None

    async def test_no_workers(self, service, session_factory, make_work_order):
        work_order = await make_work_order([])

        result = await service.call(work_order)

        assert result.success
        assert result.message == "No workers to process"
        pay_calculation, _ = await load_month(session_factory)
        assert pay_calculation is None

    async def test_not_completed(self, service, make_worker, make_work_order):
        worker = await make_worker()
        work_order = await make_work_order([(worker, "100", "10")], status="ongoing")

        result = await service.call(work_order)

        assert result.success
        assert "not completed" in result.message

    async def test_unknown_work_order_fails(self, service):
        result = await service.call(uuid4())

        assert result.failure
        assert result.message.startswith("Failed to process pay calculation:")


class TestFailureRollsBack:
    """Test all-or-nothing processing."""

    async def test_misconfigured_deduction_rolls_back(
        self, service, session_factory, make_worker, make_work_order
    ):
        async with session_factory() as session:
            session.add(
                DeductionType(
                    code="SOCSO",
                    name="SOCSO",
                    calculation_method="wage_range",
                    applies_to_nationality="all",
                    effective_from=date(2024, 1, 1),
                )
            )
            await session.commit()

        worker = await make_worker()
        work_order = await make_work_order([(worker, "100", "10")])

        result = await service.call(work_order)

        assert result.failure
        assert "no wage ranges configured" in result.message
        pay_calculation, _ = await load_month(session_factory)
        assert pay_calculation is None
