"""Integration tests for batch reconciliation."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from plantation_payroll.models import DeductionType, PayCalculation, PayCalculationDetail
from plantation_payroll.periods import InvalidMonthYearError
from plantation_payroll.services.process_work_order import ProcessWorkOrderService
from plantation_payroll.services.reconciliation import (
    PayCalculationReconciler,
    ReconciliationResult,
)


@pytest.fixture
def process(session_factory, builder):
    return ProcessWorkOrderService(session_factory, builder)


@pytest.fixture
def reconciler(session_factory, builder):
    return PayCalculationReconciler(session_factory, builder)


async def corrupt_gross(session_factory, worker_id, gross):
    async with session_factory() as session:
        detail = (
            await session.execute(
                select(PayCalculationDetail).where(PayCalculationDetail.worker_id == worker_id)
            )
        ).scalar_one()
        detail.set_gross_salary(Decimal(gross))
        await session.commit()


async def load_detail(session_factory, worker_id):
    async with session_factory() as session:
        return (
            await session.execute(
                select(PayCalculationDetail).where(PayCalculationDetail.worker_id == worker_id)
            )
        ).scalar_one_or_none()


class TestRecalculateMonth:
    """Test single-month reconciliation."""

    async def test_repairs_drifted_detail(
        self, process, reconciler, session_factory, deduction_types, make_worker, make_work_order
    ):
        worker = await make_worker()
        await process.call(await make_work_order([(worker, "100", "30")]))
        await corrupt_gross(session_factory, worker.worker_id, "4500.00")

        result = await reconciler.recalculate_month("2024-03")

        assert result.success
        assert result.months_processed == 1
        assert result.details_processed == 1
        assert result.details_updated == 1

        detail = await load_detail(session_factory, worker.worker_id)
        assert detail.gross_salary == Decimal("3000.00")
        assert detail.employee_deductions == Decimal("351.00")
        assert detail.net_salary == Decimal("2649.00")

    async def test_second_run_changes_nothing(
        self, process, reconciler, session_factory, deduction_types, make_worker, make_work_order
    ):
        worker = await make_worker()
        await process.call(await make_work_order([(worker, "100", "15")]))
        await process.call(await make_work_order([(worker, "50", "30")], rate_type="normal"))
        await corrupt_gross(session_factory, worker.worker_id, "1.00")

        first = await reconciler.recalculate_month("2024-03")
        second = await reconciler.recalculate_month("2024-03")

        assert first.details_updated == 1
        assert second.details_processed == 1
        assert second.details_updated == 0
        assert second.details_removed == 0

    async def test_fresh_booking_needs_no_update(
        self, process, reconciler, deduction_types, make_worker, make_work_order
    ):
        worker = await make_worker()
        await process.call(await make_work_order([(worker, "100", "15")]))
        await process.call(await make_work_order([(worker, "100", "15")]))

        result = await reconciler.recalculate_month("2024-03")

        assert result.details_processed == 1
        assert result.details_updated == 0

    async def test_picks_up_deduction_type_changes(
        self, process, reconciler, session_factory, deduction_types, make_worker, make_work_order
    ):
        worker = await make_worker()
        await process.call(await make_work_order([(worker, "100", "30")]))

        async with session_factory() as session:
            sip = await session.get(DeductionType, deduction_types["SIP"].deduction_type_id)
            sip.is_active = False
            await session.commit()

        result = await reconciler.recalculate_month("2024-03")

        assert result.details_updated == 1
        detail = await load_detail(session_factory, worker.worker_id)
        assert set(detail.deduction_breakdown) == {"EPF", "SOCSO"}
        assert detail.employee_deductions == Decimal("345.00")

    async def test_removes_details_without_earnings(
        self,
        process,
        reconciler,
        session_factory,
        deduction_types,
        make_worker,
        make_work_order,
        discard_work_order,
    ):
        worker = await make_worker()
        work_order = await make_work_order([(worker, "100", "10")])
        await process.call(work_order)
        await discard_work_order(work_order)

        result = await reconciler.recalculate_month("2024-03")

        assert result.details_removed == 1
        assert result.pay_calculations_removed == 1
        async with session_factory() as session:
            remaining = (await session.execute(select(PayCalculation))).scalars().all()
        assert remaining == []

    async def test_month_totals_recomputed(
        self, process, reconciler, session_factory, deduction_types, make_worker, make_work_order
    ):
        worker = await make_worker()
        await process.call(await make_work_order([(worker, "100", "30")]))
        await corrupt_gross(session_factory, worker.worker_id, "10.00")

        await reconciler.recalculate_month("2024-03")

        async with session_factory() as session:
            pay_calculation = (
                await session.execute(
                    select(PayCalculation).where(PayCalculation.month_year == "2024-03")
                )
            ).scalar_one()
        assert pay_calculation.overall_gross_salary == Decimal("3000.00")
        assert pay_calculation.overall_net == Decimal("2649.00")

    async def test_missing_month_is_noop(self, reconciler):
        result = await reconciler.recalculate_month("2023-01")

        assert result.success
        assert result.months_processed == 0

    async def test_invalid_month_rejected(self, reconciler):
        with pytest.raises(InvalidMonthYearError):
            await reconciler.recalculate_month("2024/03")


class TestRecalculateAll:
    """Test the full sweep."""

    async def test_sweeps_every_month(
        self, process, reconciler, session_factory, deduction_types, make_worker, make_work_order
    ):
        worker = await make_worker()
        await process.call(
            await make_work_order([(worker, "100", "10")], completion_date=date(2024, 1, 5))
        )
        await process.call(
            await make_work_order([(worker, "100", "20")], completion_date=date(2024, 2, 5))
        )

        result = await reconciler.recalculate_all()

        assert result.success
        assert result.months_processed == 2
        assert result.details_processed == 2
        assert result.details_updated == 0

    async def test_failing_month_recorded_and_sweep_continues(
        self, process, reconciler, session_factory, deduction_types, make_worker, make_work_order
    ):
        local = await make_worker("Ahmad", "local")
        foreign = await make_worker("Chen", "foreigner")
        await process.call(
            await make_work_order([(local, "100", "10")], completion_date=date(2024, 1, 5))
        )
        await process.call(
            await make_work_order([(foreign, "100", "20")], completion_date=date(2024, 2, 5))
        )

        # Wage-range levy without brackets breaks every foreigner snapshot
        async with session_factory() as session:
            session.add(
                DeductionType(
                    code="LEVY",
                    name="Foreign Worker Levy",
                    calculation_method="wage_range",
                    applies_to_nationality="foreigner",
                    effective_from=date(2024, 1, 1),
                )
            )
            await session.commit()

        result = await reconciler.recalculate_all()

        assert not result.success
        assert result.months_processed == 1
        assert [e["month_year"] for e in result.errors] == ["2024-02"]
        assert "no wage ranges configured" in result.errors[0]["error"]

        detail = await load_detail(session_factory, foreign.worker_id)
        assert detail.gross_salary == Decimal("2000.00")
        assert set(detail.deduction_breakdown) == {"SOCSO"}


class TestReconciliationResult:
    """Test result aggregation."""

    def test_merge(self):
        total = ReconciliationResult()
        total.merge(
            ReconciliationResult(month_year="2024-01", months_processed=1, details_updated=2)
        )
        total.merge(
            ReconciliationResult(
                month_year="2024-02",
                errors=[{"month_year": "2024-02", "error": "boom"}],
            )
        )

        assert total.months_processed == 1
        assert total.details_updated == 2
        assert not total.success
