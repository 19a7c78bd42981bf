"""Unit tests for per-assignment gross salary."""

from decimal import Decimal

import pytest

from plantation_payroll.calculators.gross_salary import assignment_quantity, compute_gross_salary
from plantation_payroll.calculators.types import WorkOrderRateType
from plantation_payroll.models import WorkOrderWorker


def assignment(rate=None, work_days=None, area=None):
    return WorkOrderWorker(
        rate=Decimal(rate) if rate is not None else None,
        work_days=work_days,
        work_area_size=Decimal(area) if area is not None else None,
    )


class TestComputeGrossSalary:
    """Test rate x quantity."""

    @pytest.mark.parametrize(
        "rate_type,expected",
        [
            ("work_days", "1500.00"),
            ("normal", "625.00"),
            ("resources", "625.00"),
            (WorkOrderRateType.WORK_DAYS, "1500.00"),
        ],
    )
    def test_quantity_follows_rate_type(self, rate_type, expected):
        worker = assignment(rate="100", work_days=15, area="6.25")
        assert compute_gross_salary(worker, rate_type) == Decimal(expected)

    def test_rounds_to_cents(self):
        worker = assignment(rate="33.33", area="2.555")
        assert compute_gross_salary(worker, "normal") == Decimal("85.16")

    @pytest.mark.parametrize(
        "worker",
        [
            assignment(rate=None, work_days=10),
            assignment(rate="50", work_days=None),
            assignment(),
        ],
    )
    def test_missing_values_count_as_zero(self, worker):
        assert compute_gross_salary(worker, "work_days") == Decimal("0")

    def test_quantity_for_normal_is_area(self):
        worker = assignment(rate="1", work_days=3, area="1.5")
        assert assignment_quantity(worker, "normal") == Decimal("1.5")
        assert assignment_quantity(worker, "work_days") == Decimal("3")
