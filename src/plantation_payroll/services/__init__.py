"""Pay calculation services."""

from plantation_payroll.services.deduction_snapshots import (
    DeductionSnapshotService,
    load_applicable_deduction_types,
)
from plantation_payroll.services.lifecycle import PayrollLifecycle
from plantation_payroll.services.process_work_order import ProcessWorkOrderService
from plantation_payroll.services.queries import (
    MonthSummary,
    WorkerPayView,
    get_month_summary,
    get_worker_detail,
    sorted_deductions,
)
from plantation_payroll.services.reconciliation import (
    PayCalculationReconciler,
    ReconciliationResult,
)
from plantation_payroll.services.results import ServiceResult
from plantation_payroll.services.reverse_work_order import ReverseWorkOrderService
from plantation_payroll.services.worker_pay_accumulator import WorkerPayAccumulator

__all__ = [
    "DeductionSnapshotService",
    "load_applicable_deduction_types",
    "PayrollLifecycle",
    "ProcessWorkOrderService",
    "MonthSummary",
    "WorkerPayView",
    "get_month_summary",
    "get_worker_detail",
    "sorted_deductions",
    "PayCalculationReconciler",
    "ReconciliationResult",
    "ServiceResult",
    "ReverseWorkOrderService",
    "WorkerPayAccumulator",
]
