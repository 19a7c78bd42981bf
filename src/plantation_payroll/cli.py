"""Plantation payroll command line interface.

Provides operational tools for:
- Schema creation
- Pay calculation reconciliation
- Month summaries

Usage:
    python -m plantation_payroll init-db
    python -m plantation_payroll recalculate-all
    python -m plantation_payroll recalculate-month 2024-03
    python -m plantation_payroll show-month 2024-03
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncEngine

from plantation_payroll.config import get_settings
from plantation_payroll.database import create_schema, get_engine, make_session_factory
from plantation_payroll.periods import InvalidMonthYearError, parse_month_year
from plantation_payroll.services.queries import MonthSummary, get_month_summary
from plantation_payroll.services.reconciliation import (
    PayCalculationReconciler,
    ReconciliationResult,
)


def month_year_arg(s: str) -> str:
    """Validate a YYYY-MM argument."""
    try:
        parse_month_year(s)
    except InvalidMonthYearError as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    return s


class PayrollCli:
    """Plantation payroll command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="plantation-payroll",
            description="Plantation payroll operational tools",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Database URL (default: DATABASE_URL from the environment)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create all tables")

        subparsers.add_parser(
            "recalculate-all",
            help="Reconcile every stored pay calculation",
        )

        recalculate_month = subparsers.add_parser(
            "recalculate-month",
            help="Reconcile one month's pay calculation",
        )
        recalculate_month.add_argument(
            "month_year",
            type=month_year_arg,
            help="Month in YYYY-MM format",
        )

        show_month = subparsers.add_parser(
            "show-month",
            help="Print a month's totals and worker pay",
        )
        show_month.add_argument(
            "month_year",
            type=month_year_arg,
            help="Month in YYYY-MM format",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        settings = get_settings()
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        # Dispatch to command handler
        handlers: dict[str, Callable[..., Awaitable[int]]] = {
            "init-db": self._cmd_init_db,
            "recalculate-all": self._cmd_recalculate_all,
            "recalculate-month": self._cmd_recalculate_month,
            "show-month": self._cmd_show_month,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return asyncio.run(self._with_engine(handler, parsed))

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    async def _with_engine(
        self,
        handler: Callable[..., Awaitable[int]],
        args: argparse.Namespace,
    ) -> int:
        engine = get_engine(args.database_url)
        try:
            return await handler(engine, args)
        finally:
            await engine.dispose()

    async def _cmd_init_db(self, engine: AsyncEngine, args: argparse.Namespace) -> int:
        """Create the schema."""
        await create_schema(engine)
        print("Schema created.")
        return 0

    async def _cmd_recalculate_all(self, engine: AsyncEngine, args: argparse.Namespace) -> int:
        """Reconcile all months."""
        reconciler = PayCalculationReconciler(make_session_factory(engine))
        result = await reconciler.recalculate_all()
        self._print_reconciliation("all months", result)
        return 0 if result.success else 1

    async def _cmd_recalculate_month(self, engine: AsyncEngine, args: argparse.Namespace) -> int:
        """Reconcile one month."""
        reconciler = PayCalculationReconciler(make_session_factory(engine))
        result = await reconciler.recalculate_month(args.month_year)
        self._print_reconciliation(args.month_year, result)
        return 0 if result.success else 1

    async def _cmd_show_month(self, engine: AsyncEngine, args: argparse.Namespace) -> int:
        """Print a month summary."""
        session_factory = make_session_factory(engine)
        async with session_factory() as session:
            summary = await get_month_summary(session, args.month_year)

        if summary is None:
            print(f"No pay calculation for {args.month_year}")
            return 1

        for line in format_month_summary(summary, get_settings().default_currency):
            print(line)
        return 0

    @staticmethod
    def _print_reconciliation(scope: str, result: ReconciliationResult) -> None:
        print(f"Reconciliation ({scope})")
        print("=" * 40)
        print(f"  Months processed:         {result.months_processed}")
        print(f"  Details processed:        {result.details_processed}")
        print(f"  Details updated:          {result.details_updated}")
        print(f"  Details removed:          {result.details_removed}")
        print(f"  Pay calculations removed: {result.pay_calculations_removed}")
        for error in result.errors:
            print(f"  ERROR {error['month_year']}: {error['error']}")


def format_month_summary(summary: MonthSummary, currency: str = "RM") -> list[str]:
    """Render a month summary as plain text lines."""

    def money(value: Any, unit: str = currency) -> str:
        return f"{unit} {value:>12,.2f}"

    lines = [
        f"Pay calculation {summary.month_year}",
        "=" * 40,
        f"  Gross:              {money(summary.overall_gross_salary)}",
        f"  Employee deduction: {money(summary.overall_deduction)}",
        f"  Employer deduction: {money(summary.overall_employer_deduction)}",
        f"  Net:                {money(summary.overall_net)}",
    ]
    for worker in summary.workers:
        lines.append("")
        lines.append(f"{worker.worker_name or worker.worker_id} ({worker.nationality or 'unknown'})")
        lines.append(f"  Gross: {money(worker.gross_salary, worker.currency)}")
        for deduction in worker.deductions:
            lines.append(
                f"  {deduction.code:<12} employee {money(deduction.employee_amount, worker.currency)}"
                f"  employer {money(deduction.employer_amount, worker.currency)}"
            )
        lines.append(f"  Net:   {money(worker.net_salary, worker.currency)}")
    return lines


def main() -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
