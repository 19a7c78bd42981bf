"""Seed script for Malaysian statutory deduction types.

Run with:
    python scripts/seed_deduction_types.py

Creates EPF (local and foreign), the SOCSO wage-range table, SIP and EIS.
Existing definitions (same code and effective_from) are left untouched.
"""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from plantation_payroll.database import session_scope
from plantation_payroll.models import DeductionType, DeductionWageRange, validate_wage_ranges

EFFECTIVE_FROM = date(2024, 1, 1)

PERCENTAGE_TYPES: list[dict[str, Any]] = [
    {
        "code": "EPF",
        "name": "EPF",
        "description": "Employees Provident Fund - retirement savings",
        "employee_rate": Decimal("11.0"),
        "employer_rate": Decimal("12.0"),
        "applies_to_nationality": "local",
    },
    {
        "code": "EPF_FOREIGN",
        "name": "EPF (Foreign)",
        "description": "Employees Provident Fund for foreign workers",
        "employee_rate": Decimal("2.0"),
        "employer_rate": Decimal("2.0"),
        "applies_to_nationality": "foreigner",
    },
    {
        "code": "SIP",
        "name": "SIP",
        "description": "Skim Insurans Pekerjaan - employment insurance",
        "employee_rate": Decimal("0.2"),
        "employer_rate": Decimal("0.2"),
        "applies_to_nationality": "local",
    },
    {
        "code": "EIS",
        "name": "EIS",
        "description": "Employment Insurance System",
        "employee_rate": Decimal("0.2"),
        "employer_rate": Decimal("0.2"),
        "applies_to_nationality": "local",
        "is_active": False,
    },
]

# Excerpt of the SOCSO first category contribution table
SOCSO_BRACKETS: list[tuple[str, str | None, str, str]] = [
    ("0.00", "30.00", "0.10", "0.40"),
    ("30.01", "50.00", "0.20", "0.70"),
    ("50.01", "70.00", "0.30", "1.10"),
    ("70.01", "100.00", "0.40", "1.50"),
    ("100.01", "1000.00", "4.75", "16.65"),
    ("1000.01", "2000.00", "9.75", "34.15"),
    ("2000.01", "3000.00", "14.75", "51.65"),
    ("3000.01", "4000.00", "19.75", "69.05"),
    ("4000.01", "5000.00", "24.75", "86.65"),
    ("5000.01", None, "29.75", "104.15"),
]


async def _exists(session: AsyncSession, code: str) -> bool:
    result = await session.execute(
        select(DeductionType).where(
            DeductionType.code == code,
            DeductionType.effective_from == EFFECTIVE_FROM,
        )
    )
    return result.scalar_one_or_none() is not None


async def seed_percentage_types(session: AsyncSession) -> None:
    """Create the percentage-based deduction types."""
    for definition in PERCENTAGE_TYPES:
        if await _exists(session, definition["code"]):
            print(f"{definition['code']} already exists, skipping...")
            continue

        session.add(
            DeductionType(
                calculation_method="percentage",
                effective_from=EFFECTIVE_FROM,
                **definition,
            )
        )
        print(f"Created {definition['code']} deduction type")

    await session.flush()


async def seed_socso(session: AsyncSession) -> None:
    """Create the SOCSO wage-range deduction type and its brackets."""
    if await _exists(session, "SOCSO"):
        print("SOCSO already exists, skipping...")
        return

    brackets = [
        DeductionWageRange(
            min_wage=Decimal(low),
            max_wage=Decimal(high) if high is not None else None,
            calculation_method="fixed",
            employee_amount=Decimal(employee),
            employer_amount=Decimal(employer),
        )
        for low, high, employee, employer in SOCSO_BRACKETS
    ]

    errors = validate_wage_ranges(brackets)
    if errors:
        raise ValueError(f"Invalid SOCSO wage ranges: {'; '.join(errors)}")

    session.add(
        DeductionType(
            code="SOCSO",
            name="SOCSO",
            description="Social Security Organization - social protection",
            calculation_method="wage_range",
            applies_to_nationality="all",
            effective_from=EFFECTIVE_FROM,
            wage_ranges=brackets,
        )
    )
    print(f"Created SOCSO deduction type with {len(brackets)} brackets")
    await session.flush()


async def main():
    """Run seed script."""
    print("Seeding deduction types...")

    async with session_scope() as session:
        await seed_percentage_types(session)
        await seed_socso(session)

    print("\nDone! Deduction types seeded successfully.")


if __name__ == "__main__":
    asyncio.run(main())
