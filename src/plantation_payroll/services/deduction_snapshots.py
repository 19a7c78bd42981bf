"""Loading deduction types and (re)building detail snapshots."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from plantation_payroll.calculators.snapshot_builder import DeductionSnapshotBuilder
from plantation_payroll.calculators.types import (
    EXEMPT_NATIONALITIES,
    DeductionBreakdown,
    NationalityClass,
    normalize_nationality,
)
from plantation_payroll.config import get_settings
from plantation_payroll.models import DeductionType, PayCalculationDetail, Worker


def default_snapshot_builder() -> DeductionSnapshotBuilder:
    """Builder using the configured default nationality class."""
    settings = get_settings()
    return DeductionSnapshotBuilder(
        default_nationality=normalize_nationality(settings.default_nationality),
    )


async def load_applicable_deduction_types(
    session: AsyncSession,
    nationality: NationalityClass,
    as_of: date,
) -> list[DeductionType]:
    """Active deduction types effective on a date for a nationality class."""
    if nationality in EXEMPT_NATIONALITIES:
        return []

    result = await session.execute(
        select(DeductionType)
        .where(
            DeductionType.is_active.is_(True),
            DeductionType.effective_from <= as_of,
            or_(DeductionType.effective_until.is_(None), DeductionType.effective_until > as_of),
            or_(
                DeductionType.applies_to_nationality.is_(None),
                DeductionType.applies_to_nationality.in_(
                    [NationalityClass.ALL.value, nationality.value]
                ),
            ),
        )
        .order_by(DeductionType.code, DeductionType.effective_from)
    )
    return list(result.scalars().all())


class DeductionSnapshotService:
    """Applies deduction snapshots to pay calculation details.

    Deduction types are cached per nationality class for the lifetime of
    the service, which is one transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        builder: DeductionSnapshotBuilder | None = None,
    ):
        self.session = session
        self.builder = builder or default_snapshot_builder()
        self._types_cache: dict[NationalityClass, list[DeductionType]] = {}

    async def breakdown_for(
        self,
        nationality: str | None,
        gross_salary: Decimal,
    ) -> DeductionBreakdown:
        """Build a breakdown for a nationality and gross salary."""
        nationality_class = self.builder.nationality_class(nationality)
        as_of = self.builder.today()

        deduction_types = self._types_cache.get(nationality_class)
        if deduction_types is None:
            deduction_types = await load_applicable_deduction_types(
                self.session, nationality_class, as_of
            )
            self._types_cache[nationality_class] = deduction_types

        return self.builder.build(deduction_types, nationality, gross_salary, as_of=as_of)

    async def rebuild_snapshot(
        self,
        detail: PayCalculationDetail,
        worker: Worker | None = None,
    ) -> DeductionBreakdown:
        """Refresh a detail's snapshot for its current gross salary.

        This is the only path that replaces an existing breakdown.
        """
        if worker is None:
            worker = await self.session.get(Worker, detail.worker_id)
        nationality = worker.nationality if worker is not None else None

        breakdown = await self.breakdown_for(nationality, detail.gross_salary)
        detail.apply_breakdown(breakdown)
        return breakdown
