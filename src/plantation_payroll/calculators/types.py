"""Type definitions for the deduction calculation pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Iterable, Mapping

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce a nullable numeric value to Decimal (None becomes zero)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(amount: Decimal, places: int = 2) -> Decimal:
    """Round to a number of decimal places using half-up rounding."""
    exponent = Decimal(1).scaleb(-places)
    return amount.quantize(exponent, rounding=ROUND_HALF_UP)


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places (cents)."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class CalculationMethod(str, Enum):
    """How a deduction type turns gross salary into an amount."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"
    WAGE_RANGE = "wage_range"


class BracketMethod(str, Enum):
    """Calculation method local to one wage range bracket."""

    FIXED = "fixed"
    PERCENTAGE = "percentage"


class ContributionField(str, Enum):
    """Which side of a contribution is being calculated."""

    EMPLOYEE = "employee"
    EMPLOYER = "employer"


class NationalityClass(str, Enum):
    """Nationality classes used for deduction applicability."""

    ALL = "all"
    LOCAL = "local"
    FOREIGNER = "foreigner"
    FOREIGNER_NO_PASSPORT = "foreigner_no_passport"


# Classes that carry no statutory contribution at all.
EXEMPT_NATIONALITIES = frozenset({NationalityClass.FOREIGNER_NO_PASSPORT})

_NATIONALITY_ALIASES = {
    "local": NationalityClass.LOCAL,
    "malaysian": NationalityClass.LOCAL,
    "citizen": NationalityClass.LOCAL,
    "foreigner": NationalityClass.FOREIGNER,
    "foreign": NationalityClass.FOREIGNER,
    "foreign_worker": NationalityClass.FOREIGNER,
    "foreigner_no_passport": NationalityClass.FOREIGNER_NO_PASSPORT,
    "foreign_no_passport": NationalityClass.FOREIGNER_NO_PASSPORT,
    "no_passport": NationalityClass.FOREIGNER_NO_PASSPORT,
}


def normalize_nationality(
    value: str | None,
    default: NationalityClass = NationalityClass.LOCAL,
) -> NationalityClass:
    """Map a free-form nationality string to a nationality class.

    "Foreigner (No Passport)", "foreigner-no-passport" and
    "foreigner_no_passport" all normalize to FOREIGNER_NO_PASSPORT.
    Missing or unrecognized values fall back to ``default``.
    """
    if not value:
        return default
    key = re.sub(r"[^a-z0-9]+", "_", value.strip().lower()).strip("_")
    return _NATIONALITY_ALIASES.get(key, default)


class WorkOrderRateType(str, Enum):
    """Work order kinds, deciding how worker quantity is measured."""

    NORMAL = "normal"
    RESOURCES = "resources"
    WORK_DAYS = "work_days"


class WorkOrderStatus(str, Enum):
    """Work order lifecycle states."""

    ONGOING = "ongoing"
    PENDING = "pending"
    AMENDMENT_REQUIRED = "amendment_required"
    COMPLETED = "completed"


@dataclass(frozen=True)
class DeductionSnapshot:
    """One deduction type's result, frozen at computation time."""

    code: str
    name: str
    employee_rate: Decimal
    employer_rate: Decimal
    employee_amount: Decimal
    employer_amount: Decimal
    gross_salary_at_computation: Decimal
    nationality_at_computation: str

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-safe dict (decimals as strings)."""
        return {
            "name": self.name,
            "employee_rate": str(self.employee_rate),
            "employer_rate": str(self.employer_rate),
            "employee_amount": str(self.employee_amount),
            "employer_amount": str(self.employer_amount),
            "gross_salary_at_computation": str(self.gross_salary_at_computation),
            "nationality_at_computation": self.nationality_at_computation,
        }

    @classmethod
    def from_dict(cls, code: str, data: Mapping[str, Any]) -> DeductionSnapshot:
        return cls(
            code=code,
            name=data.get("name", code),
            employee_rate=to_decimal(data.get("employee_rate")),
            employer_rate=to_decimal(data.get("employer_rate")),
            employee_amount=to_decimal(data.get("employee_amount")),
            employer_amount=to_decimal(data.get("employer_amount")),
            gross_salary_at_computation=to_decimal(data.get("gross_salary_at_computation")),
            nationality_at_computation=data.get("nationality_at_computation", ""),
        )


def _presentation_priority(code: str) -> int:
    upper = code.upper()
    if upper.startswith("EPF"):
        return 0
    if upper == "SOCSO":
        return 1
    if upper.startswith(("EIS", "SIP")):
        return 2
    return 3


@dataclass(frozen=True)
class DeductionBreakdown:
    """Immutable per-code deduction snapshot for one worker and month.

    The totals are the sums of the snapshot amounts; they are never
    recomputed from a later gross salary.
    """

    snapshots: tuple[DeductionSnapshot, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> DeductionBreakdown:
        return cls()

    @classmethod
    def from_snapshots(cls, snapshots: Iterable[DeductionSnapshot]) -> DeductionBreakdown:
        return cls(snapshots=tuple(snapshots))

    @property
    def is_empty(self) -> bool:
        return len(self.snapshots) == 0

    @property
    def by_code(self) -> dict[str, DeductionSnapshot]:
        return {s.code: s for s in self.snapshots}

    @property
    def employee_total(self) -> Decimal:
        return sum((s.employee_amount for s in self.snapshots), ZERO)

    @property
    def employer_total(self) -> Decimal:
        return sum((s.employer_amount for s in self.snapshots), ZERO)

    def to_document(self) -> dict[str, dict[str, Any]]:
        """Serialize to the JSON document stored on the detail row."""
        return {s.code: s.to_dict() for s in self.snapshots}

    @classmethod
    def from_document(cls, document: Mapping[str, Any] | None) -> DeductionBreakdown:
        if not document:
            return cls.empty()
        return cls.from_snapshots(
            DeductionSnapshot.from_dict(code, data) for code, data in document.items()
        )

    def sorted_items(self) -> list[DeductionSnapshot]:
        """Snapshots in display order: EPF, SOCSO, EIS/SIP, then alphabetical."""
        return sorted(self.snapshots, key=lambda s: (_presentation_priority(s.code), s.code))
