"""Month keys used to bucket pay calculations."""

from __future__ import annotations

import re
from datetime import date

MONTH_YEAR_FORMAT = "%Y-%m"
_MONTH_YEAR_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


class InvalidMonthYearError(ValueError):
    """Raised when a month key is not in YYYY-MM form."""

    def __init__(self, month_year: str):
        self.month_year = month_year
        super().__init__(f"Invalid month_year '{month_year}', expected YYYY-MM")


def month_key(day: date) -> str:
    """Return the YYYY-MM key for a date."""
    return day.strftime(MONTH_YEAR_FORMAT)


def parse_month_year(month_year: str) -> date:
    """Return the first day of the month named by a YYYY-MM key."""
    match = _MONTH_YEAR_RE.match(month_year or "")
    if match is None:
        raise InvalidMonthYearError(month_year)
    return date(int(match.group(1)), int(match.group(2)), 1)


def month_bounds(month_year: str) -> tuple[date, date]:
    """Return the half-open [first day, first day of next month) range."""
    start = parse_month_year(month_year)
    if start.month == 12:
        end = date(start.year + 1, 1, 1)
    else:
        end = date(start.year, start.month + 1, 1)
    return start, end
