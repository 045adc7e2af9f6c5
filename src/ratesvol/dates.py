"""
Date utilities for swaption calibration.

Provides:
- Tenor parsing and tenor arithmetic
- Fixed-leg schedule generation for swaption underlyings
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, FrozenSet, Tuple
import calendar
import re

from .conventions import (
    BusinessDayConvention,
    DayCount,
    adjust_business_day,
    add_business_days,
    year_fraction,
)


class DateUtils:
    """Utility class for tenor handling."""

    # Tenor regex pattern: number + unit (D/W/M/Y)
    TENOR_PATTERN = re.compile(r'^(\d+)([DWMY])$', re.IGNORECASE)

    @staticmethod
    def parse_tenor(tenor: str) -> Tuple[int, str]:
        """
        Parse a tenor string into (amount, unit).

        Args:
            tenor: Tenor string like "1D", "3M", "2Y"

        Returns:
            Tuple of (amount, unit) where unit is D/W/M/Y

        Raises:
            ValueError: If tenor format is invalid
        """
        match = DateUtils.TENOR_PATTERN.match(str(tenor).upper().strip())
        if not match:
            raise ValueError(f"Invalid tenor format: {tenor}. Expected format like '3M', '2Y'")
        return int(match.group(1)), match.group(2).upper()

    @staticmethod
    def add_tenor(start: date, tenor: str, holidays: Optional[FrozenSet[date]] = None) -> date:
        """
        Add a tenor to a date without business day adjustment.

        Days are business days; months and years keep the day of month where
        possible and clip to month end otherwise.
        """
        amount, unit = DateUtils.parse_tenor(tenor)
        if unit == 'D':
            return add_business_days(start, amount, holidays)
        if unit == 'W':
            return start + timedelta(weeks=amount)
        months = amount if unit == 'M' else 12 * amount
        return add_months(start, months)

    @staticmethod
    def tenor_to_months(tenor: str) -> int:
        """Tenor length in whole months (month and year tenors only)."""
        amount, unit = DateUtils.parse_tenor(tenor)
        if unit == 'M':
            return amount
        if unit == 'Y':
            return 12 * amount
        raise ValueError(f"Tenor {tenor} is not a whole number of months")

    @staticmethod
    def tenor_to_years(tenor: str) -> float:
        """
        Approximate year length of a tenor.

        Args:
            tenor: Tenor string

        Returns:
            Years as float
        """
        amount, unit = DateUtils.parse_tenor(tenor)
        if unit == 'D':
            return amount / 365.0
        if unit == 'W':
            return amount * 7 / 365.0
        if unit == 'M':
            return amount / 12.0
        return float(amount)


def add_months(d: date, months: int) -> date:
    """Add calendar months, clipping the day to the target month's length."""
    year = d.year + (d.month + months - 1) // 12
    month = (d.month + months - 1) % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass(frozen=True)
class ScheduleInfo:
    """Fixed-leg schedule with accrual information."""
    payment_dates: Tuple[date, ...]
    accrual_starts: Tuple[date, ...]
    accrual_ends: Tuple[date, ...]
    year_fractions: Tuple[float, ...]
    day_count: DayCount


def generate_schedule(
    start: date,
    end: date,
    frequency: int,
    day_count: DayCount,
    convention: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
    holidays: Optional[FrozenSet[date]] = None
) -> ScheduleInfo:
    """
    Regular schedule rolled backward from maturity, short front stub.

    Args:
        start: Accrual start (effective date)
        end: Unadjusted maturity
        frequency: Payments per year
        day_count: Accrual day count
        convention: Business day adjustment of period dates
        holidays: Holiday calendar

    Returns:
        ScheduleInfo
    """
    if frequency <= 0 or 12 % frequency != 0:
        raise ValueError(f"Frequency must divide 12, got {frequency}")
    if end <= start:
        raise ValueError(f"Schedule end {end} must be after start {start}")

    step = 12 // frequency
    unadjusted: List[date] = [end]
    n = 1
    while True:
        prev = add_months(end, -step * n)
        if prev <= start:
            break
        unadjusted.insert(0, prev)
        n += 1

    ends = [adjust_business_day(d, convention, holidays) for d in unadjusted]
    starts = [start] + ends[:-1]
    return ScheduleInfo(
        payment_dates=tuple(ends),
        accrual_starts=tuple(starts),
        accrual_ends=tuple(ends),
        year_fractions=tuple(year_fraction(s, e, day_count) for s, e in zip(starts, ends)),
        day_count=day_count,
    )


__all__ = [
    "DateUtils",
    "ScheduleInfo",
    "add_months",
    "generate_schedule",
]
