"""
Day counts, business day adjustment and swap conventions.

Supported Day Counts:
- ACT/360, ACT/365 (fixed), ACT/ACT (ISDA), 30/360 (US)

Business Day Conventions:
- Following, Modified Following, Preceding, Unadjusted

Swap conventions hold what is needed to resolve the underlying swap of a
swaption from an expiry: spot lag, fixed-leg frequency and day count.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import FrozenSet, Optional
import calendar


class DayCount(Enum):
    """Day count convention enumeration."""
    ACT_360 = "ACT/360"
    ACT_365 = "ACT/365"
    ACT_ACT = "ACT/ACT"
    THIRTY_360 = "30/360"

    @classmethod
    def from_string(cls, s: str) -> "DayCount":
        """Parse day count from string representation."""
        key = s.upper().replace(" ", "").replace("F", "")
        for member in cls:
            if key in (member.value, member.value.replace("/", "")):
                return member
        raise ValueError(f"Unknown day count convention: {s}")


class BusinessDayConvention(Enum):
    """Business day adjustment convention."""
    MODIFIED_FOLLOWING = "ModifiedFollowing"
    FOLLOWING = "Following"
    PRECEDING = "Preceding"
    UNADJUSTED = "Unadjusted"


def _act_act_isda(start: date, end: date) -> float:
    total = 0.0
    current = start
    while current < end:
        year_end = date(current.year + 1, 1, 1)
        period_end = min(year_end, end)
        days_in_year = 366 if calendar.isleap(current.year) else 365
        total += (period_end - current).days / days_in_year
        current = period_end
    return total


def year_fraction(start: date, end: date, day_count: DayCount) -> float:
    """
    Year fraction between two dates.

    Args:
        start: Start date
        end: End date
        day_count: Day count convention

    Returns:
        Year fraction; negative when end precedes start
    """
    if end < start:
        return -year_fraction(end, start, day_count)

    actual_days = (end - start).days
    if day_count == DayCount.ACT_360:
        return actual_days / 360.0
    if day_count == DayCount.ACT_365:
        return actual_days / 365.0
    if day_count == DayCount.ACT_ACT:
        return _act_act_isda(start, end)
    if day_count == DayCount.THIRTY_360:
        d1 = min(start.day, 30)
        d2 = min(end.day, 30) if d1 == 30 else end.day
        return (360 * (end.year - start.year) + 30 * (end.month - start.month) + (d2 - d1)) / 360.0
    raise ValueError(f"Unknown day count: {day_count}")


def is_business_day(d: date, holidays: Optional[FrozenSet[date]] = None) -> bool:
    """
    Weekend-and-holiday calendar check.

    Args:
        d: Date to check
        holidays: Optional set of holiday dates

    Returns:
        True if business day
    """
    if d.weekday() >= 5:
        return False
    return not (holidays and d in holidays)


def _roll(d: date, step: int, holidays: Optional[FrozenSet[date]]) -> date:
    while not is_business_day(d, holidays):
        d += timedelta(days=step)
    return d


def adjust_business_day(
    d: date,
    convention: BusinessDayConvention,
    holidays: Optional[FrozenSet[date]] = None
) -> date:
    """
    Adjust a date according to a business day convention.

    Args:
        d: Date to adjust
        convention: Business day adjustment rule
        holidays: Optional set of holiday dates

    Returns:
        Adjusted date
    """
    if convention == BusinessDayConvention.UNADJUSTED or is_business_day(d, holidays):
        return d
    if convention == BusinessDayConvention.FOLLOWING:
        return _roll(d, 1, holidays)
    if convention == BusinessDayConvention.PRECEDING:
        return _roll(d, -1, holidays)
    if convention == BusinessDayConvention.MODIFIED_FOLLOWING:
        adjusted = _roll(d, 1, holidays)
        if adjusted.month != d.month:
            adjusted = _roll(d, -1, holidays)
        return adjusted
    raise ValueError(f"Unknown business day convention: {convention}")


def add_business_days(d: date, days: int, holidays: Optional[FrozenSet[date]] = None) -> date:
    """Move forward by a number of business days."""
    result = d
    added = 0
    while added < days:
        result += timedelta(days=1)
        if is_business_day(result, holidays):
            added += 1
    return result


@dataclass(frozen=True)
class SwapConvention:
    """
    Conventions of the swap underlying a swaption.

    Attributes:
        name: Convention name, e.g. "USD-FIXED-1Y-SOFR-OIS"
        currency: Currency code
        spot_days: Business days from exercise to swap start
        fixed_frequency: Fixed leg payments per year
        fixed_day_count: Fixed leg accrual day count
        business_day: Adjustment applied to schedule and expiry dates
        holidays: Holiday calendar
    """
    name: str
    currency: str = "USD"
    spot_days: int = 2
    fixed_frequency: int = 1
    fixed_day_count: DayCount = DayCount.ACT_360
    business_day: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING
    holidays: FrozenSet[date] = frozenset()

    def __post_init__(self):
        if self.fixed_frequency not in (1, 2, 4, 12):
            raise ValueError(f"fixed_frequency must be 1, 2, 4 or 12, got {self.fixed_frequency}")
        if self.spot_days < 0:
            raise ValueError(f"spot_days must be non-negative, got {self.spot_days}")

    def adjust(self, d: date) -> date:
        """Apply the convention's business day adjustment."""
        return adjust_business_day(d, self.business_day, self.holidays)

    def spot_date(self, trade_date: date) -> date:
        """Effective date of a swap traded on ``trade_date``."""
        return add_business_days(trade_date, self.spot_days, self.holidays)

    @classmethod
    def usd_sofr(cls) -> "SwapConvention":
        """USD fixed vs SOFR OIS, annual ACT/360."""
        return cls(name="USD-FIXED-1Y-SOFR-OIS", currency="USD")

    @classmethod
    def eur_euribor_6m(cls) -> "SwapConvention":
        """EUR fixed annual 30/360 vs Euribor 6M."""
        return cls(
            name="EUR-FIXED-1Y-EURIBOR-6M",
            currency="EUR",
            fixed_frequency=1,
            fixed_day_count=DayCount.THIRTY_360,
        )


__all__ = [
    "DayCount",
    "BusinessDayConvention",
    "SwapConvention",
    "year_fraction",
    "is_business_day",
    "adjust_business_day",
    "add_business_days",
]
