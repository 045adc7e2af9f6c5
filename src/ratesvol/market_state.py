"""
Rates provider abstraction.

Calibration needs two things from the rates world: the valuation date
and the forward swap rate of each swaption underlying. Discount factors
are also exposed so swaption pricers can compute annuities.

Provides:
- ResolvedSwap: fixed-leg schedule of a swaption underlying
- RatesProvider: abstract interface
- DiscountCurve / CurveRatesProvider: single-curve log-linear discount factors
- FlatRatesProvider: constant forward rate, for scenarios and tests
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Sequence, Union

import numpy as np

from .conventions import DayCount, SwapConvention, year_fraction
from .dates import DateUtils, ScheduleInfo, generate_schedule


@dataclass(frozen=True)
class ResolvedSwap:
    """
    Fixed-leg view of a swap, sufficient for par rates and annuities.

    Attributes:
        convention: Swap convention used to build the schedule
        effective_date: Accrual start
        maturity_date: Adjusted final payment date
        fixed_schedule: Fixed leg periods
    """
    convention: SwapConvention
    effective_date: date
    maturity_date: date
    fixed_schedule: ScheduleInfo

    @property
    def currency(self) -> str:
        return self.convention.currency

    @classmethod
    def from_convention(
        cls,
        convention: SwapConvention,
        trade_date: date,
        tenor: str
    ) -> "ResolvedSwap":
        """
        Swap traded on ``trade_date`` with the given tenor.

        The effective date is the spot date of the trade date; the maturity
        is the effective date plus the tenor, business-day adjusted.
        """
        effective = convention.spot_date(trade_date)
        maturity = DateUtils.add_tenor(effective, tenor, convention.holidays)
        schedule = generate_schedule(
            effective,
            maturity,
            convention.fixed_frequency,
            convention.fixed_day_count,
            convention.business_day,
            convention.holidays,
        )
        return cls(
            convention=convention,
            effective_date=effective,
            maturity_date=schedule.payment_dates[-1],
            fixed_schedule=schedule,
        )


class RatesProvider(ABC):
    """Source of discount factors and forward swap rates."""

    @property
    @abstractmethod
    def valuation_date(self) -> date:
        pass

    @abstractmethod
    def discount_factor(self, d: date) -> float:
        """Discount factor from the valuation date to ``d``."""
        pass

    def annuity(self, swap: ResolvedSwap) -> float:
        """PV01 of the fixed leg per unit notional."""
        schedule = swap.fixed_schedule
        return float(sum(
            yf * self.discount_factor(pay)
            for yf, pay in zip(schedule.year_fractions, schedule.payment_dates)
        ))

    def forward_rate(self, swap: ResolvedSwap) -> float:
        """Par swap rate, single-curve: (P(start) - P(end)) / annuity."""
        return (
            self.discount_factor(swap.effective_date) - self.discount_factor(swap.maturity_date)
        ) / self.annuity(swap)


class DiscountCurve:
    """
    Discount curve with log-linear interpolation of discount factors.

    Flat-forward extrapolation beyond the last pillar.

    Args:
        anchor_date: Valuation date (time 0)
        times: Pillar year fractions (ACT/365 by default), increasing and positive
        discount_factors: Discount factors at the pillars
        day_count: Day count for converting dates to times
    """

    def __init__(
        self,
        anchor_date: date,
        times: Sequence[float],
        discount_factors: Sequence[float],
        day_count: DayCount = DayCount.ACT_365
    ):
        times = np.asarray(times, dtype=float)
        dfs = np.asarray(discount_factors, dtype=float)
        if times.shape != dfs.shape or len(times) == 0:
            raise ValueError("times and discount_factors must be non-empty and of equal length")
        if np.any(np.diff(times) <= 0) or times[0] <= 0:
            raise ValueError("Pillar times must be positive and strictly increasing")
        if np.any(dfs <= 0):
            raise ValueError("Discount factors must be positive")

        self.anchor_date = anchor_date
        self.day_count = day_count
        self._times = np.concatenate([[0.0], times])
        self._log_dfs = np.concatenate([[0.0], np.log(dfs)])

    @classmethod
    def from_zero_rates(
        cls,
        anchor_date: date,
        tenors: Sequence[str],
        zero_rates: Sequence[float],
        day_count: DayCount = DayCount.ACT_365
    ) -> "DiscountCurve":
        """Build from continuously compounded zero rates at tenor pillars."""
        times = [DateUtils.tenor_to_years(t) for t in tenors]
        dfs = [np.exp(-z * t) for z, t in zip(zero_rates, times)]
        return cls(anchor_date, times, dfs, day_count)

    def discount_factor(self, t: Union[float, date]) -> float:
        """Discount factor at a year fraction or date."""
        if isinstance(t, date):
            t = year_fraction(self.anchor_date, t, self.day_count)
        if t <= 0:
            return 1.0
        if t <= self._times[-1]:
            return float(np.exp(np.interp(t, self._times, self._log_dfs)))
        # Flat forward on the last segment
        slope = (self._log_dfs[-1] - self._log_dfs[-2]) / (self._times[-1] - self._times[-2])
        return float(np.exp(self._log_dfs[-1] + slope * (t - self._times[-1])))


class CurveRatesProvider(RatesProvider):
    """Single-curve rates provider backed by a DiscountCurve."""

    def __init__(self, curve: DiscountCurve):
        self.curve = curve

    @property
    def valuation_date(self) -> date:
        return self.curve.anchor_date

    def discount_factor(self, d: date) -> float:
        return self.curve.discount_factor(d)


class FlatRatesProvider(RatesProvider):
    """
    Constant forward swap rate with flat continuous discounting.

    Args:
        valuation_date: Valuation date
        forward: Forward swap rate returned for every swap
        discount_rate: Continuously compounded discount rate (ACT/365)
    """

    def __init__(self, valuation_date: date, forward: float, discount_rate: float = 0.0):
        self._valuation_date = valuation_date
        self.forward = forward
        self.discount_rate = discount_rate

    @property
    def valuation_date(self) -> date:
        return self._valuation_date

    def discount_factor(self, d: date) -> float:
        t = year_fraction(self._valuation_date, d, DayCount.ACT_365)
        return float(np.exp(-self.discount_rate * t))

    def forward_rate(self, swap: ResolvedSwap) -> float:
        return self.forward


__all__ = [
    "ResolvedSwap",
    "RatesProvider",
    "DiscountCurve",
    "CurveRatesProvider",
    "FlatRatesProvider",
]
