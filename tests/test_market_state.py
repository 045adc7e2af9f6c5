"""
Tests for swap resolution and rates providers.
"""

from datetime import date

import numpy as np
import pytest

from ratesvol.conventions import DayCount, SwapConvention
from ratesvol.market_state import (
    CurveRatesProvider,
    DiscountCurve,
    FlatRatesProvider,
    ResolvedSwap,
)


@pytest.fixture
def valuation_date():
    return date(2024, 1, 15)


@pytest.fixture
def curve(valuation_date):
    return DiscountCurve.from_zero_rates(
        valuation_date, ["1Y", "2Y", "5Y", "10Y"], [0.04, 0.038, 0.036, 0.037]
    )


class TestResolvedSwap:
    """Tests for swap resolution from a convention."""

    def test_spot_start_and_maturity(self):
        swap = ResolvedSwap.from_convention(SwapConvention.usd_sofr(), date(2025, 1, 15), "5Y")
        assert swap.effective_date == date(2025, 1, 17)
        assert swap.maturity_date == date(2030, 1, 17)
        assert len(swap.fixed_schedule.payment_dates) == 5
        assert swap.currency == "USD"

    def test_maturity_adjusted(self):
        # 17 January 2026 falls on a Saturday
        swap = ResolvedSwap.from_convention(SwapConvention.usd_sofr(), date(2025, 1, 15), "1Y")
        assert swap.maturity_date == date(2026, 1, 19)


class TestDiscountCurve:
    """Tests for log-linear discount curve."""

    def test_pillars_repriced(self, curve):
        assert curve.discount_factor(2.0) == pytest.approx(np.exp(-0.038 * 2.0), rel=1e-12)
        assert curve.discount_factor(0.0) == 1.0

    def test_date_lookup(self, curve, valuation_date):
        assert curve.discount_factor(date(2025, 1, 14)) == pytest.approx(np.exp(-0.04 * 365 / 365))

    def test_flat_forward_extrapolation(self, curve):
        df10 = curve.discount_factor(10.0)
        df5 = curve.discount_factor(5.0)
        slope = np.log(df10 / df5) / 5.0
        assert curve.discount_factor(12.0) == pytest.approx(df10 * np.exp(slope * 2.0), rel=1e-12)

    def test_invalid_pillars(self, valuation_date):
        with pytest.raises(ValueError):
            DiscountCurve(valuation_date, [1.0, 0.5], [0.99, 0.98])
        with pytest.raises(ValueError):
            DiscountCurve(valuation_date, [1.0], [-0.5])


class TestRatesProviders:
    """Tests for forward swap rates and annuities."""

    def test_par_rate_definition(self, curve):
        provider = CurveRatesProvider(curve)
        swap = ResolvedSwap.from_convention(SwapConvention.usd_sofr(), date(2025, 1, 15), "5Y")
        annuity = provider.annuity(swap)
        forward = provider.forward_rate(swap)

        schedule = swap.fixed_schedule
        fixed_leg = forward * sum(
            yf * curve.discount_factor(d) for yf, d in zip(schedule.year_fractions, schedule.payment_dates)
        )
        floating_leg = curve.discount_factor(swap.effective_date) - curve.discount_factor(swap.maturity_date)
        assert fixed_leg == pytest.approx(floating_leg, rel=1e-12)
        assert 0.03 < forward < 0.045
        assert 4.0 < annuity < 5.2

    def test_flat_provider(self, valuation_date):
        provider = FlatRatesProvider(valuation_date, forward=0.03, discount_rate=0.02)
        swap = ResolvedSwap.from_convention(SwapConvention.usd_sofr(), date(2025, 1, 15), "2Y")
        assert provider.forward_rate(swap) == 0.03
        assert provider.valuation_date == valuation_date
        assert provider.discount_factor(date(2025, 1, 15)) == pytest.approx(np.exp(-0.02 * 366 / 365))

    def test_zero_discount_annuity(self, valuation_date):
        provider = FlatRatesProvider(valuation_date, forward=0.03)
        swap = ResolvedSwap.from_convention(
            SwapConvention.usd_sofr(), date(2025, 1, 15), "2Y"
        )
        assert provider.annuity(swap) == pytest.approx(sum(swap.fixed_schedule.year_fractions))
        assert swap.fixed_schedule.day_count == DayCount.ACT_360
