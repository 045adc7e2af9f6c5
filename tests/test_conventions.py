"""
Unit tests for conventions module.
"""

from datetime import date
import pytest

from ratesvol.conventions import (
    DayCount,
    BusinessDayConvention,
    SwapConvention,
    year_fraction,
    adjust_business_day,
    add_business_days,
    is_business_day,
)


class TestDayCount:
    """Tests for day count conventions."""

    def test_act_360(self):
        """Test ACT/360 day count."""
        start = date(2024, 1, 15)
        end = date(2024, 4, 15)  # 91 days

        yf = year_fraction(start, end, DayCount.ACT_360)
        assert abs(yf - 91 / 360) < 1e-10

    def test_act_365(self):
        """Test ACT/365 day count."""
        start = date(2024, 1, 15)
        end = date(2024, 4, 15)

        yf = year_fraction(start, end, DayCount.ACT_365)
        assert abs(yf - 91 / 365) < 1e-10

    def test_act_act_spans_leap_year(self):
        """ACT/ACT splits the period at the year boundary."""
        yf = year_fraction(date(2024, 1, 15), date(2025, 1, 15), DayCount.ACT_ACT)
        assert yf == pytest.approx(352 / 366 + 14 / 365, rel=1e-12)

    def test_thirty_360(self):
        """Test 30/360 day count."""
        yf = year_fraction(date(2024, 1, 15), date(2024, 4, 15), DayCount.THIRTY_360)
        assert abs(yf - 90 / 360) < 1e-10

    def test_thirty_360_month_end(self):
        yf = year_fraction(date(2024, 1, 31), date(2024, 2, 29), DayCount.THIRTY_360)
        assert yf == pytest.approx(29 / 360)

    def test_year_fraction_same_date(self):
        d = date(2024, 1, 15)
        assert year_fraction(d, d, DayCount.ACT_360) == 0.0

    def test_year_fraction_reversed(self):
        yf = year_fraction(date(2024, 4, 15), date(2024, 1, 15), DayCount.ACT_365)
        assert yf == pytest.approx(-91 / 365)

    def test_from_string(self):
        assert DayCount.from_string("ACT/365F") == DayCount.ACT_365
        assert DayCount.from_string("act/360") == DayCount.ACT_360
        assert DayCount.from_string("30/360") == DayCount.THIRTY_360
        with pytest.raises(ValueError):
            DayCount.from_string("BUS/252")


class TestBusinessDays:
    """Tests for business day adjustment."""

    def test_weekend(self):
        assert is_business_day(date(2024, 1, 15))
        assert not is_business_day(date(2024, 6, 15))

    def test_holiday(self):
        holidays = frozenset({date(2024, 1, 15)})
        assert not is_business_day(date(2024, 1, 15), holidays)

    def test_following(self):
        adjusted = adjust_business_day(date(2024, 6, 15), BusinessDayConvention.FOLLOWING)
        assert adjusted == date(2024, 6, 17)

    def test_preceding(self):
        adjusted = adjust_business_day(date(2024, 6, 15), BusinessDayConvention.PRECEDING)
        assert adjusted == date(2024, 6, 14)

    def test_modified_following_stays_in_month(self):
        """Saturday 30 March rolls back to Friday 29 March."""
        adjusted = adjust_business_day(date(2024, 3, 30), BusinessDayConvention.MODIFIED_FOLLOWING)
        assert adjusted == date(2024, 3, 29)

    def test_unadjusted(self):
        d = date(2024, 6, 15)
        assert adjust_business_day(d, BusinessDayConvention.UNADJUSTED) == d

    def test_add_business_days_skips_weekend(self):
        assert add_business_days(date(2024, 1, 19), 2) == date(2024, 1, 23)


class TestSwapConvention:
    """Tests for swap convention presets."""

    def test_usd_sofr_preset(self):
        conv = SwapConvention.usd_sofr()
        assert conv.currency == "USD"
        assert conv.fixed_day_count == DayCount.ACT_360
        assert conv.business_day == BusinessDayConvention.MODIFIED_FOLLOWING
        assert conv.spot_days == 2

    def test_eur_preset(self):
        conv = SwapConvention.eur_euribor_6m()
        assert conv.currency == "EUR"
        assert conv.fixed_day_count == DayCount.THIRTY_360

    def test_spot_date(self):
        conv = SwapConvention.usd_sofr()
        assert conv.spot_date(date(2024, 1, 15)) == date(2024, 1, 17)
        assert conv.spot_date(date(2024, 1, 19)) == date(2024, 1, 23)

    def test_invalid_frequency(self):
        with pytest.raises(ValueError):
            SwapConvention(name="BAD", fixed_frequency=3)
