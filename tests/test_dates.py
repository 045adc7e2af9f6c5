"""
Unit tests for dates module.
"""

from datetime import date
import pytest

from ratesvol.conventions import BusinessDayConvention, DayCount
from ratesvol.dates import DateUtils, ScheduleInfo, add_months, generate_schedule


class TestDateUtils:
    """Tests for DateUtils class."""

    def test_parse_tenor_months(self):
        """Test parsing month tenors."""
        assert DateUtils.parse_tenor("3M") == (3, 'M')
        assert DateUtils.parse_tenor("6M") == (6, 'M')
        assert DateUtils.parse_tenor("12M") == (12, 'M')

    def test_parse_tenor_years(self):
        """Test parsing year tenors."""
        assert DateUtils.parse_tenor("1Y") == (1, 'Y')
        assert DateUtils.parse_tenor("10Y") == (10, 'Y')
        assert DateUtils.parse_tenor("30Y") == (30, 'Y')

    def test_parse_tenor_lowercase(self):
        assert DateUtils.parse_tenor("3m") == (3, 'M')
        assert DateUtils.parse_tenor("5y") == (5, 'Y')

    def test_parse_tenor_invalid(self):
        """Test invalid tenor raises error."""
        with pytest.raises(ValueError):
            DateUtils.parse_tenor("invalid")
        with pytest.raises(ValueError):
            DateUtils.parse_tenor("3X")

    def test_add_tenor_months(self):
        base = date(2024, 1, 15)
        assert DateUtils.add_tenor(base, "3M") == date(2024, 4, 15)
        assert DateUtils.add_tenor(base, "6M") == date(2024, 7, 15)

    def test_add_tenor_years(self):
        base = date(2024, 1, 15)
        assert DateUtils.add_tenor(base, "1Y") == date(2025, 1, 15)
        assert DateUtils.add_tenor(base, "5Y") == date(2029, 1, 15)

    def test_add_tenor_weeks(self):
        assert DateUtils.add_tenor(date(2024, 1, 15), "2W") == date(2024, 1, 29)

    def test_add_tenor_business_days(self):
        # Friday plus one business day is Monday
        assert DateUtils.add_tenor(date(2024, 1, 19), "1D") == date(2024, 1, 22)

    def test_add_tenor_end_of_month(self):
        """February has no 31st; the day is clipped to the 29th in 2024."""
        assert DateUtils.add_tenor(date(2024, 1, 31), "1M") == date(2024, 2, 29)

    def test_tenor_to_years(self):
        assert abs(DateUtils.tenor_to_years("1Y") - 1.0) < 1e-10
        assert abs(DateUtils.tenor_to_years("6M") - 0.5) < 1e-10
        # 1W = 7/365 days (not 1/52 exactly)
        assert abs(DateUtils.tenor_to_years("1W") - 7 / 365) < 1e-10

    def test_tenor_to_months(self):
        assert DateUtils.tenor_to_months("18M") == 18
        assert DateUtils.tenor_to_months("2Y") == 24
        with pytest.raises(ValueError):
            DateUtils.tenor_to_months("10D")

    def test_add_months_backwards(self):
        assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
        assert add_months(date(2024, 1, 15), -12) == date(2023, 1, 15)


class TestScheduleGeneration:
    """Tests for fixed-leg schedule generation."""

    def test_annual_schedule(self):
        schedule = generate_schedule(date(2024, 1, 17), date(2027, 1, 17), 1, DayCount.ACT_360)

        assert isinstance(schedule, ScheduleInfo)
        # Should have 3 payments (2025, 2026, 2027)
        assert len(schedule.payment_dates) == 3
        assert schedule.accrual_starts[0] == date(2024, 1, 17)
        assert schedule.accrual_starts[1:] == schedule.accrual_ends[:-1]

    def test_quarterly_schedule(self):
        schedule = generate_schedule(date(2024, 1, 15), date(2025, 1, 15), 4, DayCount.ACT_360)
        assert len(schedule.payment_dates) == 4
        assert sum(schedule.year_fractions) == pytest.approx(366 / 360)

    def test_payment_dates_adjusted(self):
        # 15 June 2025 is a Sunday
        schedule = generate_schedule(
            date(2024, 6, 17), date(2025, 6, 15), 1, DayCount.ACT_360,
            BusinessDayConvention.MODIFIED_FOLLOWING
        )
        assert schedule.payment_dates[-1] == date(2025, 6, 16)

    def test_short_front_stub(self):
        schedule = generate_schedule(date(2024, 3, 1), date(2025, 1, 15), 2, DayCount.THIRTY_360)
        assert len(schedule.payment_dates) == 2
        assert schedule.year_fractions[0] < 0.5

    def test_invalid_inputs(self):
        with pytest.raises(ValueError):
            generate_schedule(date(2024, 1, 15), date(2025, 1, 15), 5, DayCount.ACT_360)
        with pytest.raises(ValueError):
            generate_schedule(date(2025, 1, 15), date(2024, 1, 15), 1, DayCount.ACT_360)
