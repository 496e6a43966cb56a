"""Tests for numeric helpers and date windows."""

from datetime import date

import pytest

from finsight.analytics.periods import (
    add_months,
    future_month_keys,
    lookback_window,
    month_window,
    parse_month,
    trailing_month_starts,
    trailing_months_window,
)
from finsight.analytics.stats import (
    clamp,
    coefficient_of_variation,
    mean,
    percent_change,
    population_stddev,
    safe_divide,
)


class TestStats:
    """Zero-denominator policy and basic statistics."""

    def test_safe_divide_by_zero_is_zero(self):
        assert safe_divide(10, 0) == 0.0
        assert safe_divide(10, 4) == 2.5

    def test_empty_inputs_yield_zero(self):
        assert mean([]) == 0.0
        assert population_stddev([]) == 0.0
        assert coefficient_of_variation([]) == 0.0

    def test_population_stddev(self):
        assert population_stddev([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)

    def test_single_sample_has_no_spread(self):
        assert population_stddev([42.0]) == 0.0
        assert coefficient_of_variation([42.0]) == 0.0

    def test_coefficient_of_variation_zero_mean(self):
        assert coefficient_of_variation([0, 0, 0]) == 0.0

    def test_percent_change_first_to_last(self):
        assert percent_change([100, 500, 150]) == pytest.approx(50.0)
        assert percent_change([200, 100]) == pytest.approx(-50.0)

    def test_percent_change_degenerate(self):
        assert percent_change([]) == 0.0
        assert percent_change([100]) == 0.0
        assert percent_change([0, 100]) == 0.0

    def test_clamp(self):
        assert clamp(-5) == 0.0
        assert clamp(150) == 100.0
        assert clamp(42.5) == 42.5


class TestPeriods:
    """Lookback windows and month arithmetic."""

    def test_lookback_window_is_inclusive_days(self):
        window = lookback_window(date(2024, 6, 15), "week")

        assert window.start == date(2024, 6, 8)
        assert window.end == date(2024, 6, 15)
        assert window.contains(date(2024, 6, 8))
        assert window.contains(date(2024, 6, 15))
        assert not window.contains(date(2024, 6, 7))

    def test_unknown_period_defaults_to_thirty_days(self):
        window = lookback_window(date(2024, 6, 15), "fortnight")

        assert window.start == date(2024, 5, 16)

    def test_add_months_clamps_day(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2024, 3, 15), -3) == date(2023, 12, 15)

    def test_month_window(self):
        window = month_window(date(2024, 2, 10))

        assert window.start == date(2024, 2, 1)
        assert window.end == date(2024, 2, 29)

    def test_parse_month(self):
        assert parse_month("2024-05") == date(2024, 5, 1)

    @pytest.mark.parametrize("value", ["2024", "2024-13", "May 2024", ""])
    def test_parse_month_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            parse_month(value)

    def test_trailing_month_starts_oldest_first(self):
        starts = trailing_month_starts(date(2024, 2, 20), 3)

        assert starts == [date(2023, 12, 1), date(2024, 1, 1), date(2024, 2, 1)]

    def test_trailing_months_window_covers_current_month(self):
        window = trailing_months_window(date(2024, 6, 15), 3)

        assert window.start == date(2024, 4, 1)
        assert window.end == date(2024, 6, 30)

    def test_future_month_keys(self):
        assert future_month_keys(date(2024, 11, 5), 3) == ["2024-12", "2025-01", "2025-02"]
