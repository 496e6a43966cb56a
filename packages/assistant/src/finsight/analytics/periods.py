"""Date windows used by the analytics engine."""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta

LOOKBACK_DAYS: dict[str, int] = {
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365,
}
DEFAULT_LOOKBACK_DAYS = 30

ANALYSIS_PERIOD_MONTHS: dict[str, int] = {
    "3_months": 3,
    "6_months": 6,
    "1_year": 12,
}


@dataclass(frozen=True)
class DateWindow:
    """An inclusive calendar-day range."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def start_iso(self) -> str:
        return self.start.isoformat()

    @property
    def end_iso(self) -> str:
        return self.end.isoformat()


def lookback_window(today: date, period: str) -> DateWindow:
    """Window ending today for a named period; unknown names use 30 days."""
    days = LOOKBACK_DAYS.get(period, DEFAULT_LOOKBACK_DAYS)
    return trailing_days(today, days)


def trailing_days(today: date, days: int) -> DateWindow:
    return DateWindow(start=today - timedelta(days=days), end=today)


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the month length."""
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def month_window(day: date) -> DateWindow:
    """First to last day of the month containing ``day``."""
    last_day = calendar.monthrange(day.year, day.month)[1]
    return DateWindow(start=day.replace(day=1), end=day.replace(day=last_day))


def parse_month(value: str) -> date:
    """Parse a ``YYYY-MM`` string into the first day of that month.

    Raises:
        ValueError: If the string is not a valid year-month.
    """
    try:
        year_str, month_str = value.strip().split("-")
        return date(int(year_str), int(month_str), 1)
    except ValueError as e:
        raise ValueError(f"Invalid month {value!r}, expected YYYY-MM") from e


def trailing_month_starts(today: date, months: int) -> list[date]:
    """First day of each of the last ``months`` months, oldest first.

    The current month is included as the newest entry.
    """
    current = today.replace(day=1)
    return [add_months(current, -offset) for offset in range(months - 1, -1, -1)]


def trailing_months_window(today: date, months: int) -> DateWindow:
    """Window spanning the first of the oldest trailing month through today."""
    starts = trailing_month_starts(today, max(months, 1))
    return DateWindow(start=starts[0], end=month_window(today).end)


def future_month_keys(today: date, count: int) -> list[str]:
    current = today.replace(day=1)
    return [month_key(add_months(current, i)) for i in range(1, count + 1)]
