"""Pay calendar: period boundaries and pay dates for a salary cycle.

``pay_day`` means a day of the month (1-31) for monthly and semi-monthly
cycles, and a weekday (0 = Sunday ... 6 = Saturday) for weekly and
bi-weekly cycles. Days past the end of a month clamp to its last day.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta

from paystub_engine.calculators.types import SalaryCycle
from paystub_engine.errors import InvalidInputError

# Bi-weekly periods are 14-day blocks counted from this Monday
BIWEEKLY_ANCHOR = date(2024, 1, 1)

WEEKLY_CYCLES = {SalaryCycle.WEEKLY, SalaryCycle.BI_WEEKLY}


def _last_day(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _day_in_month(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, _last_day(year, month)))


def _add_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def _weekday(d: date) -> int:
    """Weekday with Sunday as 0."""
    return d.isoweekday() % 7


def validate_pay_day(cycle: SalaryCycle, pay_day: int) -> None:
    if cycle in WEEKLY_CYCLES:
        if not 0 <= pay_day <= 6:
            raise InvalidInputError(
                f"Pay day for a {cycle.value} cycle must be a weekday 0-6, got {pay_day}"
            )
    elif not 1 <= pay_day <= 31:
        raise InvalidInputError(
            f"Pay day for a {cycle.value} cycle must be a day of month 1-31, got {pay_day}"
        )


def period_bounds(day: date, cycle: SalaryCycle) -> tuple[date, date]:
    """Start and end of the pay period containing ``day``."""
    if cycle == SalaryCycle.MONTHLY:
        return day.replace(day=1), day.replace(day=_last_day(day.year, day.month))

    if cycle == SalaryCycle.SEMI_MONTHLY:
        if day.day <= 15:
            return day.replace(day=1), day.replace(day=15)
        return day.replace(day=16), day.replace(day=_last_day(day.year, day.month))

    if cycle == SalaryCycle.WEEKLY:
        start = day - timedelta(days=day.weekday())
        return start, start + timedelta(days=6)

    offset = (day - BIWEEKLY_ANCHOR).days % 14
    start = day - timedelta(days=offset)
    return start, start + timedelta(days=13)


def pay_date_for(period_end: date, cycle: SalaryCycle, pay_day: int | None) -> date:
    """First pay day on or after the period end."""
    if pay_day is None:
        return period_end
    validate_pay_day(cycle, pay_day)

    if cycle in WEEKLY_CYCLES:
        return period_end + timedelta(days=(pay_day - _weekday(period_end)) % 7)

    candidate = _day_in_month(period_end.year, period_end.month, pay_day)
    if candidate < period_end:
        year, month = _add_month(period_end.year, period_end.month)
        candidate = _day_in_month(year, month, pay_day)
    return candidate


def next_pay_date(today: date, cycle: SalaryCycle, pay_day: int) -> date:
    """Next pay day strictly after ``today``."""
    validate_pay_day(cycle, pay_day)

    if cycle == SalaryCycle.WEEKLY:
        return today + timedelta(days=(pay_day - _weekday(today)) % 7 or 7)

    if cycle == SalaryCycle.BI_WEEKLY:
        candidate = today + timedelta(days=(pay_day - _weekday(today)) % 7 or 7)
        if ((candidate - BIWEEKLY_ANCHOR).days // 7) % 2:
            candidate += timedelta(days=7)
        return candidate

    # Monthly and semi-monthly both pay once on ``pay_day`` of the month
    candidate = _day_in_month(today.year, today.month, pay_day)
    if candidate <= today:
        year, month = _add_month(today.year, today.month)
        candidate = _day_in_month(year, month, pay_day)
    return candidate
