"""
Calendar anchors used by the date actions.

Quarters are fiscal quarters: three month blocks counted from the fiscal
year start month. Working days are Monday to Friday minus the configured
holidays.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Collection, Tuple


def _add_months(year: int, month: int, months: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def fiscal_year_start(day: date, start_month: int = 1) -> date:
    year = day.year if day.month >= start_month else day.year - 1
    return date(year, start_month, 1)


def month_bounds(day: date) -> Tuple[date, date]:
    return date(day.year, day.month, 1), _month_end(day.year, day.month)


def quarter_bounds(day: date, start_month: int = 1) -> Tuple[date, date]:
    fy_start = fiscal_year_start(day, start_month)
    elapsed = (day.year - fy_start.year) * 12 + (day.month - fy_start.month)
    first_year, first_month = _add_months(fy_start.year, fy_start.month, (elapsed // 3) * 3)
    last_year, last_month = _add_months(first_year, first_month, 2)
    return date(first_year, first_month, 1), _month_end(last_year, last_month)


def fiscal_year_bounds(day: date, start_month: int = 1) -> Tuple[date, date]:
    fy_start = fiscal_year_start(day, start_month)
    last_year, last_month = _add_months(fy_start.year, fy_start.month, 11)
    return fy_start, _month_end(last_year, last_month)


def is_working_day(day: date, holidays: Collection[date] = ()) -> bool:
    return day.weekday() < 5 and day not in holidays


def first_working_day(start: date, end: date, holidays: Collection[date] = ()) -> date:
    day = start
    while day <= end:
        if is_working_day(day, holidays):
            return day
        day += timedelta(days=1)
    raise ValueError(f"No working day between {start} and {end}")


def last_working_day(start: date, end: date, holidays: Collection[date] = ()) -> date:
    day = end
    while day >= start:
        if is_working_day(day, holidays):
            return day
        day -= timedelta(days=1)
    raise ValueError(f"No working day between {start} and {end}")
