from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


class PeriodFilter(str, Enum):
    this_month = "this-month"
    last_month = "last-month"
    last_3_months = "last-3-months"


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def local_today() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def parse_period_filter(value: Optional[str]) -> PeriodFilter:
    if not value:
        return PeriodFilter.this_month
    try:
        return PeriodFilter(value)
    except ValueError as exc:
        allowed = ", ".join(p.value for p in PeriodFilter)
        raise ValueError(f"Unknown period '{value}'; expected one of {allowed}") from exc


def add_months(d: date, count: int) -> date:
    """First day of the month ``count`` months away from ``d``."""
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def month_end(d: date) -> date:
    return add_months(d, 1) - date.resolution


def _months_window(today: date, first_offset: int, last_offset: int) -> tuple[date, date]:
    start = add_months(today, first_offset)
    end = month_end(add_months(today, last_offset))
    return start, end


def resolve_period(selector: PeriodFilter, *, today: Optional[date] = None) -> Period:
    today = today or local_today()
    if selector == PeriodFilter.last_month:
        start, end = _months_window(today, -1, -1)
    elif selector == PeriodFilter.last_3_months:
        start, end = _months_window(today, -2, 0)
    else:
        start, end = _months_window(today, 0, 0)
    return Period(selector.value, start, end)


def previous_period(selector: PeriodFilter, *, today: Optional[date] = None) -> Period:
    """The window of equal length immediately before ``resolve_period``."""
    today = today or local_today()
    if selector == PeriodFilter.last_month:
        start, end = _months_window(today, -2, -2)
    elif selector == PeriodFilter.last_3_months:
        start, end = _months_window(today, -5, -3)
    else:
        start, end = _months_window(today, -1, -1)
    return Period(f"previous-{selector.value}", start, end)
