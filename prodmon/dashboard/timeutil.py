"""
Time helpers shared by the dashboard views
"""

import calendar
import math
import time
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from prodmon.core.config import settings

# Anything below this is an epoch in seconds (1e12 ms is September 2001)
EPOCH_MS_THRESHOLD = 1_000_000_000_000


def pad2(n: int) -> str:
    return str(n).zfill(2)


def now_ms() -> int:
    return int(time.time() * 1000)


def display_tz() -> tzinfo:
    return ZoneInfo(settings.display_timezone)


def normalize_epoch_ms(ts) -> Optional[int]:
    """Normalize an epoch in seconds or milliseconds to milliseconds"""
    if ts is None or isinstance(ts, bool):
        return None
    try:
        value = float(ts)
    except (TypeError, ValueError):
        return None
    if not value or not math.isfinite(value):
        return None
    if value < EPOCH_MS_THRESHOLD:
        value *= 1000
    return int(value)


def format_datetime(ms: int, tz: Optional[tzinfo] = None) -> str:
    """``YYYY-MM-DD HH:MM:SS`` in the display timezone"""
    dt = datetime.fromtimestamp(ms / 1000, tz or display_tz())
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def format_left(ms: float) -> str:
    """Countdown text ``m:ss``; never negative"""
    seconds = max(0, math.ceil(ms / 1000))
    return f"{seconds // 60}:{pad2(seconds % 60)}"


def today(tz: Optional[tzinfo] = None) -> date:
    return datetime.now(tz or display_tz()).date()


def format_date(d: date) -> str:
    return f"{d.year}-{pad2(d.month)}-{pad2(d.day)}"


def format_year_month(d: date) -> str:
    return f"{d.year}-{pad2(d.month)}"


def move_day(day: str, delta: int) -> str:
    """Shift a ``YYYY-MM-DD`` date by ``delta`` days"""
    d = date.fromisoformat(day)
    return format_date(d + timedelta(days=delta))


def move_month(year_month: str, delta: int) -> str:
    """Shift a ``YYYY-MM`` month by ``delta`` months"""
    year, month = (int(part) for part in year_month.split("-")[:2])
    index = year * 12 + (month - 1) + delta
    return f"{index // 12}-{pad2(index % 12 + 1)}"


def move_year(year: str, delta: int) -> str:
    return str(int(year) + delta)


def days_in_month(year_month: str) -> int:
    """Days in a ``YYYY-MM`` month; 31 when the value cannot be parsed"""
    parts = str(year_month).split("-")
    try:
        year, month = int(parts[0]), int(parts[1])
    except (IndexError, ValueError):
        return 31
    if month < 1 or month > 12 or year < 1:
        return 31
    return calendar.monthrange(year, month)[1]
