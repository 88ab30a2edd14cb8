"""
Production time series for the selected device and tab
"""

import re
from datetime import date
from typing import List, Optional, Tuple

import structlog
from pydantic import ValidationError

from prodmon.clients.queries import SERIES_QUERIES
from prodmon.core.errors import DashboardError, InvalidRequest
from prodmon.dashboard.buckets import build_chart
from prodmon.dashboard.sequence import RequestSequence
from prodmon.dashboard.timeutil import (
    format_date, format_year_month, move_day, move_month, move_year, today,
)
from prodmon.schemas.series import TABS, Point, SeriesResponse

logger = structlog.get_logger(__name__)

SeriesArgs = Tuple[str, str, str]  # (device_id, tab, period)

_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_YEAR_MONTH = re.compile(r"^(?!0000)\d{4}-(0[1-9]|1[0-2])$")
_YEAR = re.compile(r"^(?!0000)\d{4}$")


def _is_date(value: str) -> bool:
    if not _DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _check_view(tab, day_date, year_month, year) -> None:
    if tab is not None and tab not in TABS:
        raise InvalidRequest(f"Unknown tab: {tab}")
    if day_date is not None and not _is_date(day_date):
        raise InvalidRequest(f"Invalid date: {day_date} (expected YYYY-MM-DD)")
    if year_month is not None and not _YEAR_MONTH.match(year_month):
        raise InvalidRequest(f"Invalid month: {year_month} (expected YYYY-MM)")
    if year is not None and not _YEAR.match(year):
        raise InvalidRequest(f"Invalid year: {year} (expected YYYY)")


class SeriesStore:
    """Chart data; refetched once whenever the device, tab or period changes"""

    def __init__(self, client, start: Optional[date] = None):
        start = start or today()
        self.client = client
        self.device_id: Optional[str] = None
        self.tab = "day"
        self.day_date = format_date(start)
        self.year_month = format_year_month(start)
        self.year = str(start.year)
        self.points: List[Point] = []
        self.loading = False
        self.error: Optional[str] = None
        self._sequence = RequestSequence()

    @property
    def period(self) -> str:
        return {"day": self.day_date, "month": self.year_month}.get(self.tab, self.year)

    def active_args(self) -> Optional[SeriesArgs]:
        if not self.device_id:
            return None
        return (self.device_id, self.tab, self.period)

    async def set_view(self, device_id: Optional[str] = None, tab: Optional[str] = None,
                       day_date: Optional[str] = None, year_month: Optional[str] = None,
                       year: Optional[str] = None, clear_device: bool = False) -> bool:
        """
        Update the view and fetch once if the active arguments changed.

        Returns:
            True if a fetch was issued
        """
        _check_view(tab, day_date, year_month, year)
        before = self.active_args()

        if clear_device:
            self.device_id = None
        elif device_id is not None:
            self.device_id = device_id
        self.tab = tab or self.tab
        self.day_date = day_date or self.day_date
        self.year_month = year_month or self.year_month
        self.year = year or self.year

        after = self.active_args()
        if after == before:
            return False
        if after is None:
            self._sequence.invalidate()
            self.points = []
            self.loading = False
            return False

        await self.fetch(after)
        return True

    async def move(self, delta: int) -> bool:
        """Step the active tab's period backwards or forwards"""
        try:
            if self.tab == "day":
                view = {"day_date": move_day(self.day_date, delta)}
            elif self.tab == "month":
                view = {"year_month": move_month(self.year_month, delta)}
            else:
                view = {"year": move_year(self.year, delta)}
        except (OverflowError, ValueError) as e:
            raise InvalidRequest(f"Cannot move {self.period} by {delta}") from e
        return await self.set_view(**view)

    async def refresh(self) -> bool:
        args = self.active_args()
        if not args:
            return False
        await self.fetch(args)
        return True

    async def fetch(self, args: SeriesArgs) -> None:
        device_id, tab, period = args
        query, field, variable = SERIES_QUERIES[tab]
        ticket = self._sequence.next()

        self.error = None
        self.loading = True

        try:
            data = await self.client.execute(query, {"deviceId": device_id, variable: period})
            points = [Point.model_validate(p) for p in data.get(field) or []]
        except (DashboardError, ValidationError) as e:
            if self._sequence.is_current(ticket):
                logger.warning("Series fetch failed", device_id=device_id, tab=tab, period=period, error=str(e))
                self.error = str(e)
                self.points = []
                self.loading = False
            return

        if not self._sequence.is_current(ticket):
            logger.debug("Discarded stale series response", device_id=device_id, tab=tab, period=period)
            return

        self.points = points
        self.loading = False

    def snapshot(self) -> SeriesResponse:
        return SeriesResponse(
            device_id=self.device_id,
            loading=self.loading,
            error=self.error,
            chart=build_chart(self.tab, self.points, self.day_date, self.year_month, self.year),
        )
