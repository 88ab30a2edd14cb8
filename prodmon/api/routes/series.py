"""
Production series endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
import structlog

from prodmon.api.dependencies import get_dashboard
from prodmon.dashboard.session import DashboardSession
from prodmon.schemas.series import SeriesResponse

logger = structlog.get_logger(__name__)
router = APIRouter()

@router.get("/series", response_model=SeriesResponse)
async def get_series(
    tab: Optional[str] = Query(None, description="day, month or year"),
    date: Optional[str] = Query(None, description="YYYY-MM-DD for the day tab"),
    year_month: Optional[str] = Query(None, description="YYYY-MM for the month tab"),
    year: Optional[str] = Query(None, description="YYYY for the year tab"),
    dashboard: DashboardSession = Depends(get_dashboard)
):
    """Gap-filled chart; changing the view fetches once"""
    await dashboard.set_view(tab=tab, day_date=date, year_month=year_month, year=year)
    return dashboard.series.snapshot()

@router.post("/series/refresh", response_model=SeriesResponse)
async def refresh_series(dashboard: DashboardSession = Depends(get_dashboard)):
    """Re-fetch the current view"""
    await dashboard.series.refresh()
    return dashboard.series.snapshot()

@router.post("/view/move", response_model=SeriesResponse)
async def move_view(
    delta: int = Query(..., description="Periods to move, negative for the past"),
    dashboard: DashboardSession = Depends(get_dashboard)
):
    """Previous/next day, month or year on the active tab"""
    await dashboard.series.move(delta)
    return dashboard.series.snapshot()
