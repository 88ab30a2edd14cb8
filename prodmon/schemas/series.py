"""
Time-series Pydantic schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, Any, List, Literal

Tab = Literal["day", "month", "year"]
TABS = ("day", "month", "year")


class Point(BaseModel):
    """One backend aggregate; ``x`` is the raw bucket label"""
    x: Any
    y: Any = 0


class ChartPoint(BaseModel):
    """One gap-filled bucket ready for plotting"""
    x: str = Field(..., description="Two-digit bucket key")
    y: float = 0
    tick: str = Field(..., description="Axis tick text")
    tooltip: str
    label: str = Field("", description="Value label; empty for zero")


class ChartSeries(BaseModel):
    """Dense chart data for one tab"""
    tab: Tab
    period: str
    x_label: str = Field(..., alias="xLabel")
    y_label: str = Field(..., alias="yLabel")
    tick_interval: int = Field(0, alias="tickInterval")
    show_value_labels: bool = Field(True, alias="showValueLabels")
    total: float = 0
    points: List[ChartPoint] = []

    class Config:
        populate_by_name = True


class SeriesResponse(BaseModel):
    """Series panel state"""
    device_id: Optional[str] = Field(None, alias="deviceId")
    loading: bool = False
    error: Optional[str] = None
    chart: ChartSeries

    class Config:
        populate_by_name = True
