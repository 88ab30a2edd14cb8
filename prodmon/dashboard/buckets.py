"""
Chart bucket gap filling

The backend only returns buckets that have counts. Charts need a dense,
ordered key set per tab (hours 00-23, days 01..end of month, months 01-12)
with empty buckets filled with zero.
"""

import math
import re
from typing import Dict, Iterable, List, Optional

from prodmon.dashboard.timeutil import days_in_month, pad2
from prodmon.schemas.series import ChartPoint, ChartSeries, Point

Y_LABEL = "Production (pcs)"
X_LABELS = {
    "day": "Hour (00-23)",
    "month": "Day (1-end of month)",
    "year": "Month (1-12)",
}
# Max non-zero bars before value labels start to overlap
VALUE_LABEL_LIMITS = {"day": 10, "month": 8, "year": 12}

_NON_DIGITS = re.compile(r"\D")


def normalize_key(label) -> str:
    """Two-digit bucket key from a raw label such as ``2024-05-07T13`` or ``7``"""
    digits = _NON_DIGITS.sub("", str(label))
    if len(digits) >= 2:
        return digits[-2:]
    if len(digits) == 1:
        return f"0{digits}"
    return "00"


def coerce_count(value) -> float:
    try:
        n = float(value if value is not None else 0)
    except (TypeError, ValueError):
        return 0
    return n if math.isfinite(n) else 0


def index_points(points: Optional[Iterable[Point]]) -> Dict[str, float]:
    """Map normalized bucket keys to counts; later duplicates win"""
    values: Dict[str, float] = {}
    for point in points or []:
        values[normalize_key(point.x)] = coerce_count(point.y)
    return values


def bucket_keys(tab: str, year_month: str = "") -> List[str]:
    if tab == "day":
        return [pad2(h) for h in range(24)]
    if tab == "month":
        return [pad2(d) for d in range(1, days_in_month(year_month) + 1)]
    return [pad2(m) for m in range(1, 13)]


def build_filled_data(tab: str, year_month: str, values: Dict[str, float]) -> List[Dict]:
    """Dense ``{x, y}`` rows for a tab, zero where the backend had no bucket"""
    return [{"x": key, "y": values.get(key, 0)} for key in bucket_keys(tab, year_month)]


def calc_tick_interval(tab: str, count: int) -> int:
    """Number of ticks to skip between labels (0 shows all)"""
    if tab == "year":
        return 0
    if tab == "month":
        if count >= 28:
            return 2
        if count >= 20:
            return 1
        return 0
    # day: every other hour
    return 1


def tick_label(tab: str, key: str) -> str:
    if tab == "day":
        return key
    # days and months read better without the leading zero
    return str(int(key)) if key.isdigit() else key


def tooltip_label(tab: str, key: str, period: str) -> str:
    if tab == "day":
        return f"{period} {key}h"
    return f"{period}-{key}"


def value_label(y: float) -> str:
    """Bar value label; zero is hidden"""
    n = coerce_count(y)
    if n == 0:
        return ""
    return str(int(n)) if n.is_integer() else str(n)


def build_chart(tab: str, points: Optional[Iterable[Point]], day_date: str, year_month: str,
                year: str) -> ChartSeries:
    """Gap-filled chart for the active tab"""
    period = {"day": day_date, "month": year_month}.get(tab, year)
    rows = build_filled_data(tab, year_month, index_points(points))

    non_zero = sum(1 for row in rows if row["y"] > 0)
    chart_points = [
        ChartPoint(
            x=row["x"],
            y=row["y"],
            tick=tick_label(tab, row["x"]),
            tooltip=tooltip_label(tab, row["x"], period),
            label=value_label(row["y"]),
        )
        for row in rows
    ]

    return ChartSeries(
        tab=tab,
        period=period,
        x_label=X_LABELS[tab],
        y_label=Y_LABEL,
        tick_interval=calc_tick_interval(tab, len(rows)),
        show_value_labels=non_zero <= VALUE_LABEL_LIMITS[tab],
        total=sum(row["y"] for row in rows),
        points=chart_points,
    )
