"""
Dashboard-driven SLI/SLO generation.

Provides:
- Decoded dashboard and tile models
- Chart series to Metrics API query translation
- DashboardResolver: locate, fetch and evaluate a quality-gate dashboard
"""

from dtsli.dashboards.charts import ChartSeriesQuery, build_series_query, resolve_aggregation
from dtsli.dashboards.models import ChartDimension, Dashboard, SeriesSpec, Tile, TileKind
from dtsli.dashboards.resolver import (
    DashboardEvaluation,
    DashboardResolver,
    dashboard_link,
    matches_dashboard_name,
)

__all__ = [
    "ChartDimension",
    "ChartSeriesQuery",
    "Dashboard",
    "DashboardEvaluation",
    "DashboardResolver",
    "SeriesSpec",
    "Tile",
    "TileKind",
    "build_series_query",
    "dashboard_link",
    "matches_dashboard_name",
    "resolve_aggregation",
]
