"""
Dashboard resolution: locate a quality-gate dashboard and translate its tiles
into SLI results, a generated sli.yaml and a generated slo.yaml.

Dashboards follow the naming convention::

    KQG;project=sockshop;stage=staging;service=carts;pass=95%;warning=80%

Chart, markdown and query-language tiles are evaluated in order; synthetic
test tiles are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import structlog

from dtsli.clients.dynatrace import DynatraceClient
from dtsli.context import EvaluationContext, SLIFilter
from dtsli.core.errors import DashboardFetchError, DtsliError
from dtsli.dashboards.charts import build_series_query
from dtsli.dashboards.models import Dashboard, SeriesSpec, Tile, TileKind
from dtsli.metrics.models import find_result
from dtsli.metrics.query import build_metrics_query, format_mv2_query, format_usql_query
from dtsli.metrics.scaling import UNIT_BYTE, UNIT_MICROSECOND, average, scale_value
from dtsli.slos.models import (
    SLIConfig,
    SLIResult,
    SLODefinition,
    SLODescriptor,
    ServiceLevelObjectives,
)
from dtsli.slos.parser import (
    clean_indicator_name,
    has_markdown_configuration,
    parse_markdown_configuration,
    parse_slo_descriptor,
)
from dtsli.timeframe import TimeWindow

logger = structlog.get_logger()

DASHBOARD_NAME_PREFIX = "kqg;"
DEFAULT_TOTAL_PASS = ["90%"]
DEFAULT_TOTAL_WARNING = ["75%"]

# USQL visualization -> (dimension column, value column); None means "no dimension"
USQL_COLUMNS: dict[str, tuple[int | None, int]] = {
    "SINGLE_VALUE": (None, 0),
    "PIE_CHART": (0, 1),
    "COLUMN_CHART": (0, 1),
    "TABLE": (0, -1),
}


@dataclass
class DashboardEvaluation:
    """Everything derived from one dashboard."""

    dashboard: Dashboard
    link: str
    sli_config: SLIConfig = field(default_factory=SLIConfig)
    slo: ServiceLevelObjectives = field(default_factory=ServiceLevelObjectives)
    results: list[SLIResult] = field(default_factory=list)

    def record(
        self,
        name: str,
        value: float,
        query: str,
        descriptor: SLODescriptor,
    ) -> None:
        self.results.append(SLIResult.ok(name, value))
        self.sli_config.indicators[name] = query
        self.slo.objectives.append(
            SLODefinition(
                sli=name,
                weight=descriptor.weight,
                key_sli=descriptor.key_sli,
                pass_criteria=descriptor.pass_criteria,
                warning_criteria=descriptor.warning_criteria,
            )
        )

    def record_failure(self, name: str, message: str, query: str) -> None:
        """Failed result plus its query, without an objective."""
        self.results.append(SLIResult.failed(name, message))
        self.sli_config.indicators[name] = query


def matches_dashboard_name(name: str, context: EvaluationContext) -> bool:
    """Check a dashboard name against the ``KQG;project=..;stage=..;service=..`` convention."""
    lowered = (name or "").lower()
    if not lowered.startswith(DASHBOARD_NAME_PREFIX):
        return False

    fields: dict[str, str] = {}
    for segment in lowered.split(";"):
        key, sep, value = segment.partition("=")
        if sep:
            fields[key.strip()] = value.strip()

    return (
        fields.get("project") == context.project.lower()
        and fields.get("stage") == context.stage.lower()
        and fields.get("service") == context.service.lower()
    )


def dashboard_link(base_url: str, dashboard: Dashboard, window: TimeWindow) -> str:
    """Deep link to the dashboard for the evaluated window and management zone."""
    zone = dashboard.management_zone_id or "all"
    return (
        f"{base_url.rstrip('/')}#dashboard;id={dashboard.id};"
        f"gtf=c_{window.from_ms}_{window.to_ms};gf={zone}"
    )


def _indicator_name(base_name: str, dimensions: Sequence[str], multiple: bool) -> str:
    name = base_name
    if multiple:
        for dimension in dimensions:
            name = f"{name}_{dimension}"
    return clean_indicator_name(name)


class DashboardResolver:
    """Finds a dashboard for the evaluated service and queries its tiles."""

    def __init__(self, client: DynatraceClient) -> None:
        self._client = client

    async def find_dashboard(self, context: EvaluationContext) -> str | None:
        """
        Return the id of the first dashboard named after ``context``.

        Raises:
            DashboardFetchError: If the dashboard list cannot be retrieved
        """
        for entry in await self._client.list_dashboards():
            if matches_dashboard_name(entry.get("name", ""), context):
                logger.info("dashboard_found", dashboard_id=entry.get("id"), name=entry.get("name"))
                return entry.get("id")
        logger.info("dashboard_not_found", project=context.project, stage=context.stage, service=context.service)
        return None

    async def fetch_dashboard(
        self,
        context: EvaluationContext,
        dashboard_id: str | None = None,
    ) -> Dashboard | None:
        """
        Fetch an explicit dashboard, or search for one when no id is given.

        Raises:
            DashboardFetchError: If the dashboard cannot be fetched or decoded
        """
        if not dashboard_id:
            dashboard_id = await self.find_dashboard(context)
            if dashboard_id is None:
                return None
        data = await self._client.get_dashboard(dashboard_id)
        try:
            return Dashboard.from_dict(data)
        except (AttributeError, TypeError, ValueError) as exc:
            raise DashboardFetchError(
                f"could not decode dashboard {dashboard_id}: {exc}",
                {"dashboard_id": dashboard_id},
            ) from exc

    async def query_dashboard_for_slis(
        self,
        context: EvaluationContext,
        window: TimeWindow,
        *,
        dashboard_id: str | None = None,
        filters: Sequence[SLIFilter] = (),
    ) -> DashboardEvaluation | None:
        """
        Evaluate every tile of the dashboard.

        Returns:
            DashboardEvaluation, or None when no dashboard applies

        Raises:
            DashboardFetchError: If listing or fetching the dashboard fails
        """
        dashboard = await self.fetch_dashboard(context, dashboard_id)
        if dashboard is None:
            return None

        evaluation = DashboardEvaluation(
            dashboard=dashboard,
            link=dashboard_link(self._client.base_url, dashboard, window),
        )

        totals = parse_slo_descriptor(dashboard.name, DEFAULT_TOTAL_PASS, DEFAULT_TOTAL_WARNING)
        if totals.pass_criteria:
            evaluation.slo.total_score.passing = totals.pass_criteria[0].criteria[0]
        if totals.warning_criteria:
            evaluation.slo.total_score.warning = totals.warning_criteria[0].criteria[0]

        for tile in dashboard.tiles:
            await self._evaluate_tile(tile, dashboard, evaluation, context, window, filters)

        logger.info(
            "dashboard_evaluated",
            dashboard_id=dashboard.id,
            indicators=len(evaluation.results),
            objectives=len(evaluation.slo.objectives),
        )
        return evaluation

    async def _evaluate_tile(
        self,
        tile: Tile,
        dashboard: Dashboard,
        evaluation: DashboardEvaluation,
        context: EvaluationContext,
        window: TimeWindow,
        filters: Sequence[SLIFilter],
    ) -> None:
        if tile.kind is TileKind.SYNTHETIC_TEST:
            return

        if tile.kind is TileKind.MARKDOWN:
            if has_markdown_configuration(tile.markdown):
                parse_markdown_configuration(tile.markdown, evaluation.slo)
            return

        descriptor = parse_slo_descriptor(tile.title)
        if not descriptor.sli:
            return

        if tile.kind is TileKind.CUSTOM_CHARTING:
            zone = tile.management_zone_id or dashboard.management_zone_id
            for series in tile.series:
                await self._evaluate_series(series, zone, descriptor, evaluation, context, window, filters)
        elif tile.kind is TileKind.DTAQL:
            await self._evaluate_usql_tile(tile, descriptor, evaluation, window)
        else:
            logger.info("tile_type_not_supported", tile_type=tile.tile_type, sli=descriptor.sli)

    async def _evaluate_series(
        self,
        series: SeriesSpec,
        management_zone_id: str,
        descriptor: SLODescriptor,
        evaluation: DashboardEvaluation,
        context: EvaluationContext,
        window: TimeWindow,
        filters: Sequence[SLIFilter],
    ) -> None:
        base_name = descriptor.sli
        try:
            definition = await self._client.describe_metric(series.metric)
        except DtsliError as exc:
            logger.warning("metric_describe_failed", metric=series.metric, error=exc.message)
            evaluation.record_failure(base_name, exc.message, f"metricSelector={series.metric}")
            return

        chart_query = build_series_query(series, definition, management_zone_id)
        query = chart_query.to_query()
        unit = definition.unit if definition.unit in (UNIT_MICROSECOND, UNIT_BYTE) else ""

        def stored(q: str) -> str:
            return format_mv2_query(unit, q) if unit else q

        try:
            metrics_query = build_metrics_query(
                query, window, context, self._client.base_url, filters=filters
            )
            results = await self._client.execute_metrics_query(metrics_query.url)
        except DtsliError as exc:
            logger.warning("dashboard_series_query_failed", sli=base_name, error=exc.message)
            evaluation.record_failure(base_name, exc.message, stored(query))
            return

        result = find_result(results, metrics_query.metric_id)
        if result is None:
            message = f"Dynatrace Metrics API result does not contain identifier {metrics_query.metric_id}"
            evaluation.record_failure(base_name, message, stored(query))
            return

        multiple = len(result.data) > 1
        for point in result.data:
            name = _indicator_name(base_name, point.dimension_names(), multiple)
            point_query = stored(chart_query.query_for(point))
            if not point.values:
                logger.warning("dashboard_series_no_values", sli=name)
                evaluation.record_failure(
                    name, f"Dynatrace Metrics API returned no DataPoints for {name}", point_query
                )
                continue
            value = scale_value(metrics_query.metric_id, definition.unit, average(point.values))
            evaluation.record(name, value, point_query, descriptor)

    async def _evaluate_usql_tile(
        self,
        tile: Tile,
        descriptor: SLODescriptor,
        evaluation: DashboardEvaluation,
        window: TimeWindow,
    ) -> None:
        base_name = descriptor.sli
        columns = USQL_COLUMNS.get(tile.visualization.upper())
        if columns is None:
            logger.info("usql_visualization_not_supported", visualization=tile.visualization, sli=base_name)
            return

        try:
            table = await self._client.execute_usql_query(tile.query, window)
        except DtsliError as exc:
            logger.warning("usql_query_failed", sli=base_name, error=exc.message)
            evaluation.record_failure(
                base_name, exc.message, format_usql_query(tile.visualization, "", tile.query)
            )
            return

        dimension_column, value_column = columns
        multiple = len(table.values) > 1
        for row in table.values:
            if not row or (dimension_column is not None and len(row) <= dimension_column):
                logger.warning("usql_row_incomplete", sli=base_name, row=list(row))
                evaluation.record_failure(
                    base_name,
                    f"USQL row has no dimension column: {list(row)!r}",
                    format_usql_query(tile.visualization, "", tile.query),
                )
                continue
            dimension = "" if dimension_column is None else str(row[dimension_column])
            name = _indicator_name(base_name, [dimension] if dimension else [], multiple)
            query = format_usql_query(tile.visualization, dimension, tile.query)
            try:
                value = float(row[value_column])
            except (TypeError, ValueError, IndexError):
                logger.warning("usql_row_not_numeric", sli=name, row=list(row))
                evaluation.record_failure(name, f"USQL value is not numeric: {list(row)!r}", query)
                continue
            evaluation.record(name, value, query, descriptor)
