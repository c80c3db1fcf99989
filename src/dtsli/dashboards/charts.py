"""
Translation of custom chart series into Metrics API queries.

Every metric dimension the chart neither splits by nor filters on is merged
away. Merges are emitted from the highest dimension index down because each
``merge(n)`` shifts the indices of the dimensions after it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from dtsli.dashboards.models import SeriesSpec
from dtsli.metrics.models import MetricDataPoint, MetricDefinition

RATIO_AGGREGATIONS = ("OF_INTEREST_RATIO", "OTHER_RATIO")
DEFAULT_AGGREGATION = "avg"
DEFAULT_PERCENTILE = 50


def resolve_aggregation(series: SeriesSpec, definition: MetricDefinition) -> str:
    """Series aggregation, falling back to the metric default."""
    aggregation = (series.aggregation or "").upper()
    if not aggregation or aggregation == "NONE":
        aggregation = (definition.default_aggregation or "").upper()

    if aggregation == "PERCENTILE":
        percentile = series.percentile if series.percentile is not None else DEFAULT_PERCENTILE
        return f"percentile({percentile})"
    # not expressible in the metrics query language
    if aggregation in RATIO_AGGREGATIONS:
        return DEFAULT_AGGREGATION
    return aggregation.lower() or DEFAULT_AGGREGATION


def _filter_clause(key: str, value: str) -> str:
    return f":filter(eq({key},{value}))"


@dataclass(frozen=True)
class ChartSeriesQuery:
    """Query for one chart series, plus what is needed to rebuild per-dimension queries."""

    metric: str
    aggregation: str
    entity_selector: str
    filters: str = ""
    merges: str = ""
    split_keys: tuple[str, ...] = field(default_factory=tuple)

    @property
    def metric_selector(self) -> str:
        return f"{self.metric}{self.filters}{self.merges}:{self.aggregation}:names"

    def to_query(self, selector: str | None = None) -> str:
        params = f"metricSelector={selector or self.metric_selector}"
        if self.entity_selector:
            params = f"{params}&entitySelector={self.entity_selector}"
        return params

    def query_for(self, point: MetricDataPoint) -> str:
        """
        Query that reproduces the value of a single data point.

        Split dimensions are pinned to the point's dimension ids; without split
        dimensions this is the series query itself.
        """
        pins = "".join(
            _filter_clause(key, point.dimension_map[key])
            for key in self.split_keys
            if point.dimension_map.get(key)
        )
        if not pins:
            return self.to_query()
        return self.to_query(f"{self.metric}{self.filters}{pins}{self.merges}:{self.aggregation}:names")


def build_series_query(
    series: SeriesSpec,
    definition: MetricDefinition,
    management_zone_id: str = "",
) -> ChartSeriesQuery:
    """Translate a chart series into a ChartSeriesQuery."""
    filters = ""
    merges = ""
    split_keys: list[str] = []

    for index in range(definition.dimension_count - 1, -1, -1):
        key = definition.dimension_definitions[index].key
        chart_dimension = series.dimension(index)
        if chart_dimension is None:
            merges += f":merge({index})"
        elif chart_dimension.is_filtered:
            filters += _filter_clause(key, chart_dimension.values[0])
        else:
            split_keys.append(key)

    entity_type = series.entity_type or next(iter(definition.entity_types), "")
    entity_selector = f"type({entity_type})" if entity_type else ""
    if entity_selector and management_zone_id:
        entity_selector = f"{entity_selector},mzId({management_zone_id})"

    return ChartSeriesQuery(
        metric=series.metric,
        aggregation=resolve_aggregation(series, definition),
        entity_selector=entity_selector,
        filters=filters,
        merges=merges,
        split_keys=tuple(split_keys),
    )
