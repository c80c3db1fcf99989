"""
Metrics resolution for SLI retrieval.

Provides:
- Indicator name to query template resolution (custom overrides + defaults)
- Query dialect normalization and Metrics API URL building
- Result decoding, metric id matching, aggregation and unit scaling
"""

from dtsli.metrics.models import (
    MetricDataPoint,
    MetricDefinition,
    MetricSeriesResult,
    USQLResult,
    find_result,
    metric_id_matches,
    parse_metric_results,
)
from dtsli.metrics.query import (
    MetricsQuery,
    SLIQuery,
    build_metrics_query,
    format_mv2_query,
    format_usql_query,
    parse_sli_query,
)
from dtsli.metrics.resolver import DEFAULT_QUERIES, resolve_query
from dtsli.metrics.scaling import average, scale_value

__all__ = [
    "DEFAULT_QUERIES",
    "MetricDataPoint",
    "MetricDefinition",
    "MetricSeriesResult",
    "MetricsQuery",
    "SLIQuery",
    "USQLResult",
    "average",
    "build_metrics_query",
    "find_result",
    "format_mv2_query",
    "format_usql_query",
    "metric_id_matches",
    "parse_metric_results",
    "parse_sli_query",
    "resolve_query",
    "scale_value",
]
