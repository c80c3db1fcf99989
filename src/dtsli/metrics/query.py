"""
Metrics API query building.

Three query dialects are accepted and normalized to the current
``metricSelector=...&entitySelector=...`` parameter form:

1. ``?metricSelector=...`` - malformed leading ``?`` (stripped)
2. ``<selector>?scope=...`` - legacy: selector left of ``?``, parameters right of it
3. ``metricSelector=...&entitySelector=...`` - current

A legacy ``scope`` parameter is translated into ``entitySelector`` with an
explicit ``type(SERVICE)`` clause.

SLI queries stored in sli.yaml may also carry a prefix:

- ``MV2;<unit>;<query>`` - metrics query whose values need unit scaling
- ``USQL;<visualization>;<dimension>;<query>`` - user session query
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence
from urllib.parse import parse_qsl

import httpx
import structlog

from dtsli.context import EvaluationContext, SLIFilter, apply_custom_filters, substitute_placeholders
from dtsli.timeframe import TimeWindow

logger = structlog.get_logger()

METRICS_QUERY_PATH = "/api/v2/metrics/query"
MIGRATION_DOC_URL = (
    "https://github.com/keptn-contrib/dynatrace-sli-service/blob/master/docs/CustomQueryFormatMigration.md"
)

# resolution=Inf returns a single data point for the whole window
RESOLUTION_SINGLE_VALUE = "Inf"
SERVICE_ENTITY_CLAUSE = "type(SERVICE)"

MV2_PREFIX = "MV2;"
USQL_PREFIX = "USQL;"


@dataclass(frozen=True)
class MetricsQuery:
    """A finalized Metrics API request."""

    url: str
    metric_id: str
    params: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class SLIQuery:
    """An sli.yaml query split into its prefix parts."""

    query: str
    unit: str = ""
    usql_visualization: str = ""
    usql_dimension: str = ""

    @property
    def is_usql(self) -> bool:
        return bool(self.usql_visualization)


def parse_sli_query(raw: str) -> SLIQuery:
    """Split an optional MV2/USQL prefix off an sli.yaml query."""
    if raw.startswith(MV2_PREFIX) and raw.count(";") >= 2:
        _, unit, query = raw.split(";", 2)
        return SLIQuery(query=query, unit=unit)
    if raw.startswith(USQL_PREFIX) and raw.count(";") >= 3:
        _, visualization, dimension, query = raw.split(";", 3)
        return SLIQuery(query=query, usql_visualization=visualization, usql_dimension=dimension)
    return SLIQuery(query=raw)


def format_mv2_query(unit: str, query: str) -> str:
    return f"{MV2_PREFIX}{unit};{query}"


def format_usql_query(visualization: str, dimension: str, query: str) -> str:
    return f"{USQL_PREFIX}{visualization};{dimension};{query}"


def normalize_query_dialect(query: str) -> tuple[str, str]:
    """
    Convert any accepted dialect to a current-form parameter string.

    Returns:
        (parameter string, metric selector if it came from the legacy split)
    """
    if query.startswith("?metricSelector="):
        logger.warning(
            "query_compatibility_warning",
            reason="leading '?' removed from query",
            query=query,
            doc=MIGRATION_DOC_URL,
        )
        query = query[1:]

    selector, sep, rest = query.partition("?")
    if not sep:
        return query, ""

    logger.warning(
        "query_compatibility_warning",
        reason="query uses the old 'selector?params' format",
        query=query,
        doc=MIGRATION_DOC_URL,
    )
    params = f"metricSelector={selector}&{rest}" if rest else f"metricSelector={selector}"
    return params, selector


def build_metrics_query(
    template: str,
    window: TimeWindow,
    context: EvaluationContext,
    base_url: str,
    *,
    filters: Sequence[SLIFilter] = (),
) -> MetricsQuery:
    """
    Expand a query template into a fully qualified Metrics API URL.

    Returns:
        MetricsQuery with the request URL and the metric id the response
        is expected to contain
    """
    query = apply_custom_filters(template, filters)
    query = substitute_placeholders(query, context)
    query, metric_selector = normalize_query_dialect(query)

    params: dict[str, str] = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        params.setdefault(key, value)

    params["resolution"] = RESOLUTION_SINGLE_VALUE
    params["from"] = window.from_ms
    params["to"] = window.to_ms

    scope = params.pop("scope", "")
    if scope:
        logger.warning(
            "query_compatibility_warning",
            reason="scope=... is replaced by entitySelector=...",
            scope=scope,
            doc=MIGRATION_DOC_URL,
        )
        if SERVICE_ENTITY_CLAUSE not in scope:
            scope = f"{scope},{SERVICE_ENTITY_CLAUSE}"
        params.setdefault("entitySelector", scope)

    metric_id = params.get("metricSelector", metric_selector)

    ordered = tuple(sorted(params.items()))
    url = str(httpx.URL(f"{base_url.rstrip('/')}{METRICS_QUERY_PATH}", params=ordered))
    logger.debug("metrics_query_built", url=url, metric_id=metric_id)
    return MetricsQuery(url=url, metric_id=metric_id, params=ordered)
