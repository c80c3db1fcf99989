"""
Indicator-to-query resolution.

Custom queries from ``dynatrace/sli.yaml`` always win; otherwise a small
built-in table covers the standard keptn quality-gate indicators. Built-in
queries use the legacy ``selector?scope=`` dialect and are normalized by the
query builder like any customer query.
"""

from __future__ import annotations

from typing import Mapping

from dtsli.core.errors import UnsupportedIndicatorError

THROUGHPUT = "throughput"
ERROR_RATE = "error_rate"
RESPONSE_TIME_P50 = "response_time_p50"
RESPONSE_TIME_P90 = "response_time_p90"
RESPONSE_TIME_P95 = "response_time_p95"

DEPLOYMENT_SCOPE = (
    "tag(keptn_project:$PROJECT),tag(keptn_stage:$STAGE),"
    "tag(keptn_service:$SERVICE),tag(keptn_deployment:$DEPLOYMENT)"
)

DEFAULT_QUERIES: dict[str, str] = {
    THROUGHPUT: f"builtin:service.requestCount.total:merge(0):count?scope={DEPLOYMENT_SCOPE}",
    ERROR_RATE: f"builtin:service.errors.total.rate:merge(0):avg?scope={DEPLOYMENT_SCOPE}",
    RESPONSE_TIME_P50: (
        f"builtin:service.response.time:merge(0):percentile(50)?scope={DEPLOYMENT_SCOPE}"
    ),
    RESPONSE_TIME_P90: (
        f"builtin:service.response.time:merge(0):percentile(90)?scope={DEPLOYMENT_SCOPE}"
    ),
    RESPONSE_TIME_P95: (
        f"builtin:service.response.time:merge(0):percentile(95)?scope={DEPLOYMENT_SCOPE}"
    ),
}


def resolve_query(indicator: str, overrides: Mapping[str, str] | None = None) -> str:
    """
    Return the query template for ``indicator``.

    Raises:
        UnsupportedIndicatorError: If neither an override nor a default exists
    """
    if overrides and indicator in overrides:
        return overrides[indicator]
    try:
        return DEFAULT_QUERIES[indicator]
    except KeyError:
        raise UnsupportedIndicatorError(indicator) from None
