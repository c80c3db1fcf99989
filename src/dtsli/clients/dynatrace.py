"""
Dynatrace REST API client.

Covers the endpoints the SLI engine needs: metric queries and metric
descriptions (v2), dashboard listing and retrieval (config v1), and user
session table queries (v1 USQL).
"""

from __future__ import annotations

from typing import Any

import structlog

from dtsli.clients.base import BaseHTTPClient, decode_json, status_error
from dtsli.core.errors import (
    DashboardFetchError,
    DtsliError,
    NoDataError,
    UnexpectedResultShapeError,
)
from dtsli.metrics.models import MetricDefinition, MetricSeriesResult, USQLResult, parse_metric_results
from dtsli.timeframe import TimeWindow

logger = structlog.get_logger()

DEFAULT_USER_AGENT = "dtsli/0.1.0"

DASHBOARDS_PATH = "/api/config/v1/dashboards"
METRICS_PATH = "/api/v2/metrics"
USQL_TABLE_PATH = "/api/v1/userSessionQueryLanguage/table"


class DynatraceClient(BaseHTTPClient):
    """Dynatrace API client authenticated with an API token."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
        )
        self._auth_headers = dict(headers or {})
        self._user_agent = user_agent

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["User-Agent"] = self._user_agent
        headers.update(self._auth_headers)
        return headers

    async def execute_metrics_query(self, url: str) -> list[MetricSeriesResult]:
        """
        Run a finalized Metrics API query URL.

        Raises:
            BackendStatusError: On a non-success status
            NoDataError: If the result envelope is empty
        """
        response = await self._request("GET", url)
        if not response.is_success:
            raise status_error(response)

        results = parse_metric_results(decode_json(response))
        if not results:
            raise NoDataError("Dynatrace Metrics API returned no DataPoints")
        logger.debug("metrics_query_executed", result_count=len(results))
        return results

    async def describe_metric(self, metric_id: str) -> MetricDefinition:
        """
        Fetch dimension, aggregation and unit metadata for a metric.

        Raises:
            UnexpectedResultShapeError: If the definition cannot be decoded
        """
        data = await self.get_json(f"{METRICS_PATH}/{metric_id}")
        try:
            return MetricDefinition.from_dict(data)
        except (AttributeError, TypeError, ValueError) as exc:
            raise UnexpectedResultShapeError(
                f"could not decode definition of metric {metric_id}: {exc}",
                {"metric_id": metric_id},
            ) from exc

    async def list_dashboards(self) -> list[dict[str, Any]]:
        """Return ``[{id, name, owner}, ...]`` for every dashboard."""
        try:
            data = await self.get_json(DASHBOARDS_PATH)
        except DtsliError as exc:
            raise DashboardFetchError(f"could not list dashboards: {exc.message}") from exc
        entries = data.get("dashboards") or []
        if not isinstance(entries, list):
            raise DashboardFetchError("could not list dashboards: unexpected response shape")
        return [entry for entry in entries if isinstance(entry, dict)]

    async def get_dashboard(self, dashboard_id: str) -> dict[str, Any]:
        """Return the full dashboard JSON."""
        try:
            return await self.get_json(f"{DASHBOARDS_PATH}/{dashboard_id}")
        except DtsliError as exc:
            raise DashboardFetchError(
                f"could not fetch dashboard {dashboard_id}: {exc.message}",
                {"dashboard_id": dashboard_id},
            ) from exc

    async def execute_usql_query(self, query: str, window: TimeWindow) -> USQLResult:
        """Run a user session query over the evaluation window."""
        params = {
            "query": query,
            "explain": "false",
            "addDeepLinkFields": "false",
            "startTimestamp": window.from_ms,
            "endTimestamp": window.to_ms,
        }
        data = await self.get_json(USQL_TABLE_PATH, params=params)
        result = USQLResult.from_dict(data)
        if not result.values:
            raise NoDataError("Dynatrace USQL query returned no rows")
        return result
