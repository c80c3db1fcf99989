"""
SLI retrieval orchestration.

One invocation runs sequentially:

1. Load dynatrace.conf.yaml and resolve credentials
2. Parse and validate the time window, then wait for ingestion lag
3. Try the quality-gate dashboard; persist what it generates
4. If the dashboard produced nothing, query each requested indicator
5. Emit exactly one batch

Indicator and series failures become failed results. Configuration, time
window and cancellation failures turn the whole batch into failures that
carry the same message.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Mapping, Sequence

import structlog
import yaml

from dtsli.clients.dynatrace import DynatraceClient
from dtsli.config.credentials import DynatraceCredentials, EnvCredentialProvider
from dtsli.config.loader import (
    DASHBOARD_URI,
    SLI_CONF_URI,
    SLO_URI,
    DynatraceConfigFile,
    load_custom_queries,
    load_dynatrace_config,
)
from dtsli.config.settings import Settings, get_settings
from dtsli.context import EvaluationContext, SLIFilter, apply_custom_filters, substitute_placeholders
from dtsli.core.errors import (
    DtsliError,
    EvaluationCancelledError,
    MetricIdentifierMismatchError,
    NoDataError,
    UnexpectedResultShapeError,
)
from dtsli.dashboards.resolver import USQL_COLUMNS, DashboardEvaluation, DashboardResolver
from dtsli.emitters import ResultEmitter, SLIBatch
from dtsli.logging import bind_context
from dtsli.metrics.models import find_result
from dtsli.metrics.query import SLIQuery, build_metrics_query, parse_sli_query
from dtsli.metrics.resolver import resolve_query
from dtsli.metrics.scaling import average, scale_value
from dtsli.slos.models import SLIResult
from dtsli.storage.base import ResourceStore
from dtsli.timeframe import TimeWindow, utcnow, wait_for_data

logger = structlog.get_logger()

NO_METRIC = "no metric"
LABEL_DT_CREDS = "DtCreds"
LABEL_DASHBOARD_LINK = "Dashboard Link"

ClientFactory = Callable[[DynatraceCredentials], DynatraceClient]


@dataclass(frozen=True)
class GetSLIRequest:
    """A request for indicator values over a time window."""

    context: EvaluationContext
    start: str
    end: str
    indicators: tuple[str, ...] = ()
    filters: tuple[SLIFilter, ...] = field(default_factory=tuple)


def failed_batch(indicators: Sequence[str], message: str) -> list[SLIResult]:
    """One failure per requested indicator, or a single placeholder if none were requested."""
    return [SLIResult.failed(name, message) for name in (indicators or [NO_METRIC])]


class SLIRetriever:
    """Computes SLI values for one request at a time."""

    def __init__(
        self,
        store: ResourceStore,
        emitter: ResultEmitter,
        *,
        settings: Settings | None = None,
        credentials: EnvCredentialProvider | None = None,
        client_factory: ClientFactory | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._store = store
        self._emitter = emitter
        self._settings = settings or get_settings()
        self._credentials = credentials or EnvCredentialProvider(settings=self._settings)
        self._client_factory = client_factory or self._default_client
        self._clock = clock
        self._sleep = sleep

    def _default_client(self, credentials: DynatraceCredentials) -> DynatraceClient:
        return DynatraceClient(
            credentials.base_url,
            credentials.auth_headers(),
            timeout=self._settings.http_timeout,
            max_retries=self._settings.http_max_retries,
            backoff_factor=self._settings.http_retry_backoff_factor,
        )

    async def retrieve(
        self,
        request: GetSLIRequest,
        cancel: asyncio.Event | None = None,
    ) -> SLIBatch:
        """
        Compute and emit the batch for ``request``.

        Always emits exactly one batch. ``asyncio.CancelledError`` is not
        converted and propagates to the caller.
        """
        ctx = request.context
        log = bind_context(
            keptn_context=ctx.keptn_context,
            project=ctx.project,
            stage=ctx.stage,
            service=ctx.service,
        )
        log.info("get_sli_started", indicators=list(request.indicators))

        batch = SLIBatch(context=ctx, start=request.start, end=request.end, labels=dict(ctx.labels))
        try:
            batch.results = await self._collect(request, batch.labels, cancel)
        except DtsliError as exc:
            log.error("get_sli_failed", kind=exc.kind.value, error=exc.message)
            batch.results = failed_batch(request.indicators, exc.message)
        except Exception as exc:
            # exactly one batch is emitted per invocation
            log.exception("get_sli_unexpected_error", error_type=type(exc).__name__)
            batch.results = failed_batch(request.indicators, f"unexpected error: {exc}")

        log.info(
            "get_sli_finished",
            indicators=len(batch.results),
            failed=sum(1 for r in batch.results if not r.success),
        )
        await self._emitter.emit(batch)
        return batch

    async def _collect(
        self,
        request: GetSLIRequest,
        labels: dict[str, str],
        cancel: asyncio.Event | None,
    ) -> list[SLIResult]:
        ctx = request.context

        dt_config = load_dynatrace_config(self._store, ctx)
        labels[LABEL_DT_CREDS] = dt_config.dt_creds
        credentials = self._credentials.resolve(dt_config.dt_creds, ctx.project)
        client = self._client_factory(credentials)

        window = TimeWindow.from_strings(request.start, request.end, now=self._clock())
        await wait_for_data(
            window,
            poll_seconds=self._settings.data_wait_poll_seconds,
            cancel=cancel,
            now=self._clock,
            sleep=self._sleep,
        )

        results: list[SLIResult] = []
        if self._settings.fetch_slo_sli_from_dashboard:
            evaluation = await self._query_dashboard(client, dt_config, ctx, window, request.filters)
            if evaluation is not None:
                labels[LABEL_DASHBOARD_LINK] = evaluation.link
                self._persist(evaluation, ctx)
                results = list(evaluation.results)

        if not results:
            overrides = load_custom_queries(self._store, ctx)
            for indicator in request.indicators:
                if cancel is not None and cancel.is_set():
                    raise EvaluationCancelledError("evaluation cancelled")
                results.append(
                    await self._indicator_result(client, indicator, window, ctx, overrides, request.filters)
                )

        if not results:
            raise NoDataError("could not retrieve any SLI results")
        return results

    async def _query_dashboard(
        self,
        client: DynatraceClient,
        dt_config: DynatraceConfigFile,
        ctx: EvaluationContext,
        window: TimeWindow,
        filters: Sequence[SLIFilter],
    ) -> DashboardEvaluation | None:
        resolver = DashboardResolver(client)
        try:
            return await resolver.query_dashboard_for_slis(
                ctx, window, dashboard_id=dt_config.dashboard_id, filters=filters
            )
        except DtsliError as exc:
            logger.error("dashboard_query_failed", kind=exc.kind.value, error=exc.message)
            return None

    def _persist(self, evaluation: DashboardEvaluation, ctx: EvaluationContext) -> None:
        documents = (
            (DASHBOARD_URI, json.dumps(evaluation.dashboard.raw, indent=2)),
            (SLI_CONF_URI, yaml.safe_dump(evaluation.sli_config.to_dict(), sort_keys=False)),
            (SLO_URI, yaml.safe_dump(evaluation.slo.to_dict(), sort_keys=False)),
        )
        for uri, content in documents:
            try:
                self._store.write(content, uri, ctx)
            except (OSError, DtsliError) as exc:
                logger.warning("resource_write_failed", uri=uri, error=str(exc))

    async def _indicator_result(
        self,
        client: DynatraceClient,
        indicator: str,
        window: TimeWindow,
        ctx: EvaluationContext,
        overrides: Mapping[str, str],
        filters: Sequence[SLIFilter],
    ) -> SLIResult:
        logger.info("fetching_indicator", indicator=indicator)
        try:
            value = await get_sli_value(client, indicator, window, ctx, overrides, filters)
        except DtsliError as exc:
            logger.warning("indicator_failed", indicator=indicator, kind=exc.kind.value, error=exc.message)
            return SLIResult.failed(indicator, exc.message)
        return SLIResult.ok(indicator, value)


async def get_sli_value(
    client: DynatraceClient,
    indicator: str,
    window: TimeWindow,
    ctx: EvaluationContext,
    overrides: Mapping[str, str] | None = None,
    filters: Sequence[SLIFilter] = (),
) -> float:
    """
    Query a single indicator and reduce it to one scaled value.

    Raises:
        UnsupportedIndicatorError: If no query is known for ``indicator``
        MetricIdentifierMismatchError: If the response lacks the requested metric
        UnexpectedResultShapeError: If the query does not yield exactly one series
        ProviderError: On API failures
    """
    sli_query = parse_sli_query(resolve_query(indicator, overrides))
    if sli_query.is_usql:
        return await _usql_value(client, sli_query, window, ctx, filters)

    metrics_query = build_metrics_query(sli_query.query, window, ctx, client.base_url, filters=filters)
    results = await client.execute_metrics_query(metrics_query.url)

    result = find_result(results, metrics_query.metric_id)
    if result is None:
        raise MetricIdentifierMismatchError(
            f"Dynatrace Metrics API result does not contain identifier {metrics_query.metric_id}",
            {"returned": [r.metric_id for r in results]},
        )
    if len(result.data) != 1:
        raise UnexpectedResultShapeError(
            f"Dynatrace Metrics API returned {len(result.data)} result values, expected 1. "
            "Please ensure the response contains exactly one value "
            "(e.g., by using :merge(0):avg for the metric)",
            {"metric_id": metrics_query.metric_id},
        )

    return scale_value(metrics_query.metric_id, sli_query.unit, average(result.data[0].values))


async def _usql_value(
    client: DynatraceClient,
    sli_query: SLIQuery,
    window: TimeWindow,
    ctx: EvaluationContext,
    filters: Sequence[SLIFilter],
) -> float:
    columns = USQL_COLUMNS.get(sli_query.usql_visualization.upper())
    if columns is None:
        raise UnexpectedResultShapeError(
            f"unsupported USQL visualization type {sli_query.usql_visualization}"
        )

    query = substitute_placeholders(
        apply_custom_filters(sli_query.query, filters), ctx, escape=False
    )
    table = await client.execute_usql_query(query, window)

    dimension_column, value_column = columns
    for row in table.values:
        if dimension_column is not None and (
            len(row) <= dimension_column or str(row[dimension_column]) != sli_query.usql_dimension
        ):
            continue
        try:
            return float(row[value_column])
        except (TypeError, ValueError, IndexError) as exc:
            raise UnexpectedResultShapeError(f"USQL value is not numeric: {row!r}") from exc

    raise NoDataError(
        f"Dynatrace USQL result does not contain a row for dimension {sli_query.usql_dimension}"
    )
