"""Tests for Metrics API query building and dialect normalization."""

from datetime import datetime, timezone
from urllib.parse import parse_qsl, urlsplit

import pytest
from dtsli.context import EvaluationContext, SLIFilter
from dtsli.metrics.query import (
    build_metrics_query,
    format_mv2_query,
    format_usql_query,
    normalize_query_dialect,
    parse_sli_query,
)
from dtsli.metrics.resolver import DEFAULT_QUERIES
from dtsli.timeframe import TimeWindow

BASE_URL = "https://abc12345.live.dynatrace.com"

WINDOW = TimeWindow(
    start=datetime(2024, 3, 1, 11, 50, tzinfo=timezone.utc),
    end=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
)

CONTEXT = EvaluationContext(
    project="sockshop", stage="staging", service="carts", deployment="primary"
)


def decoded_params(url: str) -> dict[str, str]:
    return dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))


class TestDialectNormalization:
    """Tests for normalize_query_dialect."""

    def test_current_form_unchanged(self):
        query = "metricSelector=builtin:host.cpu.usage:avg&entitySelector=type(HOST)"
        assert normalize_query_dialect(query) == (query, "")

    def test_leading_question_mark_stripped(self):
        params, selector = normalize_query_dialect("?metricSelector=builtin:host.cpu.usage:avg")
        assert params == "metricSelector=builtin:host.cpu.usage:avg"
        assert selector == ""

    def test_legacy_selector_split(self):
        params, selector = normalize_query_dialect("builtin:host.cpu.usage:avg?scope=tag(a)")
        assert params == "metricSelector=builtin:host.cpu.usage:avg&scope=tag(a)"
        assert selector == "builtin:host.cpu.usage:avg"


class TestBuildMetricsQuery:
    """Tests for build_metrics_query."""

    def test_fixed_parameters(self):
        query = build_metrics_query(
            "metricSelector=builtin:host.cpu.usage:merge(0):avg", WINDOW, CONTEXT, BASE_URL
        )
        params = decoded_params(query.url)
        assert query.url.startswith(f"{BASE_URL}/api/v2/metrics/query?")
        assert params["resolution"] == "Inf"
        assert params["from"] == "1709293800000"
        assert params["to"] == "1709294400000"
        assert query.metric_id == "builtin:host.cpu.usage:merge(0):avg"

    def test_dialects_produce_equal_parameter_sets(self):
        old = build_metrics_query(
            "builtin:service.response.time:merge(0):avg?scope=tag(keptn_project:$PROJECT),type(SERVICE)",
            WINDOW,
            CONTEXT,
            BASE_URL,
        )
        new = build_metrics_query(
            "metricSelector=builtin:service.response.time:merge(0):avg"
            "&entitySelector=tag(keptn_project:$PROJECT),type(SERVICE)",
            WINDOW,
            CONTEXT,
            BASE_URL,
        )
        assert decoded_params(old.url) == decoded_params(new.url)
        assert old.metric_id == new.metric_id

    def test_scope_gets_service_type_clause(self):
        query = build_metrics_query(
            "builtin:service.errors.total.rate:merge(0):avg?scope=tag(keptn_service:$SERVICE)",
            WINDOW,
            CONTEXT,
            BASE_URL,
        )
        params = decoded_params(query.url)
        assert "scope" not in params
        assert params["entitySelector"] == "tag(keptn_service:carts),type(SERVICE)"

    def test_default_throughput_query(self):
        query = build_metrics_query(DEFAULT_QUERIES["throughput"], WINDOW, CONTEXT, BASE_URL)
        params = decoded_params(query.url)
        assert params["metricSelector"] == "builtin:service.requestCount.total:merge(0):count"
        assert params["entitySelector"] == (
            "tag(keptn_project:sockshop),tag(keptn_stage:staging),"
            "tag(keptn_service:carts),tag(keptn_deployment:primary),type(SERVICE)"
        )
        assert query.metric_id == "builtin:service.requestCount.total:merge(0):count"

    def test_custom_filters_applied_before_placeholders(self):
        query = build_metrics_query(
            "metricSelector=calc:service.$metric:avg&entitySelector=type(SERVICE)",
            WINDOW,
            CONTEXT,
            BASE_URL,
            filters=[SLIFilter(key="metric", value="'rt'")],
        )
        assert query.metric_id == "calc:service.rt:avg"

    def test_deterministic(self):
        first = build_metrics_query(DEFAULT_QUERIES["error_rate"], WINDOW, CONTEXT, BASE_URL)
        second = build_metrics_query(DEFAULT_QUERIES["error_rate"], WINDOW, CONTEXT, BASE_URL)
        assert first.url == second.url


class TestSLIQueryPrefixes:
    """Tests for MV2 and USQL query prefixes."""

    def test_plain_query(self):
        parsed = parse_sli_query("metricSelector=x")
        assert parsed.query == "metricSelector=x"
        assert parsed.unit == ""
        assert not parsed.is_usql

    def test_mv2_prefix(self):
        raw = format_mv2_query("MicroSecond", "metricSelector=builtin:service.response.time:avg")
        parsed = parse_sli_query(raw)
        assert parsed.unit == "MicroSecond"
        assert parsed.query == "metricSelector=builtin:service.response.time:avg"

    def test_usql_prefix(self):
        raw = format_usql_query("PIE_CHART", "Chrome", "SELECT browserFamily, AVG(duration) FROM usersession")
        parsed = parse_sli_query(raw)
        assert parsed.is_usql
        assert parsed.usql_visualization == "PIE_CHART"
        assert parsed.usql_dimension == "Chrome"
        assert parsed.query == "SELECT browserFamily, AVG(duration) FROM usersession"

    @pytest.mark.parametrize("raw", ["MV2;", "USQL;TABLE"])
    def test_incomplete_prefix_is_plain(self, raw):
        assert parse_sli_query(raw).query == raw
