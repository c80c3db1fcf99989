"""Tests for query resolution, result decoding and value scaling."""

import pytest
from dtsli.core.errors import (
    ErrorKind,
    NoDataError,
    UnexpectedResultShapeError,
    UnsupportedIndicatorError,
)
from dtsli.metrics.models import (
    MetricDataPoint,
    MetricDefinition,
    MetricSeriesResult,
    USQLResult,
    find_result,
    metric_id_matches,
    parse_metric_results,
)
from dtsli.metrics.resolver import DEFAULT_QUERIES, resolve_query
from dtsli.metrics.scaling import average, scale_value


class TestResolveQuery:
    """Tests for resolve_query."""

    @pytest.mark.parametrize(
        "indicator",
        ["throughput", "error_rate", "response_time_p50", "response_time_p90", "response_time_p95"],
    )
    def test_builtin_indicators(self, indicator):
        assert resolve_query(indicator, {}) == DEFAULT_QUERIES[indicator]

    def test_override_wins(self):
        overrides = {"throughput": "metricSelector=custom:metric:count"}
        assert resolve_query("throughput", overrides) == "metricSelector=custom:metric:count"

    def test_override_for_custom_indicator(self):
        assert resolve_query("rt_login", {"rt_login": "q"}) == "q"

    def test_unsupported_indicator(self):
        with pytest.raises(UnsupportedIndicatorError) as exc_info:
            resolve_query("not_a_real_metric", {})
        assert "not_a_real_metric" in exc_info.value.message
        assert exc_info.value.kind is ErrorKind.UNSUPPORTED_INDICATOR

    def test_builtin_aggregations(self):
        assert ":count?" in DEFAULT_QUERIES["throughput"]
        assert ":avg?" in DEFAULT_QUERIES["error_rate"]
        assert ":percentile(95)?" in DEFAULT_QUERIES["response_time_p95"]


class TestScaling:
    """Tests for scale_value and average."""

    def test_response_time_metric_scaled_by_name(self):
        value = scale_value("builtin:service.response.time:merge(0):percentile(50)", "", 8433.40)
        assert value == pytest.approx(8.4334)

    def test_microsecond_unit(self):
        assert scale_value("calc:service.rt", "MicroSecond", 2000.0) == 2.0

    def test_byte_unit(self):
        assert scale_value("builtin:host.mem.used", "Byte", 2048) == 2.0

    def test_identity(self):
        assert scale_value("builtin:host.cpu.usage", "", 42.0) == 42.0

    def test_average(self):
        assert average([1.0, 2.0, 6.0]) == 3.0

    def test_average_of_nothing_is_no_data(self):
        with pytest.raises(NoDataError):
            average([])


class TestParseMetricResults:
    """Tests for decoding both result envelopes."""

    def test_current_envelope(self):
        payload = {
            "totalCount": 1,
            "result": [
                {
                    "metricId": "builtin:service.response.time:merge(0):avg",
                    "data": [
                        {
                            "dimensions": [],
                            "dimensionMap": {},
                            "timestamps": [1579097520000],
                            "values": [65005.48481639812],
                        }
                    ],
                }
            ],
        }
        results = parse_metric_results(payload)
        assert len(results) == 1
        assert results[0].metric_id == "builtin:service.response.time:merge(0):avg"
        assert results[0].data[0].values == (65005.48481639812,)

    def test_null_values_dropped(self):
        payload = {"result": [{"metricId": "m", "data": [{"values": [None, 2.0, None, 4.0]}]}]}
        assert parse_metric_results(payload)[0].data[0].values == (2.0, 4.0)

    def test_legacy_envelope(self):
        payload = {
            "metrics": {
                "builtin:service.requestCount.total:merge(0):count": {
                    "series": [
                        {
                            "dimensions": [],
                            "values": [{"timestamp": 1579097520000, "value": 4291.0}],
                        }
                    ]
                }
            }
        }
        results = parse_metric_results(payload)
        assert results[0].metric_id == "builtin:service.requestCount.total:merge(0):count"
        assert results[0].data[0].values == (4291.0,)
        assert results[0].data[0].timestamps == (1579097520000,)

    def test_empty_result(self):
        assert parse_metric_results({"result": []}) == []

    @pytest.mark.parametrize(
        "payload",
        [
            {"result": [{"metricId": "m", "data": [{"values": ["n/a"]}]}]},
            {"result": [{"metricId": "m", "data": "none"}]},
            {"metrics": {"m": {"series": [{"values": [{"value": "n/a"}]}]}}},
        ],
    )
    def test_malformed_payload(self, payload):
        with pytest.raises(UnexpectedResultShapeError) as exc_info:
            parse_metric_results(payload)
        assert "malformed" in exc_info.value.message


class TestMetricIdMatching:
    """Tests for metric id matching."""

    def test_exact_match(self):
        assert metric_id_matches("builtin:host.cpu.usage:avg", "builtin:host.cpu.usage:avg")

    def test_escaped_id_matches_on_prefix(self):
        assert metric_id_matches("calc:service.rt~:avg", "calc:service.rt:avg")

    def test_unescaped_mismatch(self):
        assert not metric_id_matches("builtin:host.cpu.idle:avg", "builtin:host.cpu.usage:avg")

    def test_find_result(self):
        wanted = MetricSeriesResult(metric_id="b")
        assert find_result([MetricSeriesResult(metric_id="a"), wanted], "b") is wanted
        assert find_result([MetricSeriesResult(metric_id="a")], "b") is None


class TestModels:
    """Tests for metric definition and data point helpers."""

    def test_dimension_names_prefer_names(self):
        point = MetricDataPoint(
            dimensions=("SERVICE-123",),
            dimension_map={"dt.entity.service": "SERVICE-123", "dt.entity.service.name": "carts"},
        )
        assert point.dimension_names() == ["carts"]

    def test_dimension_names_fall_back_to_ids(self):
        assert MetricDataPoint(dimensions=("HOST-1",)).dimension_names() == ["HOST-1"]

    def test_dimension_names_keep_plain_dimensions(self):
        point = MetricDataPoint(
            dimensions=("SERVICE-123", "GET"),
            dimension_map={
                "dt.entity.service": "SERVICE-123",
                "dt.entity.service.name": "carts",
                "http.method": "GET",
            },
        )
        assert point.dimension_names() == ["carts", "GET"]

    def test_metric_definition_from_dict(self):
        definition = MetricDefinition.from_dict(
            {
                "metricId": "builtin:host.disk.avail",
                "unit": "Byte",
                "defaultAggregation": {"type": "avg"},
                "aggregationTypes": ["auto", "avg", "max"],
                "dimensionDefinitions": [
                    {"key": "dt.entity.host", "name": "Host", "type": "ENTITY"},
                    {"key": "dt.entity.disk", "name": "Disk", "type": "ENTITY"},
                ],
                "entityType": ["HOST"],
            }
        )
        assert definition.dimension_count == 2
        assert definition.default_aggregation == "avg"
        assert definition.dimension_definitions[1].key == "dt.entity.disk"
        assert definition.entity_types == ("HOST",)

    def test_usql_result_from_dict(self):
        table = USQLResult.from_dict(
            {"columnNames": ["browserFamily", "avg(duration)"], "values": [["Chrome", 12.5]]}
        )
        assert table.values == (("Chrome", 12.5),)

    def test_usql_result_malformed_rows(self):
        with pytest.raises(UnexpectedResultShapeError):
            USQLResult.from_dict({"columnNames": ["a"], "values": [5]})
