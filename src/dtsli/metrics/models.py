"""
Decoded Dynatrace Metrics API v2 payloads.

Two result envelopes are understood:

Current::

    {"result": [{"metricId": "...", "data": [{"dimensions": [], "dimensionMap": {},
                 "timestamps": [1579097520000], "values": [65005.4]}]}]}

Legacy (early v2 ``/metrics/series``)::

    {"metrics": {"<metricId>": {"series": [{"dimensions": [],
                 "values": [{"timestamp": 1579097520000, "value": 65005.4}]}]}}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from dtsli.core.errors import UnexpectedResultShapeError

# Characters the API substitutes when it echoes metric selectors back
ESCAPE_MARKERS = ("~",)
SELECTOR_SEPARATOR = ":"
# Key suffix of the display-name entries added by the ``:names`` transformation
NAME_SUFFIX = ".name"


@dataclass(frozen=True)
class MetricDataPoint:
    """One series of a result: its dimension values and numeric values."""

    dimensions: tuple[str, ...] = ()
    dimension_map: dict[str, str] = field(default_factory=dict)
    timestamps: tuple[int, ...] = ()
    values: tuple[float, ...] = ()

    def dimension_names(self) -> list[str]:
        """
        Human readable dimension values in response order.

        An entity id is replaced by its ``<key>.name`` entry when ``:names``
        supplied one; every other dimension contributes its raw value.
        """
        if not self.dimension_map:
            return [d for d in self.dimensions if d]
        names = []
        for key, value in self.dimension_map.items():
            if not value or f"{key}{NAME_SUFFIX}" in self.dimension_map:
                continue
            names.append(str(value))
        return names


@dataclass(frozen=True)
class MetricSeriesResult:
    """All series returned for one metric id."""

    metric_id: str
    data: tuple[MetricDataPoint, ...] = ()


@dataclass(frozen=True)
class DimensionDefinition:
    key: str
    name: str = ""
    type: str = ""


@dataclass(frozen=True)
class MetricDefinition:
    """Output of ``/api/v2/metrics/<metricId>``."""

    metric_id: str
    display_name: str = ""
    unit: str = ""
    default_aggregation: str = ""
    aggregation_types: tuple[str, ...] = ()
    dimension_definitions: tuple[DimensionDefinition, ...] = ()
    entity_types: tuple[str, ...] = ()

    @property
    def dimension_count(self) -> int:
        return len(self.dimension_definitions)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MetricDefinition:
        dimensions = tuple(
            DimensionDefinition(
                key=d.get("key") or d.get("name", ""),
                name=d.get("name", ""),
                type=d.get("type", ""),
            )
            for d in data.get("dimensionDefinitions") or []
        )
        default_aggregation = (data.get("defaultAggregation") or {}).get("type", "")
        return cls(
            metric_id=data.get("metricId", ""),
            display_name=data.get("displayName", ""),
            unit=data.get("unit", ""),
            default_aggregation=default_aggregation,
            aggregation_types=tuple(data.get("aggregationTypes") or ()),
            dimension_definitions=dimensions,
            entity_types=tuple(data.get("entityType") or ()),
        )


def _float_values(raw: list[Any]) -> tuple[float, ...]:
    # The API reports gaps as null
    return tuple(float(v) for v in raw if v is not None)


def parse_metric_results(payload: dict[str, Any]) -> list[MetricSeriesResult]:
    """
    Decode either result envelope into MetricSeriesResult objects.

    Raises:
        UnexpectedResultShapeError: If the envelope is valid JSON of the wrong shape
    """
    try:
        return _parse_envelope(payload)
    except (AttributeError, TypeError, ValueError) as exc:
        raise UnexpectedResultShapeError(
            f"Dynatrace Metrics API returned a malformed result: {exc}"
        ) from exc


def _parse_envelope(payload: dict[str, Any]) -> list[MetricSeriesResult]:
    results: list[MetricSeriesResult] = []

    if "result" in payload or "metrics" not in payload:
        for entry in payload.get("result") or []:
            points = tuple(
                MetricDataPoint(
                    dimensions=tuple(str(d) for d in point.get("dimensions") or []),
                    dimension_map=dict(point.get("dimensionMap") or {}),
                    timestamps=tuple(point.get("timestamps") or []),
                    values=_float_values(point.get("values") or []),
                )
                for point in entry.get("data") or []
            )
            results.append(MetricSeriesResult(metric_id=entry.get("metricId", ""), data=points))
        return results

    for metric_id, body in (payload.get("metrics") or {}).items():
        points = []
        for series in (body or {}).get("series") or []:
            samples = [s for s in series.get("values") or [] if isinstance(s, dict)]
            points.append(
                MetricDataPoint(
                    dimensions=tuple(str(d) for d in series.get("dimensions") or []),
                    timestamps=tuple(s.get("timestamp", 0) for s in samples),
                    values=_float_values([s.get("value") for s in samples]),
                )
            )
        results.append(MetricSeriesResult(metric_id=metric_id, data=tuple(points)))
    return results


def metric_id_matches(returned: str, requested: str) -> bool:
    """
    Check whether a returned metric id answers the requested selector.

    Exact match first. If the API escaped the id (contains ``~``) only the part
    before the first ``:`` is compared. That fallback is best-effort: distinct
    selectors sharing that prefix will also match.
    """
    if returned == requested:
        return True
    if any(marker in returned for marker in ESCAPE_MARKERS):
        return (
            returned.split(SELECTOR_SEPARATOR, 1)[0]
            == requested.split(SELECTOR_SEPARATOR, 1)[0]
        )
    return False


def find_result(results: list[MetricSeriesResult], metric_id: str) -> MetricSeriesResult | None:
    """Return the first result whose id matches ``metric_id``."""
    for result in results:
        if metric_id_matches(result.metric_id, metric_id):
            return result
    return None


@dataclass(frozen=True)
class USQLResult:
    """Output of ``/api/v1/userSessionQueryLanguage/table``."""

    column_names: tuple[str, ...] = ()
    values: tuple[tuple[Any, ...], ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> USQLResult:
        try:
            return cls(
                column_names=tuple(str(c) for c in data.get("columnNames") or ()),
                values=tuple(tuple(row) for row in data.get("values") or []),
            )
        except (AttributeError, TypeError) as exc:
            raise UnexpectedResultShapeError(
                f"Dynatrace USQL API returned a malformed table: {exc}"
            ) from exc
