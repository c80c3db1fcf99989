"""Value aggregation and unit scaling for metric results."""

from __future__ import annotations

from typing import Iterable

from dtsli.core.errors import NoDataError

RESPONSE_TIME_METRIC = "builtin:service.response.time"

UNIT_MICROSECOND = "MicroSecond"
UNIT_BYTE = "Byte"


def scale_value(metric_id: str, unit: str, value: float) -> float:
    """
    Scale a raw value to the unit keptn users expect.

    Microseconds become milliseconds, bytes become kilobytes.

    Example:
        >>> scale_value("builtin:service.response.time:merge(0):percentile(50)", "", 8433.40)
        8.4334
    """
    if unit == UNIT_MICROSECOND or RESPONSE_TIME_METRIC in metric_id:
        return value / 1000.0
    if unit == UNIT_BYTE:
        return value / 1024.0
    return value


def average(values: Iterable[float]) -> float:
    """Arithmetic mean; an empty series is NoData, never zero."""
    items = list(values)
    if not items:
        raise NoDataError("Dynatrace Metrics API returned no values for this series")
    return sum(items) / len(items)
