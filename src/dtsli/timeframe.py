"""
Evaluation time window handling.

Timestamps arrive as RFC3339 strings or Unix seconds and leave as the
millisecond-epoch strings the Dynatrace APIs expect. Before any query runs the
window is validated and, for windows ending close to "now", we wait until the
metrics API has ingested the tail of the window.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

import structlog

from dtsli.core.errors import EvaluationCancelledError, InvalidTimestampError, TimeWindowError

logger = structlog.get_logger()

# End may lie this far ahead of "now" to tolerate clock skew between callers
FUTURE_TOLERANCE_SECONDS = 120.0

DEFAULT_POLL_SECONDS = 10.0


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC3339 timestamp or a base-10 Unix seconds string.

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        InvalidTimestampError: If neither format matches
    """
    text = (value or "").strip()
    if text:
        try:
            return _parse_rfc3339(text)
        except ValueError:
            pass
        try:
            return datetime.fromtimestamp(int(text, 10), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            pass
    raise InvalidTimestampError(f"could not parse timestamp '{value}'", {"timestamp": value})


def _parse_rfc3339(text: str) -> datetime:
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat handles at most microseconds, Go-style nanoseconds are truncated
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        while rest and rest[0].isdigit():
            digits, rest = digits + rest[0], rest[1:]
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}"
    if "T" not in text and "t" not in text:
        raise ValueError("not an RFC3339 timestamp")
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError("RFC3339 timestamps require an offset")
    return parsed.astimezone(timezone.utc)


def to_backend_timestamp(instant: datetime) -> str:
    """Render an instant as milliseconds since epoch (second precision)."""
    return str(int(instant.timestamp()) * 1000)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TimeWindow:
    """Absolute evaluation window, validated on construction via ``from_strings``."""

    start: datetime
    end: datetime

    @classmethod
    def from_strings(
        cls,
        start: str,
        end: str,
        *,
        now: datetime | None = None,
    ) -> TimeWindow:
        """
        Parse and validate a caller-supplied window.

        Raises:
            InvalidTimestampError: If either timestamp cannot be parsed
            TimeWindowError: If end is before start or too far in the future
        """
        try:
            start_at = parse_timestamp(start)
        except InvalidTimestampError as exc:
            raise InvalidTimestampError(f"Error parsing start date: {exc.message}") from exc
        try:
            end_at = parse_timestamp(end)
        except InvalidTimestampError as exc:
            raise InvalidTimestampError(f"Error parsing end date: {exc.message}") from exc

        window = cls(start=start_at, end=end_at)
        window.validate(now=now)
        return window

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    def validate(self, *, now: datetime | None = None) -> None:
        current = now or utcnow()
        ahead = (self.end - current).total_seconds()
        if ahead > FUTURE_TOLERANCE_SECONDS:
            raise TimeWindowError(
                "error validating time range: Supplied end-time "
                f"{self.end.isoformat()} is too far (>{int(FUTURE_TOLERANCE_SECONDS)}seconds) "
                f"in the future (now: {current.isoformat()} - diff in sec: {ahead:.0f})",
                {"reason": "future"},
            )
        if self.duration_seconds < 0:
            raise TimeWindowError(
                "error validating time range: start time needs to be before end time",
                {"reason": "start_after_end"},
            )

    def required_lag_seconds(self) -> float:
        """How far in the past the window end must be before querying."""
        if self.duration_seconds >= 300:
            return 0.0
        if self.duration_seconds >= 120:
            return 60.0
        return 120.0

    @property
    def from_ms(self) -> str:
        return to_backend_timestamp(self.start)

    @property
    def to_ms(self) -> str:
        return to_backend_timestamp(self.end)


async def wait_for_data(
    window: TimeWindow,
    *,
    poll_seconds: float = DEFAULT_POLL_SECONDS,
    cancel: asyncio.Event | None = None,
    now: Callable[[], datetime] = utcnow,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> None:
    """
    Block until the window end is far enough in the past for ingestion lag.

    Raises:
        EvaluationCancelledError: If ``cancel`` is set while waiting
    """
    required = window.required_lag_seconds()
    if (now() - window.end).total_seconds() >= required:
        return

    logger.debug("waiting_for_metrics_ingestion", required_lag_seconds=required)
    while (now() - window.end).total_seconds() < required:
        if cancel is not None and cancel.is_set():
            raise EvaluationCancelledError("evaluation cancelled while waiting for data")
        remaining = required - (now() - window.end).total_seconds()
        logger.debug("sleeping_for_metrics_api", seconds=int(remaining), poll_seconds=poll_seconds)
        if sleep is not None:
            await sleep(poll_seconds)
        elif cancel is not None:
            try:
                await asyncio.wait_for(cancel.wait(), timeout=poll_seconds)
            except asyncio.TimeoutError:
                pass
        else:
            await asyncio.sleep(poll_seconds)

    if cancel is not None and cancel.is_set():
        raise EvaluationCancelledError("evaluation cancelled while waiting for data")
