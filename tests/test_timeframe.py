"""Tests for timestamp parsing, time window validation and the freshness wait."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from dtsli.core.errors import EvaluationCancelledError, InvalidTimestampError, TimeWindowError
from dtsli.timeframe import TimeWindow, parse_timestamp, to_backend_timestamp, wait_for_data

NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_rfc3339_utc(self):
        assert parse_timestamp("2024-03-01T12:00:00Z") == NOW

    def test_rfc3339_with_offset(self):
        assert parse_timestamp("2024-03-01T14:00:00+02:00") == NOW

    def test_rfc3339_nanoseconds_truncated(self):
        parsed = parse_timestamp("2024-03-01T12:00:00.123456789Z")
        assert parsed == NOW.replace(microsecond=123456)

    def test_unix_seconds(self):
        assert parse_timestamp(str(int(NOW.timestamp()))) == NOW

    def test_empty_string_fails(self):
        with pytest.raises(InvalidTimestampError):
            parse_timestamp("")

    def test_garbage_fails(self):
        with pytest.raises(InvalidTimestampError):
            parse_timestamp("yesterday")

    def test_round_trip_through_backend_format(self):
        instant = datetime(2023, 7, 14, 8, 30, 15, tzinfo=timezone.utc)
        millis = int(to_backend_timestamp(instant))
        recovered = parse_timestamp(str(millis // 1000))
        assert recovered == instant


class TestBackendTimestamp:
    """Tests for to_backend_timestamp."""

    def test_milliseconds_since_epoch(self):
        assert to_backend_timestamp(NOW) == "1709294400000"

    def test_sub_second_precision_dropped(self):
        assert to_backend_timestamp(NOW.replace(microsecond=999999)) == "1709294400000"


class TestTimeWindow:
    """Tests for TimeWindow construction and validation."""

    def test_valid_window(self):
        window = TimeWindow.from_strings(
            "2024-03-01T11:50:00Z", "2024-03-01T11:55:00Z", now=NOW
        )
        assert window.duration_seconds == 300
        assert window.from_ms == "1709293800000"
        assert window.to_ms == "1709294100000"

    def test_end_before_start(self):
        with pytest.raises(TimeWindowError) as exc_info:
            TimeWindow(start=NOW, end=NOW - timedelta(minutes=1)).validate(now=NOW)
        assert exc_info.value.details["reason"] == "start_after_end"
        assert "start time needs to be before end time" in exc_info.value.message

    def test_end_too_far_in_future(self):
        with pytest.raises(TimeWindowError) as exc_info:
            TimeWindow(start=NOW, end=NOW + timedelta(minutes=10)).validate(now=NOW)
        assert exc_info.value.details["reason"] == "future"

    def test_end_within_future_tolerance(self):
        TimeWindow(start=NOW, end=NOW + timedelta(seconds=119)).validate(now=NOW)

    def test_invalid_start_is_prefixed(self):
        with pytest.raises(InvalidTimestampError) as exc_info:
            TimeWindow.from_strings("nope", "2024-03-01T11:55:00Z", now=NOW)
        assert exc_info.value.message.startswith("Error parsing start date")

    def test_invalid_end_is_prefixed(self):
        with pytest.raises(InvalidTimestampError) as exc_info:
            TimeWindow.from_strings("2024-03-01T11:55:00Z", "", now=NOW)
        assert exc_info.value.message.startswith("Error parsing end date")

    @pytest.mark.parametrize(
        "minutes,expected",
        [(1, 120.0), (2, 60.0), (4, 60.0), (5, 0.0), (60, 0.0)],
    )
    def test_required_lag(self, minutes, expected):
        window = TimeWindow(start=NOW - timedelta(minutes=minutes), end=NOW)
        assert window.required_lag_seconds() == expected


class FakeClock:
    """Clock advanced by the fake sleep."""

    def __init__(self, start: datetime):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)


class TestWaitForData:
    """Tests for the ingestion-lag wait."""

    @pytest.mark.asyncio
    async def test_long_window_does_not_wait(self):
        clock = FakeClock(NOW)
        window = TimeWindow(start=NOW - timedelta(minutes=10), end=NOW)

        await wait_for_data(window, now=clock.now, sleep=clock.sleep)

        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_short_window_waits_in_poll_increments(self):
        clock = FakeClock(NOW)
        window = TimeWindow(start=NOW - timedelta(seconds=60), end=NOW)

        await wait_for_data(window, poll_seconds=10, now=clock.now, sleep=clock.sleep)

        assert clock.sleeps == [10] * 12
        assert (clock.current - window.end).total_seconds() >= 120

    @pytest.mark.asyncio
    async def test_medium_window_waits_sixty_seconds(self):
        clock = FakeClock(NOW)
        window = TimeWindow(start=NOW - timedelta(seconds=180), end=NOW)

        await wait_for_data(window, poll_seconds=10, now=clock.now, sleep=clock.sleep)

        assert sum(clock.sleeps) == 60

    @pytest.mark.asyncio
    async def test_cancel_aborts_wait(self):
        clock = FakeClock(NOW)
        cancel = asyncio.Event()
        cancel.set()
        window = TimeWindow(start=NOW - timedelta(seconds=60), end=NOW)

        with pytest.raises(EvaluationCancelledError):
            await wait_for_data(window, cancel=cancel, now=clock.now, sleep=clock.sleep)

        assert clock.sleeps == []
