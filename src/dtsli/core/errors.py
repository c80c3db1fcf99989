"""
Unified error handling for dtsli.

Every failure the engine knows about is a ``DtsliError`` subclass carrying an
``ErrorKind``. Indicator-level failures are turned into failed SLI results by
the retriever; only configuration and time-window failures abort a run.

Exit Codes:
- 0: Success
- 1: Warning (some indicators failed)
- 10: Configuration error
- 11: Provider error (Dynatrace API failure)
- 12: Validation error (timestamps, time window)
- 130: Cancelled
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import Enum, IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127
    CANCELLED = 130


class ErrorKind(str, Enum):
    """Failure categories surfaced in SLI result messages and logs."""

    INVALID_TIMESTAMP = "InvalidTimestamp"
    TIME_WINDOW_INVALID = "TimeWindowInvalid"
    UNSUPPORTED_INDICATOR = "UnsupportedIndicator"
    BACKEND_UNREACHABLE = "BackendUnreachable"
    BACKEND_STATUS_ERROR = "BackendStatusError"
    NO_DATA = "NoData"
    METRIC_IDENTIFIER_MISMATCH = "MetricIdentifierMismatch"
    UNEXPECTED_RESULT_SHAPE = "UnexpectedResultShape"
    DASHBOARD_NOT_FOUND = "DashboardNotFound"
    DASHBOARD_FETCH_FAILED = "DashboardFetchFailed"
    CONFIGURATION = "Configuration"
    CANCELLED = "Cancelled"


class DtsliError(Exception):
    """Base exception for dtsli errors with exit code support."""

    kind: ErrorKind = ErrorKind.CONFIGURATION
    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(DtsliError):
    """Raised for missing credentials or unreadable configuration files."""

    kind = ErrorKind.CONFIGURATION
    exit_code = ExitCode.CONFIG_ERROR


class InvalidTimestampError(DtsliError):
    """Raised when a timestamp is neither RFC3339 nor Unix seconds."""

    kind = ErrorKind.INVALID_TIMESTAMP
    exit_code = ExitCode.VALIDATION_ERROR


class TimeWindowError(DtsliError):
    """Raised when end is before start or too far in the future."""

    kind = ErrorKind.TIME_WINDOW_INVALID
    exit_code = ExitCode.VALIDATION_ERROR


class UnsupportedIndicatorError(DtsliError):
    """Raised when an indicator has neither a custom nor a built-in query."""

    kind = ErrorKind.UNSUPPORTED_INDICATOR
    exit_code = ExitCode.VALIDATION_ERROR

    def __init__(self, indicator: str):
        super().__init__(f"unsupported SLI metric {indicator}", {"indicator": indicator})
        self.indicator = indicator


class ProviderError(DtsliError):
    """Raised when the Dynatrace API fails."""

    kind = ErrorKind.BACKEND_STATUS_ERROR
    exit_code = ExitCode.PROVIDER_ERROR


class BackendUnreachableError(ProviderError):
    """Raised when the API cannot be reached after bounded retries."""

    kind = ErrorKind.BACKEND_UNREACHABLE


class BackendStatusError(ProviderError):
    """Raised when the API answers with a non-success status."""

    kind = ErrorKind.BACKEND_STATUS_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        error_code: int | None = None,
    ):
        super().__init__(message, {"status_code": status_code})
        self.status_code = status_code
        self.error_code = error_code


class NoDataError(ProviderError):
    """Raised when a query returns an empty result envelope."""

    kind = ErrorKind.NO_DATA


class MetricIdentifierMismatchError(ProviderError):
    """Raised when the requested metric id is absent from the response."""

    kind = ErrorKind.METRIC_IDENTIFIER_MISMATCH


class UnexpectedResultShapeError(ProviderError):
    """Raised when a response cannot be decoded or has the wrong number of values."""

    kind = ErrorKind.UNEXPECTED_RESULT_SHAPE


class DashboardFetchError(ProviderError):
    """Raised when listing or fetching dashboards fails."""

    kind = ErrorKind.DASHBOARD_FETCH_FAILED


class EvaluationCancelledError(DtsliError):
    """Raised when a caller-supplied cancel signal fires."""

    kind = ErrorKind.CANCELLED
    exit_code = ExitCode.CANCELLED


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Exit codes:
        - DtsliError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except DtsliError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        kind=e.kind.value,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                print(f"error: {format_error_message(e)}", file=sys.stderr)
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return ExitCode.CANCELLED
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: DtsliError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
