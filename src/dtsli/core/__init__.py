"""Core modules for dtsli - centralized error definitions."""

from dtsli.core.errors import (
    BackendStatusError,
    BackendUnreachableError,
    ConfigurationError,
    DashboardFetchError,
    DtsliError,
    ErrorKind,
    EvaluationCancelledError,
    ExitCode,
    InvalidTimestampError,
    MetricIdentifierMismatchError,
    NoDataError,
    ProviderError,
    TimeWindowError,
    UnexpectedResultShapeError,
    UnsupportedIndicatorError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "ErrorKind",
    "DtsliError",
    "ConfigurationError",
    "InvalidTimestampError",
    "TimeWindowError",
    "UnsupportedIndicatorError",
    "ProviderError",
    "BackendUnreachableError",
    "BackendStatusError",
    "NoDataError",
    "MetricIdentifierMismatchError",
    "UnexpectedResultShapeError",
    "DashboardFetchError",
    "EvaluationCancelledError",
    "main_with_error_handling",
    "format_error_message",
]
