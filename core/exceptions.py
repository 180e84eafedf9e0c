"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the metrics system.

- Provides clear exception hierarchy
- Separates client mistakes from storage failures
- Marks which failures a retry may fix
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
MetricsException (base)
├── MetricValidationError
│   ├── InvalidNameError
│   ├── InvalidValueError
│   ├── MissingValueError
│   └── UnknownMetricTypeError
├── StorageError
│   ├── UniqueConstraintRaceError
│   └── StorageUnavailableError
├── DumpIOError
├── ConfigurationError
└── ReportError
    └── ServerUnavailableError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    CLIENT = "client"
    """Caller sent something invalid, retrying the same input fails again."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class MetricsException(Exception):
    """
    Base exception for all metrics system errors.

    All exceptions carry:
    - context: for debugging
    - classification: for retry decisions
    - timestamp: when the error occurred
    """

    default_classification: ErrorClassification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.classification = self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_retryable(self) -> bool:
        """Check if another attempt may succeed."""
        return self.classification == ErrorClassification.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================
# VALIDATION ERRORS
# ============================================================

class MetricValidationError(MetricsException):
    """Update rejected before touching the store."""

    default_classification = ErrorClassification.CLIENT


class InvalidNameError(MetricValidationError):
    """Metric name is empty."""

    def __init__(self, name: str = ""):
        super().__init__("incorrect name", context={"name": name})


class InvalidValueError(MetricValidationError):
    """Raw value does not parse for the metric kind."""

    def __init__(self, kind: str, raw_value: str, cause: Optional[Exception] = None):
        super().__init__(
            f"incorrect {kind} value: {raw_value!r}",
            context={"kind": kind, "raw_value": str(raw_value)[:100]},
            cause=cause,
        )
        self.kind = kind
        self.raw_value = raw_value


class MissingValueError(MetricValidationError):
    """Wire record lacks the field required by its type."""

    def __init__(self, kind: str, name: str):
        field = "delta" if kind == "counter" else "value"
        super().__init__(
            "incorrect metric value",
            context={"kind": kind, "name": name, "missing_field": field},
        )
        self.kind = kind
        self.name = name


class UnknownMetricTypeError(MetricValidationError):
    """Metric kind is neither gauge nor counter."""

    def __init__(self, kind: str):
        super().__init__("unknown metric type", context={"kind": kind})
        self.kind = kind


# ============================================================
# STORAGE ERRORS
# ============================================================

class StorageError(MetricsException):
    """Backend failed to apply or read metrics."""


class UniqueConstraintRaceError(StorageError):
    """
    Concurrent insert hit the (type, name) uniqueness constraint.

    The only error the update retry loop absorbs.
    """

    default_classification = ErrorClassification.TRANSIENT


class StorageUnavailableError(StorageError):
    """Database connection cannot be used."""


# ============================================================
# DUMP ERRORS
# ============================================================

class DumpIOError(MetricsException):
    """Dump file could not be read, parsed or written."""

    def __init__(self, message: str, path: str, cause: Optional[Exception] = None):
        super().__init__(message, context={"path": path}, cause=cause)
        self.path = path


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(MetricsException):
    """Error in configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
    ):
        context: Dict[str, Any] = {}
        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]
        super().__init__(message, context=context)


# ============================================================
# REPORT ERRORS
# ============================================================

class ReportError(MetricsException):
    """Server refused a metrics report."""

    default_classification = ErrorClassification.CLIENT

    def __init__(
        self,
        message: str,
        url: str,
        status: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        context: Dict[str, Any] = {"url": url}
        if status is not None:
            context["status"] = status
        super().__init__(message, context=context, cause=cause)
        self.url = url
        self.status = status


class ServerUnavailableError(ReportError):
    """Server unreachable or answered 5xx."""

    default_classification = ErrorClassification.TRANSIENT
