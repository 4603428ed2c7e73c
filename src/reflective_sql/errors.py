"""Structured error taxonomy for the translation pipeline.

Every error raised by the pipeline inherits from StructuredError and
serializes to the same JSON shape through to_dict():

    {
        "error_type": "ErrorClassName",
        "message": "Human-readable message",
        "category": "schema|translation|validation|execution|...",
        "severity": "info|warning|error|critical",
        "retryable": true|false,
        "details": {...},
        "timestamp": "2024-01-01T12:00:00.000000+00:00"
    }

Propagation policy:
- SchemaFetchError is fatal for a query() call.
- TranslationError is fatal only on the first generation attempt; during
  correction it counts as an unsuccessful retry.
- ValidationRejected and ExecutionError drive the correction loop and are
  reported as data (attempt records), never raised out of query().

Example:
    >>> try:
    ...     raise ExecutionError("relation \\"orderz\\" does not exist")
    ... except StructuredError as e:
    ...     payload = e.to_dict()
    ...     assert payload["category"] == "execution"
"""
from enum import Enum
from typing import Optional, Dict, Any, TYPE_CHECKING
from datetime import datetime, timezone

if TYPE_CHECKING:
    from .schemas_translation import ValidationVerdict


class ErrorCategory(Enum):
    """Error categories for classification."""
    SCHEMA = "schema"                # Metadata query failures
    TRANSLATION = "translation"      # Completion service failures
    VALIDATION = "validation"        # Static SQL checks rejected a candidate
    EXECUTION = "execution"          # Database rejected the statement
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class StructuredError(Exception):
    """Base class for all structured errors.

    Attributes:
        message: Human-readable error message
        category: ErrorCategory classification
        severity: ErrorSeverity level
        retryable: Whether the operation can be retried
        details: Additional context (dict)
        timestamp: When the error occurred (UTC)
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.retryable = retryable
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a structured dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }


class SchemaFetchError(StructuredError):
    """The metadata query for tables/columns failed.

    Fatal for the current call: no partial snapshot is ever returned.
    """

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.SCHEMA,
            severity=ErrorSeverity.CRITICAL,
            retryable=retryable,
            details=details
        )


class TranslationError(StructuredError):
    """The completion service failed during generation or correction.

    Network failures, rate limits and malformed responses all land here.
    """

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.TRANSLATION,
            severity=ErrorSeverity.ERROR,
            retryable=retryable,
            details=details
        )


class ValidationRejected(StructuredError):
    """A candidate statement failed a blocking static check.

    Blocks execution of that attempt and feeds the next correction cycle
    exactly like a database error would.
    """

    def __init__(self, verdict: "ValidationVerdict", sql: str = ""):
        message = "Validation rejected the query: " + "; ".join(verdict.errors)
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            retryable=True,
            details={"sql": sql, "errors": list(verdict.errors)}
        )
        self.verdict = verdict


class ExecutionError(StructuredError):
    """The database rejected the statement.

    Expected during normal operation: it drives the correction loop.
    """

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.EXECUTION,
            severity=ErrorSeverity.WARNING,
            retryable=retryable,
            details=details
        )


class ConfigurationError(StructuredError):
    """Required configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            retryable=retryable,
            details=details
        )
