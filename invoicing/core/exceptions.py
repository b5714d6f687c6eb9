"""Structured exception hierarchy for invoicing errors.

This module defines the exceptions raised by the invoicing library. Every
error carries a machine-readable code, a severity and structured context so
that callers can decide on a policy (refuse to price an item, abort a rate
load, alert on broken configuration) without parsing messages.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **Severity enum**: Error classification for monitoring and alerting
- **InvoicingError**: Base exception with context and fingerprinting
- **Specialized exceptions**: Rate table and pricing errors

Finding no tax rate for a date is not an exception: ``RateTable.rate_at``
returns ``None``. ``NoApplicableRateError`` is raised only by pricing code
that has decided it cannot continue without a rate.
"""

import hashlib
import traceback
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for the invoicing library."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Input data is invalid or malformed."""

    NOT_FOUND = "NOT_FOUND"
    """The requested record could not be found."""

    DUPLICATE_ID = "DUPLICATE_ID"
    """A tax rate with the same id is already present in the table."""

    DEFAULT_CONFLICT = "DEFAULT_CONFLICT"
    """Two overlapping rates of one category are both marked default."""

    BROKEN_CHAIN = "BROKEN_CHAIN"
    """A replacement chain ends before reaching a rate valid at the date."""

    NO_APPLICABLE_RATE = "NO_APPLICABLE_RATE"
    """No tax rate applies at the date an amount is priced."""


class Severity(Enum):
    """Severity levels for invoicing errors."""

    LOW = "LOW"
    """Expected errors caused by caller input."""

    MEDIUM = "MEDIUM"
    """Errors that block one operation but not the system."""

    HIGH = "HIGH"
    """Errors pointing at inconsistent rate configuration or data integrity."""

    CRITICAL = "CRITICAL"
    """Errors requiring immediate attention."""


class InvoicingError(Exception):
    """Base exception class for all invoicing exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        self.stack_trace = traceback.format_stack()[:-1]
        self.fingerprint = self._generate_fingerprint()

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    def _generate_fingerprint(self) -> str:
        """Generate a fingerprint for grouping errors raised from the same place.

        Returns:
            str: A 16 character hash of the error type and raising location
        """
        max_frames = 5
        relevant_frames = self.stack_trace[-max_frames:]

        fingerprint_data = f"{self.__class__.__name__}:{self.error_code}"
        for frame in relevant_frames:
            if "site-packages" not in frame and "invoicing/" in frame:
                lines = frame.strip().split("\n")
                if lines:
                    fingerprint_data += f":{lines[0]}"

        return hashlib.sha256(fingerprint_data.encode()).hexdigest()[:16]

    @property
    def is_expected(self) -> bool:
        """Whether the error is part of normal operation (LOW or MEDIUM)."""
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    @property
    def should_alert(self) -> bool:
        """Whether the error indicates broken configuration (HIGH or CRITICAL)."""
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class ValidationError(InvoicingError):
    """Exception raised when input data is invalid.

    Args:
        message: Description of the validation failure
        error_code: Error code (defaults to VALIDATION_ERROR)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.VALIDATION_ERROR,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class NotFoundError(InvoicingError):
    """Exception raised when a referenced record does not exist.

    Args:
        message: Description of what was not found
        error_code: Error code (defaults to NOT_FOUND)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.NOT_FOUND,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class DuplicateIdError(InvoicingError):
    """Exception raised when a tax rate id is added to a table twice.

    This is a configuration error which aborts the rate load.

    Args:
        rate_id: The id that is already present
        cause: The original exception that caused this error
    """

    def __init__(self, rate_id: int, cause: Exception | None = None) -> None:
        super().__init__(
            ErrorCode.DUPLICATE_ID,
            f"Tax rate with id {rate_id} is already present",
            Severity.HIGH,
            {"rate_id": rate_id},
            cause,
        )


class DefaultRateConflictError(ValidationError):
    """Exception raised when two overlapping rates of a category are both default.

    Args:
        rate_id: The id of the rate being added
        conflicting_id: The id of the default rate it overlaps with
        category: The category both rates belong to
    """

    def __init__(
        self, rate_id: int, conflicting_id: int, category: str | None
    ) -> None:
        super().__init__(
            f"Tax rate {rate_id} and {conflicting_id} overlap and are both default",
            ErrorCode.DEFAULT_CONFLICT,
            {
                "rate_id": rate_id,
                "conflicting_id": conflicting_id,
                "category": category,
            },
        )


class BrokenChainError(InvoicingError):
    """Exception raised when a replacement chain cannot reach a date.

    This signals a data-integrity problem in the rate configuration: a rate
    expired without a replacement, refers to an unknown replacement, or the
    chain loops back on itself.

    Args:
        message: Description of where the chain broke
        context: Additional context information about the error
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.BROKEN_CHAIN, message, Severity.HIGH, context)


class NoApplicableRateError(InvoicingError):
    """Exception raised when an amount cannot be priced for lack of a tax rate.

    Args:
        message: Description of the pricing failure
        context: Additional context information about the error
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(
            ErrorCode.NO_APPLICABLE_RATE, message, Severity.MEDIUM, context
        )
