"""
Custom exceptions for the template ETL pipeline with structured error context.

Every failure raised inside the pipeline is (or gets normalized into) an
``ETLError`` carrying one of the ``ETLErrorType`` categories. The recovery
engine picks a strategy from that category and the pipeline phase.

Exception Hierarchy:
    ETLError (base, UNKNOWN_ERROR)
    ├── ExtractionError          EXTRACT_ERROR
    ├── TransformationError      TRANSFORM_ERROR
    ├── LoadError                LOAD_ERROR
    ├── ValidationError          VALIDATION_ERROR
    ├── NetworkError             CONNECTION_ERROR
    ├── ETLTimeoutError          TIMEOUT_ERROR
    ├── AuthenticationError      AUTHENTICATION_ERROR
    ├── PermissionDeniedError    PERMISSION_ERROR
    ├── RecoveryError (control flow, carries the recovery outcome)
    │   ├── UnrecoverableError
    │   └── ItemSkippedError
    └── JobNotFoundError
"""

from typing import Optional, Dict, Any, TYPE_CHECKING
from datetime import datetime
import enum

if TYPE_CHECKING:
    from ingestion.recovery import RecoveryOutcome


class ETLErrorType(str, enum.Enum):
    """Error taxonomy shared by the classifier and the durable error store"""
    EXTRACT_ERROR = "EXTRACT_ERROR"
    TRANSFORM_ERROR = "TRANSFORM_ERROR"
    LOAD_ERROR = "LOAD_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ETLError(Exception):
    """
    Base exception for all ETL-related errors.

    Attributes:
        message: Human-readable error message
        error_type: Category from the ETL error taxonomy
        context: Additional context information (job id, item id, url, etc.)
        original_exception: The original exception that was caught (if any)
    """

    default_error_type = ETLErrorType.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        error_type: Optional[ETLErrorType] = None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        self.message = message
        self.error_type = ETLErrorType(error_type) if error_type else self.default_error_type
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        super().__init__(message)
        if original_exception is not None:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with type."""
        return f"{self.error_type.value}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.error_type.value,
            "error_class": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": (
                f"{type(self.original_exception).__name__}: {self.original_exception}"
                if self.original_exception is not None else None
            )
        }


# ============================================================================
# Phase Errors
# ============================================================================

class ExtractionError(ETLError):
    """Video source extraction failed (bad payload, provider error)."""
    default_error_type = ETLErrorType.EXTRACT_ERROR


class TransformationError(ETLError):
    """Content analysis of a video record failed."""
    default_error_type = ETLErrorType.TRANSFORM_ERROR


class LoadError(ETLError):
    """Writing a template or stats update failed."""
    default_error_type = ETLErrorType.LOAD_ERROR


class ValidationError(ETLError):
    """
    A record failed validation and cannot be fixed by retrying.

    Context should include:
        - field_name: Name of the field that failed validation
        - item_id: ID of the offending record
    """
    default_error_type = ETLErrorType.VALIDATION_ERROR


# ============================================================================
# Transport / Access Errors
# ============================================================================

class NetworkError(ETLError):
    """Connection-level failure (refused, reset, 5xx, rate limited). Retryable."""
    default_error_type = ETLErrorType.CONNECTION_ERROR


class ETLTimeoutError(ETLError):
    """The remote call timed out. Retryable."""
    default_error_type = ETLErrorType.TIMEOUT_ERROR


class AuthenticationError(ETLError):
    """Credentials rejected (HTTP 401). Not retryable."""
    default_error_type = ETLErrorType.AUTHENTICATION_ERROR


class PermissionDeniedError(ETLError):
    """Access to the resource is forbidden (HTTP 403). Not retryable."""
    default_error_type = ETLErrorType.PERMISSION_ERROR


# ============================================================================
# Recovery Control Flow
# ============================================================================

class RecoveryError(ETLError):
    """
    Raised once the recovery engine has decided the fate of a failure.

    Attributes:
        outcome: The RecoveryOutcome returned by the engine
        error: The normalized ETLError that triggered recovery
        partial_result: Progress captured when the error surfaced (if any)
    """

    def __init__(
        self,
        message: str,
        outcome: "RecoveryOutcome",
        error: ETLError,
        partial_result: Optional[Any] = None
    ):
        super().__init__(
            message,
            error_type=error.error_type,
            context=dict(error.context),
            original_exception=error
        )
        self.outcome = outcome
        self.error = error
        self.partial_result = partial_result


class UnrecoverableError(RecoveryError):
    """The failure was not resolved by skipping; the current phase must abort."""
    pass


class ItemSkippedError(RecoveryError):
    """The failure was resolved by skipping the item or query."""
    pass


# ============================================================================
# Job Ledger Errors
# ============================================================================

class JobNotFoundError(ETLError):
    """The referenced job does not exist in the ledger."""
    pass
