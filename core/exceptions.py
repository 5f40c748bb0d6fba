"""
Custom exceptions for the ETL orchestration engine with structured error context.

This module provides the exception hierarchy used by the registries, the
connection tester, the pipeline executor and the API layer. Each exception
carries context information for debugging and monitoring.

Exception Hierarchy:
    ETLException (base)
    ├── PreflightError
    │   ├── JobNotFoundError
    │   └── NoSourcesDefinedError
    ├── ResourceNotFoundError
    │   ├── DataSourceNotFoundError
    │   ├── TransformationNotFoundError
    │   ├── JobRunNotFoundError
    │   └── AlertNotFoundError
    ├── ExtractionError
    │   ├── ConnectorUnavailableError
    │   └── APIConnectorError
    ├── TransformationError
    ├── LoadError
    ├── JobAbortedError
    │   └── JobTimeoutError
    ├── InvalidRunTransitionError
    ├── StorageError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class ETLException(Exception):
    """
    Base exception for all ETL-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (job, source, timestamp, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


def error_message(exc: BaseException) -> str:
    """Plain message of an exception, without the ETLException context suffix."""
    if isinstance(exc, ETLException):
        return exc.message
    return str(exc) or type(exc).__name__


# ============================================================================
# Pre-flight Errors
# ============================================================================

class PreflightError(ETLException):
    """
    Raised before a job run exists: the job cannot be executed at all.
    No JobRun record is created when this is raised.
    """
    pass


class JobNotFoundError(PreflightError):
    """
    Raised when a job id is not registered.

    Context should include:
        - job_id: The id that was requested
    """
    pass


class NoSourcesDefinedError(PreflightError):
    """
    Raised when a job defines zero data sources.

    Context should include:
        - job_id: The job that was requested
    """
    pass


# ============================================================================
# Lookup Errors
# ============================================================================

class ResourceNotFoundError(ETLException):
    """Base exception for missing registry or store entries."""
    pass


class DataSourceNotFoundError(ResourceNotFoundError):
    pass


class TransformationNotFoundError(ResourceNotFoundError):
    pass


class JobRunNotFoundError(ResourceNotFoundError):
    pass


class AlertNotFoundError(ResourceNotFoundError):
    pass


# ============================================================================
# Phase Errors
# ============================================================================

class ExtractionError(ETLException):
    """
    Base exception for data extraction failures.

    Context should include:
        - source_id: Id of the data source
        - source_type: Type of the data source
    """
    pass


class ConnectorUnavailableError(ExtractionError):
    """
    Raised when no driver is available for a data source type
    (e.g. database or FTP sources without an injected connector).
    """
    pass


class APIConnectorError(ExtractionError):
    """
    Exception raised when an API call fails.

    Context should include:
        - api_url: The API endpoint that failed
        - status_code: HTTP status code (if applicable)
        - retry_count: Number of retries attempted
    """
    pass


class TransformationError(ETLException):
    """
    Exception raised when a transformation cannot be applied.

    Context should include:
        - transformation_id: Id of the transformation
        - transformation_type: Type of the transformation
    """
    pass


class LoadError(ETLException):
    """
    Exception raised when writing to a destination fails.

    Context should include:
        - destination_id: Id of the destination data source
        - records_to_load: Number of records in the failed batch
    """
    pass


# ============================================================================
# Run Lifecycle Errors
# ============================================================================

class JobAbortedError(ETLException):
    """Raised inside a run when cancellation was requested."""
    pass


class JobTimeoutError(JobAbortedError):
    """Raised when a run exceeds its configured timeout."""
    pass


class InvalidRunTransitionError(ETLException):
    """Raised on an illegal JobRun status transition (e.g. terminal -> RUNNING)."""
    pass


class StorageError(ETLException):
    """Raised when the state store cannot read or write an entity."""
    pass


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ETLException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Service unavailable (HTTP 503)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(ETLException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures (HTTP 401, 403)
    - Resource not found (HTTP 404)
    """
    pass


class NetworkError(RetryableError, APIConnectorError):
    """Network-related errors that should be retried."""
    pass


class RateLimitError(RetryableError, APIConnectorError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, APIConnectorError):
    """Authentication failures (HTTP 401, 403) that should not be retried."""
    pass


class EndpointNotFoundError(NonRetryableError, APIConnectorError):
    """Endpoint not found (HTTP 404) errors that should not be retried."""
    pass
