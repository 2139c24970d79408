"""
Error Hierarchy for the Business License Verifier

This module defines the exception types raised across the verifier: the
batch processor core, the Baidu API client, file import and configuration.
Every error that leaves the batch processor is one of these types and
carries enough context (item index, item value, underlying cause) to be
inspected by the calling layer.
"""

from typing import Any, Optional


# ============================================================================
# Unified Exception Hierarchy for the Business License Verifier
# ============================================================================
# All custom exceptions for the project are defined here.
# Import these exceptions from license_verifier.utils.error_handler
# ============================================================================


class VerifierError(Exception):
    """Base exception for all business license verifier errors."""

    pass


# ============================================================================
# Configuration / Validation Errors
# ============================================================================


class ConfigurationError(VerifierError):
    """Invalid configuration values, rejected at construction time."""

    pass


class ValidationError(VerifierError):
    """Invalid user input (for example mismatched company/regnum lists)."""

    pass


# ============================================================================
# Data Errors
# ============================================================================


class DataError(VerifierError):
    """Base class for data-related errors."""

    pass


class UnsupportedFormatError(DataError):
    """Input file has an extension the importer does not handle."""

    pass


class FileImportError(DataError):
    """Input file could not be read."""

    pass


# ============================================================================
# API Errors
# ============================================================================


class APIError(VerifierError):
    """Remote verification API failure."""

    def __init__(self, message: str, error_code: Optional[int] = None):
        self.error_code = error_code
        super().__init__(message)


class AuthenticationError(APIError):
    """OAuth token could not be obtained."""

    pass


class RateLimitError(APIError):
    """The remote endpoint is throttling requests.

    Retries of this error use doubled backoff.
    """

    pass


# ============================================================================
# Worker / Processing Errors
# ============================================================================


class WorkerError(VerifierError):
    """Generic failure raised from inside a worker invocation."""

    pass


class ItemTimeoutError(WorkerError):
    """A single worker attempt exceeded the per-item timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Worker attempt timed out after {timeout:.2f}s")


class BatchProcessingError(VerifierError):
    """Batch processing errors."""

    pass


class ExhaustedRetriesError(BatchProcessingError):
    """
    An item kept failing after all of its retry attempts.

    Attributes:
        index: Position of the failed item in the input sequence
        item: The failed work item
        attempts: Number of worker invocations made for the item
        cause: The last underlying exception
    """

    def __init__(self, index: int, item: Any, attempts: int, cause: BaseException):
        self.index = index
        self.item = item
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Item {index} ({item!r}) failed after {attempts} attempt(s): "
            f"{type(cause).__name__}: {cause}"
        )


class BatchCancelledError(BatchProcessingError):
    """A batch run was stopped through its cancellation token."""

    def __init__(self, completed: int, total: int):
        self.completed = completed
        self.total = total
        super().__init__(
            f"Batch run cancelled after {completed}/{total} items completed"
        )
