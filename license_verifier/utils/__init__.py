"""
Utility modules for the verifier.

This package contains the error hierarchy, retry logic and logging setup.
"""

from .retry_handler import is_rate_limit_error, retry_with_backoff

__all__ = [
    "is_rate_limit_error",
    "retry_with_backoff",
]
