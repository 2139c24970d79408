"""
Core verification modules.

This package contains the batch processor with its concurrency limiter,
the Baidu API client, input import and result exporters.
"""

from .batch_processor import BatchProcessor
from .batch_types import BatchRunStats, CancellationToken
from .concurrency import ConcurrencyLimiter

__all__ = [
    "BatchProcessor",
    "BatchRunStats",
    "CancellationToken",
    "ConcurrencyLimiter",
]
