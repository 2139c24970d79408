"""
Batch Processing Types

Data classes shared by the batch processor and its callers: the
cancellation token used to stop a run and the statistics collected per run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional


class CancellationToken:
    """
    Cooperative cancellation signal for a batch run.

    Once cancelled, the batch processor stops admitting new items; items
    already running are allowed to finish.
    """

    def __init__(self):
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation. Calling it more than once has no extra effect."""
        if self._cancelled:
            return
        self._cancelled = True
        for callback in self._callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback fired when the token is cancelled."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"


@dataclass
class BatchRunStats:
    """Statistics for a single process_batch run"""

    total_items: int = 0
    completed_items: int = 0
    batches: int = 0
    batches_completed: int = 0
    retries: int = 0
    rate_limited_retries: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        if not self.started_at:
            return 0.0
        end = self.finished_at or datetime.now()
        return (end - self.started_at).total_seconds()

    @property
    def progress_percent(self) -> float:
        if self.total_items == 0:
            return 0.0
        return self.completed_items / self.total_items * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting"""
        return {
            "total_items": self.total_items,
            "completed_items": self.completed_items,
            "batches": self.batches,
            "batches_completed": self.batches_completed,
            "retries": self.retries,
            "rate_limited_retries": self.rate_limited_retries,
            "duration_seconds": self.duration_seconds,
            "progress_percent": self.progress_percent,
            "error": self.error,
        }


@dataclass
class BatchSlice:
    """A contiguous slice of the input, remembering where it starts"""

    number: int
    start_index: int
    items: List[Any] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)
