"""
Batch Processing Module for Verification Requests

This module runs a caller-supplied async worker over a list of items in
fixed-size batches. Inside a batch every item is submitted at once to a
concurrency limiter, each worker call is retried with backoff, and a pause
separates consecutive batches so the remote API is not flooded.

Results come back in input order. The run is fail-fast: an item that still
fails after its retries aborts the run with an ExhaustedRetriesError.
"""

import asyncio
import logging
from datetime import datetime
from typing import (
    Awaitable,
    Callable,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from pydantic import ValidationError

from license_verifier.config.pydantic_config import BatchConfig, format_config_error
from license_verifier.core.batch_types import BatchRunStats, BatchSlice, CancellationToken
from license_verifier.core.concurrency import AdmissionRefused, ConcurrencyLimiter
from license_verifier.utils.error_handler import (
    BatchCancelledError,
    ConfigurationError,
    ExhaustedRetriesError,
    ItemTimeoutError,
)
from license_verifier.utils.retry_handler import is_rate_limit_error, retry_with_backoff

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback = Callable[[float], None]


class BatchProcessor:
    """
    Batch processor with bounded concurrency, per-item retry and pacing.

    Example:
        >>> processor = BatchProcessor(BatchConfig(batch_size=10, max_concurrent=5))
        >>> results = await processor.process_batch(names, client.query_business)
    """

    def __init__(self, config: Optional[Union[BatchConfig, Mapping]] = None):
        """
        Initialize batch processor.

        Args:
            config: BatchConfig instance, or a mapping of BatchConfig fields.
                Defaults are used when omitted.

        Raises:
            ConfigurationError: If the configuration values are invalid
        """
        if config is None:
            config = BatchConfig()
        elif isinstance(config, Mapping):
            try:
                config = BatchConfig(**config)
            except ValidationError as e:
                raise ConfigurationError(format_config_error(e)) from e
        elif not isinstance(config, BatchConfig):
            raise ConfigurationError(
                f"Expected BatchConfig or mapping, got {type(config).__name__}"
            )

        self.config = config
        self.limiter = ConcurrencyLimiter(config.max_concurrent)
        self.last_run = BatchRunStats()
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_preferences(cls, preferences: Optional[Mapping]) -> "BatchProcessor":
        """Create a processor from launcher-style string preferences."""
        return cls(BatchConfig.from_preferences(preferences))

    def split_batches(self, items: Sequence[T]) -> List[BatchSlice]:
        """Split items into consecutive slices of at most batch_size."""
        size = self.config.batch_size
        return [
            BatchSlice(number=n + 1, start_index=start, items=list(items[start : start + size]))
            for n, start in enumerate(range(0, len(items), size))
        ]

    async def process_batch(
        self,
        items: Iterable[T],
        worker: Callable[[T], Awaitable[R]],
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[R]:
        """
        Process items with the worker, batch by batch.

        Args:
            items: Work items, processed in order
            worker: Async function applied to each item
            on_progress: Optional callback receiving the completed percentage
                after each item succeeds
            cancel_token: Optional token; once cancelled no new items start

        Returns:
            One result per item, in input order

        Raises:
            ExhaustedRetriesError: An item failed after all retries
            BatchCancelledError: The run was cancelled through cancel_token
        """
        items = list(items)
        total = len(items)
        stats = BatchRunStats(total_items=total, started_at=datetime.now())
        self.last_run = stats

        if total == 0:
            stats.finished_at = datetime.now()
            return []

        batches = self.split_batches(items)
        stats.batches = len(batches)
        results: List[R] = [None] * total  # type: ignore[list-item]

        self.logger.info(
            f"Processing {total} items in {len(batches)} batches "
            f"(batch_size={self.config.batch_size}, "
            f"max_concurrent={self.config.max_concurrent})"
        )

        try:
            for batch in batches:
                if batch.number > 1:
                    self._check_cancelled(cancel_token, stats)
                    self.logger.debug(
                        f"Waiting {self.config.request_interval:.2f}s before batch "
                        f"{batch.number}/{len(batches)}"
                    )
                    await asyncio.sleep(self.config.request_interval)
                self._check_cancelled(cancel_token, stats)

                batch_results = await self._run_batch(
                    batch, worker, on_progress, cancel_token, stats
                )
                results[batch.start_index : batch.start_index + len(batch)] = batch_results
                stats.batches_completed += 1
                self.logger.debug(f"Batch {batch.number}/{len(batches)} complete")

        except (ExhaustedRetriesError, BatchCancelledError) as e:
            stats.error = str(e)
            self.logger.warning(f"Batch run aborted: {e}")
            raise
        finally:
            stats.finished_at = datetime.now()

        self.logger.info(
            f"Processed {total} items in {stats.duration_seconds:.2f}s "
            f"({stats.retries} retries)"
        )
        return results

    def get_statistics(self) -> dict:
        """Statistics of the most recent run."""
        return self.last_run.to_dict()

    async def _run_batch(
        self,
        batch: BatchSlice,
        worker: Callable[[T], Awaitable[R]],
        on_progress: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
        stats: BatchRunStats,
    ) -> List[R]:
        """
        Run one batch; all items are submitted to the limiter at once.

        Slots are reserved in input order before any worker runs. Items that
        get a slot at submission always start; queued items are refused once
        the run is cancelled.
        """

        def admit() -> bool:
            return cancel_token is None or not cancel_token.cancelled

        tasks = []
        for offset, item in enumerate(batch.items):
            ticket = self.limiter.reserve(admit)
            task = asyncio.ensure_future(
                self._run_item(
                    batch.start_index + offset,
                    item,
                    worker,
                    on_progress,
                    ticket,
                    stats,
                )
            )
            # A task cancelled before it starts never reaches the limiter
            task.add_done_callback(lambda _, ticket=ticket: self.limiter.release(ticket))
            tasks.append(task)

        try:
            _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)

            failure = self._first_failure(tasks)
            if failure is None and pending:
                # Only refused items so far: let in-flight items settle
                await asyncio.wait(pending)
                failure = self._first_failure(tasks)
        except asyncio.CancelledError:
            await self._cancel_all(tasks)
            raise

        if failure is not None:
            await self._cancel_all(tasks)
            raise failure

        errors = [task.exception() for task in tasks]
        for error in errors:
            if error is not None and not isinstance(error, AdmissionRefused):
                raise error
        if any(error is not None for error in errors):
            raise BatchCancelledError(stats.completed_items, stats.total_items)

        return [task.result() for task in tasks]

    async def _run_item(
        self,
        index: int,
        item: T,
        worker: Callable[[T], Awaitable[R]],
        on_progress: Optional[ProgressCallback],
        ticket: asyncio.Future,
        stats: BatchRunStats,
    ) -> R:
        attempts = 0
        timeout = self.config.item_timeout

        async def attempt() -> R:
            nonlocal attempts
            attempts += 1
            if timeout is None:
                return await worker(item)
            try:
                return await asyncio.wait_for(worker(item), timeout)
            except asyncio.TimeoutError:
                raise ItemTimeoutError(timeout) from None

        def record_retry(attempt_number: int, error: BaseException, delay: float) -> None:
            stats.retries += 1
            if is_rate_limit_error(error):
                stats.rate_limited_retries += 1
            self.logger.debug(
                f"Item {index} attempt {attempt_number} failed: {error}; "
                f"retrying in {delay:.2f}s"
            )

        try:
            result = await self.limiter.run(
                lambda: retry_with_backoff(
                    attempt,
                    retries=self.config.max_retries,
                    initial_delay=self.config.retry_delay,
                    on_retry=record_retry,
                ),
                ticket,
            )
        except AdmissionRefused:
            raise
        except Exception as e:
            raise ExhaustedRetriesError(index, item, attempts, e) from e

        stats.completed_items += 1
        if on_progress:
            on_progress(stats.completed_items / stats.total_items * 100)
        return result

    @staticmethod
    def _first_failure(tasks: List[asyncio.Task]) -> Optional[ExhaustedRetriesError]:
        """Lowest-index item failure among the settled tasks, ignoring refusals."""
        for task in tasks:
            if task.done() and not task.cancelled():
                error = task.exception()
                if isinstance(error, ExhaustedRetriesError):
                    return error
        return None

    @staticmethod
    def _check_cancelled(
        cancel_token: Optional[CancellationToken], stats: BatchRunStats
    ) -> None:
        if cancel_token is not None and cancel_token.cancelled:
            raise BatchCancelledError(stats.completed_items, stats.total_items)

    @staticmethod
    async def _cancel_all(tasks: List[asyncio.Task]) -> None:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
