"""
Concurrency Limiter

A FIFO gate that bounds how many async tasks may be outstanding at once.
Callers over the limit queue in submission order and are admitted one by
one as running tasks finish, whether they succeed or fail.

A place in the queue can be reserved before the task starts running, so a
whole batch is ordered at submission time. Queued reservations may carry an
admission check that is consulted when a slot is handed to them.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Optional, Set, Tuple, TypeVar

from license_verifier.utils.error_handler import ConfigurationError

T = TypeVar("T")

AdmissionCheck = Callable[[], bool]


class AdmissionRefused(Exception):
    """A queued reservation was refused by its admission check."""


class ConcurrencyLimiter:
    """
    Limit the number of concurrently running async tasks.

    Example:
        >>> limiter = ConcurrencyLimiter(5)
        >>> result = await limiter.run(lambda: client.query_business(name))
    """

    def __init__(self, max_concurrent: int):
        """
        Initialize the limiter.

        Args:
            max_concurrent: Maximum number of tasks allowed in flight

        Raises:
            ConfigurationError: If max_concurrent is not a positive integer
        """
        if isinstance(max_concurrent, bool) or not isinstance(max_concurrent, int):
            raise ConfigurationError(
                f"max_concurrent must be an integer, got {max_concurrent!r}"
            )
        if max_concurrent < 1:
            raise ConfigurationError(
                f"max_concurrent must be >= 1, got {max_concurrent}"
            )

        self._max_concurrent = max_concurrent
        self._holders: Set[asyncio.Future] = set()
        self._waiters: Deque[Tuple[asyncio.Future, Optional[AdmissionCheck]]] = deque()
        self.logger = logging.getLogger(__name__)

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active_count(self) -> int:
        """Number of tasks currently holding a slot."""
        return len(self._holders)

    @property
    def pending_count(self) -> int:
        """Number of callers waiting for a slot."""
        return sum(1 for ticket, _ in self._waiters if not ticket.done())

    def reserve(self, admit: Optional[AdmissionCheck] = None) -> asyncio.Future:
        """
        Take a place in the queue without waiting for it.

        Must be called while the event loop is running. The returned ticket
        resolves once a slot is handed to it, immediately if one is free and
        nobody is queued. If admit is given and returns False when the
        ticket's turn comes, the ticket fails with AdmissionRefused and the
        slot moves on to the next caller.

        Every ticket must end up in run() or release().
        """
        ticket = asyncio.get_running_loop().create_future()
        if len(self._holders) < self._max_concurrent and not self._waiters:
            self._holders.add(ticket)
            ticket.set_result(None)
            return ticket

        self._waiters.append((ticket, admit))
        self.logger.debug(
            f"Concurrency limit {self._max_concurrent} reached, "
            f"{len(self._waiters)} waiting"
        )
        return ticket

    async def run(
        self,
        task_factory: Callable[[], Awaitable[T]],
        ticket: Optional[asyncio.Future] = None,
    ) -> T:
        """
        Run a task once a slot is free.

        Args:
            task_factory: Zero-argument callable producing the awaitable to run
            ticket: Reservation from reserve(); a new one is taken if omitted

        Returns:
            The task's result. Exceptions propagate to this caller only.

        Raises:
            AdmissionRefused: If the ticket's admission check failed
        """
        if ticket is None:
            ticket = self.reserve()
        try:
            await ticket
            return await task_factory()
        finally:
            self.release(ticket)

    def release(self, ticket: asyncio.Future) -> None:
        """Give back a ticket's slot or its place in the queue. Safe to repeat."""
        if ticket in self._holders:
            self._holders.remove(ticket)
            self._hand_over()
            return

        if not ticket.done():
            ticket.cancel()
        elif not ticket.cancelled():
            # Mark a refusal as retrieved
            ticket.exception()
        self._waiters = deque(entry for entry in self._waiters if entry[0] is not ticket)

    def _hand_over(self) -> None:
        # Give the freed slot directly to the oldest live waiter, keeping FIFO order
        while self._waiters:
            ticket, admit = self._waiters.popleft()
            if ticket.done():
                continue
            if admit is not None and not admit():
                ticket.set_exception(AdmissionRefused())
                continue
            self._holders.add(ticket)
            ticket.set_result(None)
            return
