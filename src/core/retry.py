"""
Retry policy and batched execution for calls to rate-limited external services.

A RetryPolicy bundles the attempt budget, the delay before each retry and the
predicate deciding whether an error is worth retrying. run_in_batches applies a
policy to every batch of a list of items, pausing between batches, and never
lets one failed batch abort the rest of the run.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Sleep = Callable[[float], Awaitable[None]]
Backoff = Callable[[int, Exception], float]


class RetryExhaustedError(Exception):
    """Raised when every attempt allowed by a RetryPolicy has failed."""

    def __init__(self, attempts: int, last_error: Exception) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")


def fixed_backoff(seconds: float) -> Backoff:
    """Wait the same number of seconds before every retry."""
    return lambda _attempt, _error: seconds


def linear_backoff(step: float) -> Backoff:
    """Wait step * attempt seconds (step, 2*step, 3*step, ...)."""
    return lambda attempt, _error: step * attempt


def _always_retry(_error: Exception) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """
    How to retry a failing async call.

    Attributes:
        max_attempts: Total number of attempts, including the first one.
        backoff: Delay in seconds before the next attempt, given the number of
            the attempt that just failed (1-based) and its error.
        retryable: Errors for which this returns False are re-raised at once.
    """

    max_attempts: int = 3
    backoff: Backoff = field(default=fixed_backoff(0.0))
    retryable: Callable[[Exception], bool] = field(default=_always_retry)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1 (got {self.max_attempts})")

    async def call(
        self,
        func: Callable[[], Awaitable[R]],
        *,
        sleep: Sleep = asyncio.sleep,
        description: str = "call",
    ) -> R:
        """
        Await func(), retrying according to this policy.

        Raises:
            RetryExhaustedError: If the last allowed attempt failed.
            Exception: Any error rejected by `retryable`, unchanged.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await func()
            except Exception as e:
                if not self.retryable(e):
                    raise
                if attempt >= self.max_attempts:
                    raise RetryExhaustedError(attempt, e) from e
                delay = self.backoff(attempt, e)
                logger.warning(
                    "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                    description, attempt, self.max_attempts, e, delay,
                )
                if delay > 0:
                    await sleep(delay)


@dataclass
class BatchOutcome(Generic[T, R]):
    """Result of one batch in a batched run."""

    index: int
    items: list[T]
    result: R | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        """True if the batch handler eventually returned a result."""
        return self.error is None


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive lists of at most size elements."""
    if size < 1:
        raise ValueError(f"Batch size must be at least 1 (got {size})")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def run_in_batches(
    items: Sequence[T],
    batch_size: int,
    handler: Callable[[list[T]], Awaitable[R]],
    policy: RetryPolicy,
    *,
    pause: float = 0.0,
    sleep: Sleep = asyncio.sleep,
) -> list[BatchOutcome[T, R]]:
    """
    Run handler over items in sequential batches.

    Batches are processed strictly in order, with `pause` seconds between two
    consecutive batches. Each batch is retried according to `policy`; a batch
    that still fails is recorded as a failed outcome and the run moves on to the
    next batch.

    Returns:
        One BatchOutcome per batch, in submission order.
    """
    outcomes: list[BatchOutcome[T, R]] = []
    for index, batch in enumerate(chunked(items, batch_size)):
        if index > 0 and pause > 0:
            await sleep(pause)
        try:
            result = await policy.call(
                partial(handler, batch), sleep=sleep, description=f"batch {index}",
            )
        except RetryExhaustedError as e:
            logger.warning(
                "batch_abandoned",
                extra={"batch": index, "size": len(batch), "attempts": e.attempts,
                       "error": str(e.last_error)},
            )
            outcomes.append(BatchOutcome(index=index, items=batch, error=e.last_error))
            continue
        except Exception as e:
            logger.warning(
                "batch_abandoned",
                extra={"batch": index, "size": len(batch), "attempts": 1, "error": str(e)},
                exc_info=True,
            )
            outcomes.append(BatchOutcome(index=index, items=batch, error=e))
            continue
        outcomes.append(BatchOutcome(index=index, items=batch, result=result))
    return outcomes
