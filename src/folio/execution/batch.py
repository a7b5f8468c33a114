"""Batch processor — windowed asyncio fan-out with bounded concurrency.

WHY
───
Moving or deleting every file of a content item means hundreds of remote
calls.  Running them one by one is slow; running them all at once trips
remote rate limits.  Fixed windows of ``batch_size`` concurrent calls keep
in-flight work bounded and results in input order.

ARCHITECTURE
────────────
::

    items ──► chunked(items, batch_size)
                 │
                 ▼
          ┌─────────────┐   asyncio.gather(return_exceptions=True)
          │  window k   │── every item of the window runs concurrently
          └─────────────┘
                 │ window fully settled
                 ▼
         on_progress(processed, total)
                 │
       ┌─────────┴──────────┐
       │                    │
    process_batch      process_batch_with_errors
    (fail-together)    (collect-all)
    first failure in   never raises; BatchResult
    the window raises  with successes / failures

Windows never overlap, so at most ``batch_size`` operations are in flight.
A failing window is always allowed to settle before anything is raised;
sibling side effects in that window are left in place.

Related modules:
    partial_retry.py — retries only the failed subset of a batch
    retry.py         — single-operation retry

Example::

    results = await process_batch(moves, move_one, batch_size=MOVE_BATCH_SIZE)
    report = await process_batch_with_errors(paths, delete_one, batch_size=50)
    print(report.success_count, report.failure_count)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from folio.core.errors import ValidationError
from folio.core.logging import get_logger

T = TypeVar("T")
R = TypeVar("R")

ProgressFn = Callable[[int, int], None]

# Concurrent moves per window against the remote API.
MOVE_BATCH_SIZE = 10
# Remote batch-delete ceiling; delete chunks run one after another.
DELETE_CHUNK_SIZE = 1000

logger = get_logger(__name__)


@dataclass
class BatchSuccess(Generic[T, R]):
    """One item that completed, with its result."""

    item: T
    result: R


@dataclass
class BatchFailure(Generic[T]):
    """One item that failed, with its fault message."""

    item: T
    error: str
    exception: BaseException | None = field(default=None, repr=False, compare=False)


@dataclass
class BatchResult(Generic[T, R]):
    """Outcome of a collect-all batch, in input order."""

    successes: list[BatchSuccess[T, R]] = field(default_factory=list)
    failures: list[BatchFailure[T]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging / CLI output."""
        return {
            "total": self.total,
            "succeeded": self.success_count,
            "failed": self.failure_count,
            "failures": [{"item": str(f.item), "error": f.error} for f in self.failures],
        }


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValidationError("Batch size must be >= 1", field="batch_size", value=size)
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


async def _settle(window: list[T], operation: Callable[[T], Awaitable[R]]) -> list[Any]:
    return await asyncio.gather(*(operation(item) for item in window), return_exceptions=True)


async def process_batch(
    items: Sequence[T],
    operation: Callable[[T], Awaitable[R]],
    batch_size: int,
    on_progress: ProgressFn | None = None,
) -> list[R]:
    """Run ``operation`` over ``items`` window by window; fail together.

    Args:
        items: Items to process
        operation: Async callable applied to each item
        batch_size: Items per window (the concurrency limit)
        on_progress: Called as ``(processed, total)`` after each window

    Returns:
        Results in the same order as ``items``.

    Raises:
        The first failure (in input order) of the first failing window.
        Later windows never start.
    """
    total = len(items)
    results: list[R] = []

    for index, window in enumerate(chunked(items, batch_size)):
        outcomes = await _settle(window, operation)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.warning(
                    "batch.window_failed",
                    window=index + 1,
                    window_size=len(window),
                    processed=len(results),
                    total=total,
                    error=str(outcome),
                )
                raise outcome
        results.extend(outcomes)

        if on_progress:
            on_progress(len(results), total)

    return results


async def process_batch_with_errors(
    items: Sequence[T],
    operation: Callable[[T], Awaitable[R]],
    batch_size: int,
    on_progress: ProgressFn | None = None,
) -> BatchResult[T, R]:
    """Run ``operation`` over ``items`` window by window; collect every outcome.

    Never raises for item failures.  Each failure keeps the original item
    and its fault message.
    """
    total = len(items)
    report: BatchResult[T, R] = BatchResult()
    processed = 0

    for window in chunked(items, batch_size):
        outcomes = await _settle(window, operation)
        for item, outcome in zip(window, outcomes):
            if isinstance(outcome, BaseException):
                report.failures.append(BatchFailure(item=item, error=str(outcome), exception=outcome))
            else:
                report.successes.append(BatchSuccess(item=item, result=outcome))
        processed += len(window)

        if on_progress:
            on_progress(processed, total)

    if report.failures:
        logger.info(
            "batch.completed_with_failures",
            total=total,
            succeeded=report.success_count,
            failed=report.failure_count,
        )
    return report
