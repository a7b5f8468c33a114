"""Partial-retry batch executor.

Retries only the failed subset of a batch.  Round 0 runs every item
collect-all; items that failed retryably form the next round after that
round's backoff delay.  Successes accumulate across rounds and are never
run again.  Non-retryable failures, and failures in the last permitted
round, are permanent.

Example::

    report = await with_partial_retry(paths, delete_one, RetryPolicy(max_attempts=3))
    if report.failures:
        ...
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from folio.core.logging import get_logger
from folio.execution.batch import BatchFailure, process_batch_with_errors
from folio.execution.retry import RetryPolicy, SleepFn

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass
class PartialRetryResult(Generic[T]):
    """Combined outcome of every round."""

    successes: list[T] = field(default_factory=list)
    failures: list[BatchFailure[T]] = field(default_factory=list)
    rounds: int = 0

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures


async def with_partial_retry(
    items: Sequence[T],
    operation: Callable[[T], Awaitable[Any]],
    policy: RetryPolicy | None = None,
    *,
    batch_size: int | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> PartialRetryResult[T]:
    """Process ``items``, re-running only retryable failures for up to ``max_attempts`` rounds.

    Args:
        items: Items to process
        operation: Async callable applied to each item
        policy: Round count, backoff and retryable classification
        batch_size: Concurrency window per round (default: all pending items at once)
        sleep: Awaitable used for the wait between rounds

    Returns:
        PartialRetryResult with accumulated successes and permanent failures.
    """
    policy = policy or RetryPolicy()
    result: PartialRetryResult[T] = PartialRetryResult()
    pending = list(items)

    for attempt in range(policy.max_attempts):
        if not pending:
            break

        result.rounds = attempt + 1
        last_round = attempt >= policy.max_attempts - 1
        logger.debug(
            "partial_retry.round",
            round=attempt + 1,
            max_rounds=policy.max_attempts,
            pending=len(pending),
            succeeded_so_far=len(result.successes),
            failed_so_far=len(result.failures),
        )

        report = await process_batch_with_errors(pending, operation, batch_size or len(pending))
        result.successes.extend(s.item for s in report.successes)

        retry_next: list[T] = []
        for failure in report.failures:
            retryable = failure.exception is not None and policy.is_retryable(failure.exception)
            if retryable and not last_round:
                retry_next.append(failure.item)
            else:
                result.failures.append(failure)
                logger.warning(
                    "partial_retry.item_failed_permanently",
                    round=attempt + 1,
                    item=str(failure.item),
                    error=failure.error,
                    retryable=retryable,
                )

        pending = retry_next
        if pending:
            delay = policy.delay_for(attempt)
            logger.info(
                "partial_retry.retrying",
                round=attempt + 1,
                items_to_retry=len(pending),
                delay_seconds=delay,
            )
            await sleep(delay)

    logger.info(
        "partial_retry.completed",
        total=len(items),
        succeeded=len(result.successes),
        failed=len(result.failures),
        rounds=result.rounds,
    )
    return result
