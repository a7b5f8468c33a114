"""Retry executor with exponential backoff.

Runs one fallible async operation with bounded attempts.  The delay before
the retry that follows attempt ``n`` (0-based) is::

    delay(n) = min(initial_delay * backoff_multiplier ** n, max_delay)

Faults are classified by the policy: with ``retryable_kinds`` set, only
faults whose ``kind`` is listed are retried; otherwise the fault's own
transient flag decides (:func:`folio.core.errors.is_retryable`).

Example:
    >>> from folio.execution.retry import RetryPolicy, execute_with_retry
    >>>
    >>> policy = RetryPolicy(max_attempts=5, initial_delay=0.5, max_delay=8.0)
    >>> [policy.delay_for(n) for n in range(5)]
    [0.5, 1.0, 2.0, 4.0, 8.0]
    >>> result = await execute_with_retry(lambda: store.upload(path, data), policy)
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from folio.core.errors import InvalidConfigError, error_kind, is_retryable
from folio.core.logging import get_logger

if TYPE_CHECKING:
    from folio.core.settings import FolioSettings

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]
OnRetry = Callable[[int, BaseException, float], None]

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    Attributes:
        max_attempts: Total attempts including the first one (1 disables retrying)
        initial_delay: Delay in seconds before the first retry
        max_delay: Cap applied to every computed delay
        backoff_multiplier: Growth factor per completed attempt
        retryable_kinds: Allow-list of error kinds; None defers to the transient flag
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_kinds: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise InvalidConfigError("max_attempts", self.max_attempts, "max_attempts must be >= 1")
        if self.initial_delay < 0:
            raise InvalidConfigError(
                "initial_delay", self.initial_delay, "initial_delay must be >= 0"
            )
        if self.max_delay < self.initial_delay:
            raise InvalidConfigError(
                "max_delay", self.max_delay, "max_delay must be >= initial_delay"
            )
        if self.backoff_multiplier < 1:
            raise InvalidConfigError(
                "backoff_multiplier", self.backoff_multiplier, "backoff_multiplier must be >= 1"
            )
        kinds = self.retryable_kinds
        if kinds is not None and not isinstance(kinds, frozenset):
            kinds = frozenset(kinds)
        # An empty allow-list means "no list given".
        object.__setattr__(self, "retryable_kinds", kinds or None)

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows 0-based ``attempt``."""
        return min(self.initial_delay * (self.backoff_multiplier ** attempt), self.max_delay)

    def is_retryable(self, error: BaseException) -> bool:
        if self.retryable_kinds is not None:
            return error_kind(error) in self.retryable_kinds
        return is_retryable(error)

    def with_kinds(self, kinds: Iterable[str]) -> RetryPolicy:
        """Copy of this policy that only retries the given kinds."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            backoff_multiplier=self.backoff_multiplier,
            retryable_kinds=frozenset(kinds),
        )

    @classmethod
    def from_settings(cls, settings: FolioSettings) -> RetryPolicy:
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay,
            max_delay=settings.retry_max_delay,
            backoff_multiplier=settings.retry_backoff_multiplier,
        )


NO_RETRY = RetryPolicy(max_attempts=1, initial_delay=0.0, max_delay=0.0)

# Remote writes: 3 attempts, 1s then 2s, never more than 10s.
UPLOAD_POLICY = RetryPolicy(max_attempts=3, initial_delay=1.0, max_delay=10.0, backoff_multiplier=2.0)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    sleep: SleepFn = asyncio.sleep,
    on_retry: OnRetry | None = None,
    name: str | None = None,
) -> T:
    """Run ``operation`` until it succeeds, fails permanently, or attempts run out.

    Args:
        operation: Zero-argument coroutine function
        policy: Retry policy (default: ``RetryPolicy()``)
        sleep: Awaitable used for backoff waits
        on_retry: Called as ``(attempt, error, delay)`` before each wait
        name: Label used in log events

    Returns:
        The first successful result.

    Raises:
        The fault itself when it is not retryable, or the last fault once
        ``max_attempts`` is exhausted.
    """
    policy = policy or RetryPolicy()
    label = name or getattr(operation, "__name__", "operation")

    attempt = 0
    while True:
        try:
            result = await operation()
        except Exception as e:
            if not policy.is_retryable(e):
                logger.warning(
                    "retry.non_retryable",
                    operation=label,
                    attempt=attempt + 1,
                    kind=error_kind(e),
                    error=str(e),
                )
                raise

            if attempt >= policy.max_attempts - 1:
                logger.error(
                    "retry.exhausted",
                    operation=label,
                    attempts=policy.max_attempts,
                    kind=error_kind(e),
                    error=str(e),
                )
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                "retry.attempt_failed",
                operation=label,
                attempt=attempt + 1,
                max_attempts=policy.max_attempts,
                delay_seconds=delay,
                kind=error_kind(e),
                error=str(e),
            )
            if on_retry:
                on_retry(attempt + 1, e, delay)

            await sleep(delay)
            attempt += 1
            continue

        if attempt > 0:
            logger.info(
                "retry.succeeded_after_retry",
                operation=label,
                attempt=attempt + 1,
                max_attempts=policy.max_attempts,
            )
        return result


def with_retry(
    policy: RetryPolicy | None = None,
    on_retry: OnRetry | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator factory adding retry logic to an async function.

    Example:
        >>> @with_retry(RetryPolicy(max_attempts=3))
        ... async def fetch_listing(prefix):
        ...     return await store.list(prefix)
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await execute_with_retry(
                lambda: func(*args, **kwargs),
                policy,
                on_retry=on_retry,
                name=func.__qualname__,
            )

        return wrapper

    return decorator
