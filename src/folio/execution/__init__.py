"""Folio Execution — retry and bounded-concurrency batch primitives.

These helpers never make business decisions: they run operations and
surface classified faults to the caller.

MODULE MAP
──────────
  retry.py          ─ RetryPolicy + execute_with_retry (exponential backoff)
  batch.py          ─ process_batch (fail-together) / process_batch_with_errors (collect-all)
  partial_retry.py  ─ with_partial_retry (retry only the failed subset)
"""

from folio.execution.batch import (
    DELETE_CHUNK_SIZE,
    MOVE_BATCH_SIZE,
    BatchFailure,
    BatchResult,
    BatchSuccess,
    chunked,
    process_batch,
    process_batch_with_errors,
)
from folio.execution.partial_retry import PartialRetryResult, with_partial_retry
from folio.execution.retry import (
    NO_RETRY,
    UPLOAD_POLICY,
    RetryPolicy,
    execute_with_retry,
    with_retry,
)

__all__ = [
    "DELETE_CHUNK_SIZE",
    "MOVE_BATCH_SIZE",
    "NO_RETRY",
    "UPLOAD_POLICY",
    "BatchFailure",
    "BatchResult",
    "BatchSuccess",
    "PartialRetryResult",
    "RetryPolicy",
    "chunked",
    "execute_with_retry",
    "process_batch",
    "process_batch_with_errors",
    "with_partial_retry",
    "with_retry",
]
