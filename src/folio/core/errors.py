"""
Structured error types for folio.

Every fault that crosses a boundary (blob store, record store, transaction
coordinator, content service) is a :class:`FolioError`.  Instead of generic
exceptions that lose context, each error carries:

- **Kind:** Machine-readable code (``STORAGE_UPLOAD_FAILED``, ``VERSION_CONFLICT``)
- **Category:** What kind of error (storage, database, conflict, ...)
- **Retryable:** The transient flag read by the default retry predicate
- **Context:** Structured metadata (operation, item, path, step, ...)
- **Cause:** Chained underlying exception for root cause analysis

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                         FolioError                               │
        │         (kind, category, retryable, context, cause)              │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError     ValidationError     ConfigError              │
        │  (retryable=True)   (VALIDATION)        (CONFIG)                 │
        │                                          │                       │
        │                                     InvalidConfigError           │
        │                                                                  │
        │  StorageError       DatabaseError       ConflictError            │
        │  (STORAGE)          (DATABASE)          (CONFLICT)               │
        │                          │                   │                   │
        │                 UniqueViolationError   VersionConflictError      │
        │                                        DuplicateIssueError       │
        │                                                                  │
        │  TransactionError   TransactionStateError   PartialBatchError    │
        │  (ORCHESTRATION)    (ORCHESTRATION)         (STORAGE)            │
        │                                                                  │
        │  ContentNotFoundError      OrphanedRecordError                   │
        │  (NOT_FOUND)               (INCONSISTENT)                        │
        └─────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Raise generic Exception from a store adapter
    ✅ DO: Translate to a FolioError subclass and pass ``cause=``

    ❌ DON'T: Set retryable=True on conflicts or validation errors
    ✅ DO: Let the subclass ``default_retryable`` decide

Examples:
    >>> error = StorageError("Upload timed out", kind="STORAGE_TIMEOUT", retryable=True)
    >>> error.retryable
    True
    >>> error.with_context(path="12/pages/page_001.webp").context.path
    '12/pages/page_001.webp'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from folio.execution.batch import BatchFailure
    from folio.orchestration.transaction import RollbackResult


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    # Infrastructure (usually transient)
    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    STORAGE = "STORAGE"

    # Caller errors (never retryable)
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"

    # Orchestration
    ORCHESTRATION = "ORCHESTRATION"
    INCONSISTENT = "INCONSISTENT"

    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Typed fields cover the identifiers the content workflow cares about;
    anything else lands in ``metadata``.
    """

    operation: str | None = None
    item_id: str | None = None
    issue_number: int | None = None
    path: str | None = None
    step: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "item_id", "issue_number", "path", "step"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FolioError(Exception):
    """
    Base exception for all folio errors.

    Subclasses set ``default_kind``, ``default_category`` and
    ``default_retryable``; callers override per instance when a backend
    reports something more specific.

    Attributes:
        message: Technical message
        kind: Machine-readable error code
        category: ErrorCategory for routing
        retryable: Transient flag consulted by the retry executor
        context: ErrorContext metadata
        cause: Underlying exception, also set as ``__cause__``
    """

    default_kind: str = "INTERNAL_ERROR"
    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FolioError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StorageError("Failed").with_context(path="3/pages/a.webp")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, kind={self.kind})"


# =============================================================================
# TRANSIENT / INFRASTRUCTURE ERRORS
# =============================================================================


class TransientError(FolioError):
    """Temporary error that may succeed on retry."""

    default_kind = "TRANSIENT_ERROR"
    default_category = ErrorCategory.NETWORK
    default_retryable = True


class StorageError(FolioError):
    """Blob store failure.

    Store adapters decide the transient flag per failure (a timeout is
    retryable, a missing object is not); the default is retryable because
    most remote storage faults are.
    """

    default_kind = "STORAGE_ERROR"
    default_category = ErrorCategory.STORAGE
    default_retryable = True

    def __init__(self, message: str, *, path: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        if path is not None:
            self.context.path = path

    @property
    def path(self) -> str | None:
        return self.context.path


class DatabaseError(FolioError):
    """Record store failure."""

    default_kind = "DATABASE_ERROR"
    default_category = ErrorCategory.DATABASE
    default_retryable = True


class UniqueViolationError(DatabaseError):
    """Insert or update hit a unique constraint."""

    default_kind = "UNIQUE_VIOLATION"
    default_retryable = False

    def __init__(self, message: str, *, constraint: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.constraint = constraint


# =============================================================================
# CALLER ERRORS
# =============================================================================


class ValidationError(FolioError):
    """Input rejected before anything started. Never retryable."""

    default_kind = "VALIDATION_ERROR"
    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class ConfigError(FolioError):
    """Configuration error. Never retryable."""

    default_kind = "CONFIG_ERROR"
    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    default_kind = "INVALID_CONFIG"

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


class ContentNotFoundError(FolioError):
    """The content item does not exist in the record store."""

    default_kind = "CONTENT_NOT_FOUND"
    default_category = ErrorCategory.NOT_FOUND
    default_retryable = False

    def __init__(self, item_id: str):
        super().__init__(f"Content item not found: {item_id}")
        self.context.item_id = item_id


class ConflictError(FolioError):
    """Concurrent modification or duplicate key.

    The caller must re-read and resubmit; retrying the same request
    cannot succeed.
    """

    default_kind = "CONFLICT"
    default_category = ErrorCategory.CONFLICT
    default_retryable = False


class VersionConflictError(ConflictError):
    """Expected version does not match the stored version."""

    default_kind = "VERSION_CONFLICT"

    def __init__(
        self,
        message: str,
        *,
        item_id: str,
        expected_version: int,
        actual_version: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.context.item_id = item_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class DuplicateIssueError(ConflictError):
    """Another item already owns the issue number.

    ``detected_by`` is ``"precheck"`` when the best-effort lookup caught it
    and ``"constraint"`` when the record store's unique constraint did.
    """

    default_kind = "DUPLICATE_ISSUE"

    def __init__(
        self,
        message: str,
        *,
        issue_number: int,
        detected_by: str = "precheck",
        **kwargs: Any,
    ):
        if detected_by == "constraint":
            kwargs.setdefault("kind", "DUPLICATE_ISSUE_CONSTRAINT")
        super().__init__(message, **kwargs)
        self.context.issue_number = issue_number
        self.detected_by = detected_by


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================


class TransactionStateError(FolioError):
    """Coordinator used in a state that does not allow the call."""

    default_kind = "TRANSACTION_STATE"
    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


class TransactionError(FolioError):
    """A transaction step failed; rollback has already been attempted.

    The message names the failed step, the original fault, and the
    rollback outcome.  When any compensation failed it also states that
    manual cleanup may be required.
    """

    default_kind = "TRANSACTION_FAILED"
    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        failed_step: str,
        cause: BaseException,
        rollback: RollbackResult,
        **kwargs: Any,
    ):
        if not rollback.succeeded:
            kwargs.setdefault("kind", "TRANSACTION_ROLLBACK_INCOMPLETE")
        super().__init__(message, cause=cause, **kwargs)
        self.context.step = failed_step
        self.failed_step = failed_step
        self.rollback = rollback

    @property
    def rollback_succeeded(self) -> bool:
        return self.rollback.succeeded

    @property
    def manual_cleanup_required(self) -> bool:
        return not self.rollback.succeeded

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["failed_step"] = self.failed_step
        result["rollback_succeeded"] = self.rollback.succeeded
        if self.rollback.errors:
            result["rollback_errors"] = [
                {"step": e.step, "error": e.error} for e in self.rollback.errors
            ]
        return result


class PartialBatchError(FolioError):
    """Some items of a batch failed.

    Raised only by callers that treat the outcome as fatal; the batch
    processor itself reports failures as data.
    """

    default_kind = "PARTIAL_BATCH_FAILURE"
    default_category = ErrorCategory.STORAGE
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        total: int,
        failures: list[BatchFailure],
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.total = total
        self.failures = failures

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def success_count(self) -> int:
        return self.total - len(self.failures)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["total"] = self.total
        result["failed"] = self.failure_count
        result["failures"] = [{"item": str(f.item), "error": f.error} for f in self.failures]
        return result


class OrphanedRecordError(FolioError):
    """Files were deleted but the record could not be.

    The record now references storage that no longer exists and needs
    manual reconciliation.
    """

    default_kind = "RECORD_DELETE_AFTER_STORAGE"
    default_category = ErrorCategory.INCONSISTENT
    default_retryable = False

    def __init__(self, item_id: str, deleted_paths: list[str], cause: BaseException):
        super().__init__(
            f"Files for content item {item_id} were deleted but the record persists; "
            f"manual reconciliation required: {cause}",
            cause=cause,
        )
        self.context.item_id = item_id
        self.deleted_paths = deleted_paths


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable.

    Folio errors answer with their own transient flag.  Of the builtin
    exceptions only connection failures and timeouts are considered
    transient; anything else is a bug or a permanent failure.
    """
    if isinstance(error, FolioError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def error_kind(error: BaseException) -> str:
    """Machine-readable kind of any exception."""
    if isinstance(error, FolioError):
        return error.kind
    return type(error).__name__


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "FolioError",
    "TransientError",
    "StorageError",
    "DatabaseError",
    "UniqueViolationError",
    "ValidationError",
    "ConfigError",
    "InvalidConfigError",
    "ContentNotFoundError",
    "ConflictError",
    "VersionConflictError",
    "DuplicateIssueError",
    "TransactionStateError",
    "TransactionError",
    "PartialBatchError",
    "OrphanedRecordError",
    "is_retryable",
    "error_kind",
]
