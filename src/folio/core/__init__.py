"""Folio Core -- errors, models, settings, logging and collaborator contracts.

Module Map
----------
  errors      Structured error hierarchy (FolioError, kinds, transient flag)
  models      ContentItem, ContentFile, StoredObject, MovePair
  paths       Blob-store path layout for content items
  protocols   BlobStore / RecordStore contracts
  telemetry   Injected crash-reporting sink and usage counters
  settings    FolioSettings (pydantic-settings, FOLIO_ prefix)
  logging     structlog configuration + LogContext
"""

from folio.core.errors import (
    ConflictError,
    ContentNotFoundError,
    DatabaseError,
    DuplicateIssueError,
    ErrorCategory,
    ErrorContext,
    FolioError,
    OrphanedRecordError,
    PartialBatchError,
    StorageError,
    TransactionError,
    TransientError,
    UniqueViolationError,
    ValidationError,
    VersionConflictError,
    is_retryable,
)
from folio.core.models import ContentFile, ContentItem, MovePair, StoredObject
from folio.core.protocols import BlobStore, RecordStore

__all__ = [
    "BlobStore",
    "ConflictError",
    "ContentFile",
    "ContentItem",
    "ContentNotFoundError",
    "DatabaseError",
    "DuplicateIssueError",
    "ErrorCategory",
    "ErrorContext",
    "FolioError",
    "MovePair",
    "OrphanedRecordError",
    "PartialBatchError",
    "RecordStore",
    "StorageError",
    "StoredObject",
    "TransactionError",
    "TransientError",
    "UniqueViolationError",
    "ValidationError",
    "VersionConflictError",
    "is_retryable",
]
