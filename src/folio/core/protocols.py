"""
Collaborator contracts for the two external systems.

Manifesto:
    The blob store and the record store fail independently and share no
    transaction.  Folio only ever talks to them through these protocols so
    the orchestration code stays the same whether the backend is an
    in-memory fake, a local directory, or a managed cloud service.

    - **Async-only:** Every call may suspend on I/O
    - **Structural typing:** Any object with the right shape satisfies the protocol
    - **Classified faults:** Implementations raise ``FolioError`` subclasses
      (``StorageError`` / ``DatabaseError``) with an honest transient flag

Implementations:
    BlobStore    — folio.storage.memory.InMemoryBlobStore,
                   folio.storage.local.LocalBlobStore
    RecordStore  — folio.records.memory.InMemoryRecordStore,
                   folio.records.sql.SqlRecordStore
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from folio.core.models import ContentItem, StoredObject


@runtime_checkable
class BlobStore(Protocol):
    """Remote object store holding the files of content items."""

    async def upload(
        self,
        path: str,
        data: bytes,
        *,
        overwrite: bool = True,
        content_type: str | None = None,
    ) -> None:
        """Write one object.  Raises ``StorageError`` on failure."""
        ...

    async def remove(self, paths: Sequence[str]) -> None:
        """Delete up to 1000 objects in one call.  Missing paths are ignored."""
        ...

    async def list(
        self,
        prefix: str,
        *,
        limit: int = 1000,
        sort_by: str = "name",
    ) -> list[StoredObject]:
        """List entries under ``prefix``.

        Names are relative to ``prefix``.  Leaf entries are objects;
        non-leaf entries are folder placeholders.  ``limit`` caps the
        number of leaf entries.
        """
        ...

    async def move(self, source: str, target: str) -> None:
        """Move one object natively."""
        ...

    async def copy(self, source: str, target: str) -> None:
        """Copy one object, leaving the source in place."""
        ...


@runtime_checkable
class RecordStore(Protocol):
    """Relational store owning the durable ``ContentItem`` rows."""

    async def select_by_id(self, item_id: str) -> ContentItem | None:
        ...

    async def select_by_issue(self, issue_number: int) -> ContentItem | None:
        ...

    async def list_all(self) -> list[ContentItem]:
        ...

    async def insert(self, item: ContentItem) -> ContentItem:
        """Insert a row.  Raises ``UniqueViolationError`` on a duplicate key."""
        ...

    async def update_where(
        self,
        item_id: str,
        expected_version: int,
        patch: Mapping[str, Any],
    ) -> ContentItem | None:
        """Apply ``patch`` only if the stored version equals ``expected_version``.

        Returns the updated row, or ``None`` when zero rows matched.
        """
        ...

    async def delete_by_id(self, item_id: str) -> None:
        ...
