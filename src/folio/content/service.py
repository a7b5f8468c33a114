"""Content service — versioned content items across blob and record stores.

Manifesto:
    A content item lives in two places that fail independently: its row in
    the record store and its files in the blob store.  The service owns the
    orchestration policy that keeps them consistent:

    - **Upload** writes files first, then the record; a failed insert
      deletes exactly the files that were written.
    - **Rename** checks the version before touching storage, moves every
      file of the item folder, then writes the record guarded by the version; a
      failed write moves the files back.
    - **Delete** is storage-first; a record that outlives its files is
      reported as an inconsistency, never hidden.

ARCHITECTURE
────────────
::

    ContentService
      ├── create(item)                    pre-check issue ─► insert(version=1)
      ├── upload_with_files(item, files)  pre-check issue ─► TransactionCoordinator
      │       "upload-files"   upload each  ⟲ delete uploaded subset
      │       "create-record"  create(item) ⟲ no-op
      ├── rename(item, new_issue, expected_version, new_title)
      │       load ─► version check ─► new-issue pre-check
      │       "move-files"     list folder ─► move_many ⟲ move realised pairs back
      │       "update-record"  update_where(version)    ⟲ no-op
      ├── delete(item)                    list ─► delete_many ─► delete_by_id
      └── get / find_by_issue / list_items

Related modules:
    folio.orchestration.transaction — step execution and rollback
    folio.storage.gateway           — every blob-store call
    folio.core.errors               — conflict / inconsistency faults
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence

from folio.core import paths
from folio.core.errors import (
    ContentNotFoundError,
    DuplicateIssueError,
    OrphanedRecordError,
    TransactionError,
    UniqueViolationError,
    ValidationError,
    VersionConflictError,
)
from folio.core.logging import LogContext, get_logger
from folio.core.models import ContentFile, ContentItem, MovePair
from folio.core.protocols import RecordStore
from folio.core.telemetry import NullCounter, NullTelemetry, TelemetrySink, UsageCounter
from folio.orchestration.transaction import TransactionCoordinator
from folio.storage.gateway import StorageGateway

logger = get_logger(__name__)


class ContentService:
    """Orchestrates content items across a record store and a storage gateway.

    Args:
        records: Record store holding ``ContentItem`` rows
        gateway: Storage gateway over the blob store
        telemetry: Receives partial rollbacks and orphaned records
        counter: Counts ``content.*`` usage events
    """

    def __init__(
        self,
        records: RecordStore,
        gateway: StorageGateway,
        *,
        telemetry: TelemetrySink | None = None,
        counter: UsageCounter | None = None,
    ):
        self._records = records
        self._gateway = gateway
        self._telemetry = telemetry or NullTelemetry()
        self._counter = counter or NullCounter()

    # ── Reads ────────────────────────────────────────────────────────

    async def get(self, item_id: str) -> ContentItem:
        item = await self._records.select_by_id(item_id)
        if item is None:
            raise ContentNotFoundError(item_id)
        return item

    async def find_by_issue(self, issue_number: int) -> ContentItem | None:
        return await self._records.select_by_issue(issue_number)

    async def list_items(self) -> list[ContentItem]:
        return await self._records.list_all()

    # ── Create ───────────────────────────────────────────────────────

    async def create(self, item: ContentItem) -> ContentItem:
        """Insert ``item`` as version 1.

        Raises:
            DuplicateIssueError: ``detected_by="precheck"`` when the lookup
                found the issue taken, ``detected_by="constraint"`` when the
                insert itself hit the unique constraint.
        """
        existing = await self._records.select_by_issue(item.issue_number)
        if existing is not None:
            raise DuplicateIssueError(
                f"Issue {item.issue_number} already exists",
                issue_number=item.issue_number,
            )

        try:
            created = await self._records.insert(dataclasses.replace(item, version=1))
        except UniqueViolationError as e:
            logger.warning(
                "content.create_constraint_conflict",
                item_id=item.id,
                issue_number=item.issue_number,
            )
            raise DuplicateIssueError(
                f"Issue {item.issue_number} already exists (unique constraint)",
                issue_number=item.issue_number,
                detected_by="constraint",
                cause=e,
            ) from e

        self._counter.increment("content.created")
        logger.info("content.created", item_id=created.id, issue_number=created.issue_number)
        return created

    # ── Upload ───────────────────────────────────────────────────────

    async def upload_with_files(self, item: ContentItem, files: Sequence[ContentFile]) -> ContentItem:
        """Upload ``files`` into the item's pages folder, then create the record."""
        targets = [(item.file_path(f.name), f) for f in files]
        names = [path for path, _ in targets]
        if len(set(names)) != len(names):
            raise ValidationError("Duplicate file names in upload", field="files")

        # Uploads overwrite, so a taken issue must be caught before any file lands
        # in the owner's folder. create() checks again inside the transaction.
        if await self._records.select_by_issue(item.issue_number) is not None:
            raise DuplicateIssueError(
                f"Issue {item.issue_number} already exists",
                issue_number=item.issue_number,
            )

        uploaded: list[str] = []
        created: list[ContentItem] = []

        async def upload_files() -> None:
            for path, f in targets:
                await self._gateway.upload(path, f.data, content_type=f.content_type)
                uploaded.append(path)

        async def delete_uploaded() -> None:
            await self._gateway.delete_many(list(uploaded))

        async def create_record() -> None:
            created.append(await self.create(item))

        tx = TransactionCoordinator("upload_with_files", telemetry=self._telemetry)
        tx.step("upload-files", upload_files, delete_uploaded)
        tx.step("create-record", create_record)

        with LogContext(operation="upload_with_files", item_id=item.id):
            self._telemetry.add_breadcrumb(
                "content.upload_started", item_id=item.id, files=len(targets)
            )
            try:
                await tx.execute()
            except TransactionError as e:
                logger.error(
                    "content.upload_failed",
                    failed_step=e.failed_step,
                    uploaded=len(uploaded),
                    rollback_succeeded=e.rollback_succeeded,
                )
                conflict = self._surface_conflict(e)
                if conflict is None:
                    raise
                raise conflict from e

            self._counter.increment("content.files_uploaded", len(uploaded))
            logger.info("content.uploaded", files=len(uploaded))
        return created[0]

    # ── Rename ───────────────────────────────────────────────────────

    async def rename(
        self,
        item: ContentItem,
        new_issue: int,
        expected_version: int,
        new_title: str | None = None,
    ) -> ContentItem:
        """Move an item to ``new_issue`` (and optionally retitle it).

        Raises:
            ContentNotFoundError: No stored row for ``item.id``.
            VersionConflictError: The stored version is not ``expected_version``,
                checked before any storage call and again by the guarded write.
            DuplicateIssueError: Another item owns ``new_issue``.
            TransactionError: Moving files failed; moved files were put back.
                A folder too large to list in one call
                (``STORAGE_LIST_TRUNCATED``) fails before anything moves.
        """
        paths.folder_path(new_issue)
        if new_title is not None and not new_title.strip():
            raise ValidationError("Title cannot be empty", field="title", value=new_title)

        current = await self._records.select_by_id(item.id)
        if current is None:
            raise ContentNotFoundError(item.id)
        if current.version != expected_version:
            raise VersionConflictError(
                f"Content item {item.id} was modified: expected version "
                f"{expected_version}, found {current.version}",
                item_id=item.id,
                expected_version=expected_version,
                actual_version=current.version,
            )

        issue_changes = new_issue != current.issue_number
        if issue_changes:
            owner = await self._records.select_by_issue(new_issue)
            if owner is not None and owner.id != current.id:
                raise DuplicateIssueError(f"Issue {new_issue} already exists", issue_number=new_issue)

        old_prefix = current.folder_path
        new_prefix = paths.folder_path(new_issue)
        moved: list[MovePair] = []
        updated: list[ContentItem] = []

        async def move_files() -> None:
            if not issue_changes:
                return
            sources = await self._gateway.list_recursive(old_prefix)
            pairs = [MovePair(s, paths.relocate(s, old_prefix, new_prefix)) for s in sources]
            logger.debug("content.moving_files", files=len(pairs))
            await self._gateway.move_many(pairs, on_moved=moved.append)

        async def move_back() -> None:
            if moved:
                await self._gateway.move_many([pair.reversed() for pair in moved])

        async def update_record() -> None:
            patch: dict[str, object] = {"issue_number": new_issue}
            if new_title is not None:
                patch["title"] = new_title.strip()
            try:
                row = await self._records.update_where(current.id, expected_version, patch)
            except UniqueViolationError as e:
                raise DuplicateIssueError(
                    f"Issue {new_issue} already exists (unique constraint)",
                    issue_number=new_issue,
                    detected_by="constraint",
                    cause=e,
                ) from e
            if row is None:
                raise VersionConflictError(
                    f"Content item {current.id} was modified concurrently "
                    f"(expected version {expected_version})",
                    item_id=current.id,
                    expected_version=expected_version,
                )
            updated.append(row)

        tx = TransactionCoordinator("rename", telemetry=self._telemetry)
        tx.step("move-files", move_files, move_back)
        tx.step("update-record", update_record)

        with LogContext(operation="rename", item_id=current.id):
            self._telemetry.add_breadcrumb(
                "content.rename_started",
                item_id=current.id,
                old_issue=current.issue_number,
                new_issue=new_issue,
            )
            try:
                await tx.execute()
            except TransactionError as e:
                logger.error(
                    "content.rename_failed",
                    failed_step=e.failed_step,
                    moved=len(moved),
                    rollback_succeeded=e.rollback_succeeded,
                )
                conflict = self._surface_conflict(e)
                if conflict is None:
                    raise
                raise conflict from e

            self._counter.increment("content.renamed")
            logger.info(
                "content.renamed",
                old_issue=current.issue_number,
                new_issue=new_issue,
                files_moved=len(moved),
                version=updated[0].version,
            )
        return updated[0]

    # ── Delete ───────────────────────────────────────────────────────

    async def delete(self, item: ContentItem) -> list[str]:
        """Delete every file of ``item``, then its record.

        Returns the deleted file paths.

        Raises:
            StorageError: File deletion failed; the record is untouched.
            OrphanedRecordError: Files are gone but the record could not be
                deleted and needs manual reconciliation.
        """
        with LogContext(operation="delete", item_id=item.id):
            self._telemetry.add_breadcrumb(
                "content.delete_started", item_id=item.id, issue_number=item.issue_number
            )
            files = await self._gateway.list_recursive(item.folder_path)
            try:
                await self._gateway.delete_many(files)
            except Exception as e:
                logger.error("content.delete_storage_failed", files=len(files), error=str(e))
                raise

            try:
                await self._records.delete_by_id(item.id)
            except Exception as e:
                orphan = OrphanedRecordError(item.id, files, e)
                logger.critical(
                    "content.delete_record_failed_after_storage",
                    issue_number=item.issue_number,
                    deleted_files=files,
                    error=str(e),
                )
                self._telemetry.capture_exception(
                    orphan, item_id=item.id, issue_number=item.issue_number
                )
                raise orphan from e

            self._counter.increment("content.deleted")
            logger.info("content.deleted", files=len(files))
        return files

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _surface_conflict(error: TransactionError) -> DuplicateIssueError | VersionConflictError | None:
        """Re-express a conflict raised inside a step as the same conflict kind.

        The message is the transaction's, so it carries the rollback outcome.
        """
        cause = error.cause
        if isinstance(cause, DuplicateIssueError):
            return DuplicateIssueError(
                error.message,
                issue_number=cause.context.issue_number,
                detected_by=cause.detected_by,
                cause=error,
            )
        if isinstance(cause, VersionConflictError):
            return VersionConflictError(
                error.message,
                item_id=cause.context.item_id,
                expected_version=cause.expected_version,
                actual_version=cause.actual_version,
                cause=error,
            )
        return None
