"""Storage gateway — every remote file operation the content workflow needs.

WHY
───
The blob store offers single-object primitives with its own limits: batch
removes are capped at 1000 paths, native moves may be unsupported, uploads
fail transiently.  The gateway turns those primitives into the bulk
operations the content service composes into transactions, and classifies
every failure as a :class:`StorageError` with a precise ``kind``.

ARCHITECTURE
────────────
::

    upload ───────────► execute_with_retry(UPLOAD_POLICY)
    delete_many ──────► chunked(paths, 1000) ─► remove() one chunk at a time
    list_recursive ───► list(prefix) ─► leaves ─► "prefix/name"
    move_many ────────► process_batch(10) ─► move_one
    move_many_settled ► process_batch_with_errors(10) ─► move_one
                                                    │
                         native move ── fails ──► copy ─► remove([source])
    delete_with_partial_retry ─► with_partial_retry(remove([path]))

Failure kinds:
    STORAGE_UPLOAD_FAILED   upload exhausted or hit a non-retryable fault
    STORAGE_DELETE_FAILED   a delete chunk failed; later chunks never ran
    STORAGE_MOVE_FAILED     native move and the copy fallback both failed
    STORAGE_LIST_TRUNCATED  a prefix holds more files than one listing returns
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from folio.core.errors import InvalidConfigError, PartialBatchError, StorageError, is_retryable
from folio.core.logging import get_logger
from folio.core.models import MovePair
from folio.core.paths import join_path
from folio.core.protocols import BlobStore
from folio.execution.batch import (
    DELETE_CHUNK_SIZE,
    MOVE_BATCH_SIZE,
    BatchResult,
    ProgressFn,
    chunked,
    process_batch,
    process_batch_with_errors,
)
from folio.execution.partial_retry import PartialRetryResult, with_partial_retry
from folio.execution.retry import UPLOAD_POLICY, RetryPolicy, SleepFn, execute_with_retry

if TYPE_CHECKING:
    from folio.core.settings import FolioSettings

OnMoved = Callable[[MovePair], None]

logger = get_logger(__name__)


class StorageGateway:
    """Bulk file operations over a :class:`BlobStore`.

    Args:
        store: The blob store adapter
        upload_policy: Retry policy for uploads
        move_batch_size: Concurrent moves per window
        delete_chunk_size: Paths per ``remove`` call (at most 1000)
        list_limit: Most files ``list_recursive`` accepts under one prefix
        sleep: Awaitable used for retry backoff
    """

    def __init__(
        self,
        store: BlobStore,
        *,
        upload_policy: RetryPolicy = UPLOAD_POLICY,
        move_batch_size: int = MOVE_BATCH_SIZE,
        delete_chunk_size: int = DELETE_CHUNK_SIZE,
        list_limit: int = 1000,
        sleep: SleepFn = asyncio.sleep,
    ):
        if not 1 <= delete_chunk_size <= DELETE_CHUNK_SIZE:
            raise InvalidConfigError(
                "delete_chunk_size",
                delete_chunk_size,
                f"delete_chunk_size must be between 1 and {DELETE_CHUNK_SIZE}",
            )
        if move_batch_size < 1:
            raise InvalidConfigError("move_batch_size", move_batch_size, "move_batch_size must be >= 1")
        if list_limit < 1:
            raise InvalidConfigError("list_limit", list_limit, "list_limit must be >= 1")
        self.store = store
        self.upload_policy = upload_policy
        self.move_batch_size = move_batch_size
        self.delete_chunk_size = delete_chunk_size
        self.list_limit = list_limit
        self._sleep = sleep

    @classmethod
    def from_settings(cls, store: BlobStore, settings: FolioSettings) -> StorageGateway:
        return cls(
            store,
            upload_policy=RetryPolicy.from_settings(settings),
            move_batch_size=settings.move_batch_size,
            delete_chunk_size=settings.delete_chunk_size,
            list_limit=settings.list_limit,
        )

    # ── Upload ───────────────────────────────────────────────────────

    async def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str | None = None,
        overwrite: bool = True,
    ) -> str:
        """Upload one object with retry; returns ``path``."""
        try:
            await execute_with_retry(
                lambda: self.store.upload(
                    path, data, overwrite=overwrite, content_type=content_type
                ),
                self.upload_policy,
                sleep=self._sleep,
                name="storage.upload",
            )
        except Exception as e:
            raise StorageError(
                f"Failed to upload {path}: {e}",
                kind="STORAGE_UPLOAD_FAILED",
                retryable=is_retryable(e),
                path=path,
                cause=e,
            ) from e
        logger.debug("storage.uploaded", path=path, size=len(data))
        return path

    # ── Delete ───────────────────────────────────────────────────────

    async def delete_many(self, paths: Sequence[str]) -> int:
        """Remove ``paths`` in sequential chunks; returns the number removed.

        Raises:
            StorageError: ``STORAGE_DELETE_FAILED`` naming the failed chunk.
                Chunks before it are already gone; chunks after it never ran.
        """
        if not paths:
            return 0

        chunks = list(chunked(paths, self.delete_chunk_size))
        deleted = 0
        for index, chunk in enumerate(chunks, start=1):
            try:
                await self.store.remove(chunk)
            except Exception as e:
                logger.error(
                    "storage.delete_chunk_failed",
                    chunk=index,
                    chunks=len(chunks),
                    chunk_size=len(chunk),
                    deleted_before_failure=deleted,
                    error=str(e),
                )
                raise StorageError(
                    f"Batch delete failed at chunk {index} of {len(chunks)}: {e}",
                    kind="STORAGE_DELETE_FAILED",
                    retryable=is_retryable(e),
                    cause=e,
                ).with_context(chunk=index, chunks=len(chunks), deleted=deleted) from e
            deleted += len(chunk)

        logger.debug("storage.deleted", count=deleted, chunks=len(chunks))
        return deleted

    async def delete_with_partial_retry(
        self,
        paths: Sequence[str],
        policy: RetryPolicy | None = None,
        *,
        fail_if_none_deleted: bool = False,
    ) -> PartialRetryResult[str]:
        """Delete each path on its own, retrying only the ones that failed.

        Failures are reported in the result.  With ``fail_if_none_deleted``
        a run where every path failed raises :class:`PartialBatchError`.
        """

        async def _remove_one(path: str) -> None:
            await self.store.remove([path])

        result = await with_partial_retry(
            list(paths),
            _remove_one,
            policy or self.upload_policy,
            batch_size=self.move_batch_size,
            sleep=self._sleep,
        )
        if fail_if_none_deleted and result.failures and not result.successes:
            raise PartialBatchError(
                f"Failed to delete any of {result.total} files",
                total=result.total,
                failures=result.failures,
            )
        return result

    # ── List ─────────────────────────────────────────────────────────

    async def list_recursive(self, prefix: str) -> list[str]:
        """Full paths of every object under ``prefix``.

        One listing call asks for ``list_limit + 1`` leaves; getting more
        than ``list_limit`` back means the listing cannot be complete, and
        callers that delete or move the result must not act on part of it.

        Raises:
            StorageError: ``STORAGE_LIST_TRUNCATED`` (not retryable).
        """
        entries = await self.store.list(prefix, limit=self.list_limit + 1, sort_by="name")
        leaves = [join_path(prefix, entry.name) for entry in entries if entry.is_leaf]
        if len(leaves) > self.list_limit:
            logger.error("storage.list_truncated", prefix=prefix, limit=self.list_limit)
            raise StorageError(
                f"Listing of {prefix} exceeds {self.list_limit} files",
                kind="STORAGE_LIST_TRUNCATED",
                retryable=False,
                path=prefix,
            ).with_context(limit=self.list_limit)
        return leaves

    # ── Move ─────────────────────────────────────────────────────────

    async def move_one(self, pair: MovePair) -> MovePair:
        """Move one object, falling back to copy + remove."""
        try:
            await self.store.move(pair.source, pair.target)
            return pair
        except Exception as move_error:
            logger.debug(
                "storage.move_fallback_to_copy",
                source=pair.source,
                target=pair.target,
                error=str(move_error),
            )

        try:
            await self.store.copy(pair.source, pair.target)
        except Exception as e:
            raise StorageError(
                f"Failed to move {pair.source} to {pair.target}: {e}",
                kind="STORAGE_MOVE_FAILED",
                retryable=is_retryable(e),
                path=pair.source,
                cause=e,
            ).with_context(target=pair.target) from e

        try:
            await self.store.remove([pair.source])
        except Exception as e:
            # Target is in place; the stray source is left for cleanup.
            logger.warning(
                "storage.move_source_cleanup_failed",
                source=pair.source,
                target=pair.target,
                error=str(e),
            )
        return pair

    async def move_many(
        self,
        moves: Sequence[MovePair],
        *,
        on_moved: OnMoved | None = None,
        on_progress: ProgressFn | None = None,
    ) -> list[MovePair]:
        """Move every pair, ``move_batch_size`` at a time; fail together.

        ``on_moved`` fires for each pair as soon as it is realised, including
        siblings of a failing pair in the same window, so callers can
        compensate exactly what happened.
        """
        return await process_batch(
            moves,
            self._tracked(on_moved),
            self.move_batch_size,
            on_progress=on_progress,
        )

    async def move_many_settled(
        self,
        moves: Sequence[MovePair],
        *,
        on_moved: OnMoved | None = None,
    ) -> BatchResult[MovePair, MovePair]:
        """Move every pair and report per-pair outcomes instead of raising."""
        return await process_batch_with_errors(moves, self._tracked(on_moved), self.move_batch_size)

    def _tracked(self, on_moved: OnMoved | None) -> Callable[[MovePair], Awaitable[MovePair]]:
        async def _move(pair: MovePair) -> MovePair:
            moved = await self.move_one(pair)
            if on_moved:
                on_moved(moved)
            return moved

        return _move
