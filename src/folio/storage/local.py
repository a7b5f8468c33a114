"""Filesystem-backed blob store.

Stores objects as plain files under a root directory, using the object path
as the relative file path.  Blocking filesystem calls run in a worker thread
via ``asyncio.to_thread`` so the event loop is never stalled.

Used by the ``folio`` CLI and for local development; a managed object store
plugs in through the same ``BlobStore`` protocol.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from collections.abc import Sequence
from pathlib import Path

from folio.core.errors import StorageError
from folio.core.logging import get_logger
from folio.core.models import StoredObject

logger = get_logger(__name__)

REMOVE_CEILING = 1000


def _translate(error: OSError, path: str, action: str) -> StorageError:
    if isinstance(error, FileNotFoundError):
        return StorageError(
            f"Object not found: {path}",
            kind="STORAGE_NOT_FOUND",
            retryable=False,
            path=path,
            cause=error,
        )
    if isinstance(error, FileExistsError):
        return StorageError(
            f"Object already exists: {path}",
            kind="STORAGE_ALREADY_EXISTS",
            retryable=False,
            path=path,
            cause=error,
        )
    if isinstance(error, PermissionError):
        return StorageError(
            f"Permission denied during {action}: {path}",
            kind="STORAGE_PERMISSION_DENIED",
            retryable=False,
            path=path,
            cause=error,
        )
    return StorageError(
        f"I/O error during {action} of {path}: {error}",
        kind="STORAGE_IO_ERROR",
        retryable=True,
        path=path,
        cause=error,
    )


class LocalBlobStore:
    """``BlobStore`` rooted at a local directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root).expanduser().resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.strip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise StorageError(
                f"Path escapes the store root: {path}",
                kind="STORAGE_INVALID_PATH",
                retryable=False,
                path=path,
            )
        return target

    # ── BlobStore ────────────────────────────────────────────────────

    async def upload(
        self,
        path: str,
        data: bytes,
        *,
        overwrite: bool = True,
        content_type: str | None = None,
    ) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb" if overwrite else "xb") as fh:
                fh.write(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise _translate(e, path, "upload") from e

    async def remove(self, paths: Sequence[str]) -> None:
        if len(paths) > REMOVE_CEILING:
            raise StorageError(
                f"Cannot remove {len(paths)} objects in one call (limit {REMOVE_CEILING})",
                kind="STORAGE_BATCH_TOO_LARGE",
                retryable=False,
            )
        targets = [(p, self._resolve(p)) for p in paths]

        def _unlink() -> None:
            for path, target in targets:
                try:
                    target.unlink(missing_ok=True)
                except OSError as e:
                    raise _translate(e, path, "remove") from e
                self._prune_empty_parents(target.parent)

        await asyncio.to_thread(_unlink)

    async def list(
        self,
        prefix: str,
        *,
        limit: int = 1000,
        sort_by: str = "name",
    ) -> list[StoredObject]:
        base = self._resolve(prefix)

        def _scan() -> list[StoredObject]:
            if not base.is_dir():
                return []
            entries = [
                StoredObject(name=child.name, is_leaf=False)
                for child in base.iterdir()
                if child.is_dir()
            ]
            leaves = sorted(f.relative_to(base).as_posix() for f in base.rglob("*") if f.is_file())
            entries += [StoredObject(name=n, is_leaf=True) for n in leaves[:limit]]
            if sort_by == "name":
                entries.sort(key=lambda e: e.name)
            return entries

        try:
            return await asyncio.to_thread(_scan)
        except OSError as e:
            raise _translate(e, prefix, "list") from e

    async def move(self, source: str, target: str) -> None:
        src, dst = self._resolve(source), self._resolve(target)

        def _move() -> None:
            dst.parent.mkdir(parents=True, exist_ok=True)
            os.replace(src, dst)
            self._prune_empty_parents(src.parent)

        try:
            await asyncio.to_thread(_move)
        except OSError as e:
            raise _translate(e, source, "move") from e

    async def copy(self, source: str, target: str) -> None:
        src, dst = self._resolve(source), self._resolve(target)

        def _copy() -> None:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dst)

        try:
            await asyncio.to_thread(_copy)
        except OSError as e:
            raise _translate(e, source, "copy") from e

    # ── Helpers ──────────────────────────────────────────────────────

    def _prune_empty_parents(self, directory: Path) -> None:
        # Object stores have no empty folders; keep the tree the same shape.
        while directory != self.root and self.root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent

    def read(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()
