"""In-memory blob store.

Deterministic ``BlobStore`` for tests, dry runs and local tooling.  It
records every call, tracks how many calls were in flight at once, and can
be told to fail specific calls::

    store = InMemoryBlobStore()
    store.inject_fault("remove", call_number=2)          # 2nd remove fails
    store.inject_fault("upload", path="3/pages/c.webp")  # every upload of that path
    store.inject_fault("move", times=1, error=StorageError("flaky", retryable=True))

Listings return every leaf below the prefix (names relative to it) plus a
non-leaf placeholder for each immediate subfolder, mirroring object stores
that expose folders as pseudo-entries.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from folio.core.errors import StorageError
from folio.core.models import StoredObject

REMOVE_CEILING = 1000


@dataclass
class BlobCall:
    """One recorded call."""

    operation: str
    args: tuple[Any, ...]


@dataclass
class StoredBlob:
    data: bytes
    content_type: str | None = None


@dataclass
class _Fault:
    operation: str
    error: BaseException
    path: str | None = None
    call_number: int | None = None
    times: int | None = None
    fired: int = field(default=0)

    def matches(self, operation: str, paths: Sequence[str], call_number: int) -> bool:
        if operation != self.operation:
            return False
        if self.times is not None and self.fired >= self.times:
            return False
        if self.call_number is not None and call_number != self.call_number:
            return False
        if self.path is not None and self.path not in paths:
            return False
        return True


class InMemoryBlobStore:
    """Dict-backed ``BlobStore`` with call recording and fault injection.

    Args:
        latency: Seconds each call suspends for (0 still yields to the loop)
        supports_move: When False, native ``move`` always fails so callers
            exercise their copy-then-delete fallback
    """

    def __init__(self, *, latency: float = 0.0, supports_move: bool = True) -> None:
        self._objects: dict[str, StoredBlob] = {}
        self._faults: list[_Fault] = []
        self._counts: dict[str, int] = {}
        self.latency = latency
        self.supports_move = supports_move
        self.calls: list[BlobCall] = []
        self.in_flight = 0
        self.max_in_flight = 0

    # ── Test helpers ─────────────────────────────────────────────────

    def inject_fault(
        self,
        operation: str,
        error: BaseException | None = None,
        *,
        path: str | None = None,
        call_number: int | None = None,
        times: int | None = None,
    ) -> None:
        """Make matching calls raise ``error`` (default: a retryable StorageError)."""
        if error is None:
            error = StorageError(
                f"Injected {operation} failure", kind="STORAGE_INJECTED", retryable=True, path=path
            )
        self._faults.append(
            _Fault(operation=operation, error=error, path=path, call_number=call_number, times=times)
        )

    def clear_faults(self) -> None:
        self._faults.clear()

    def calls_for(self, operation: str) -> list[BlobCall]:
        return [c for c in self.calls if c.operation == operation]

    def seed(self, path: str, data: bytes = b"", content_type: str | None = None) -> None:
        """Put an object in place without recording a call."""
        self._objects[path] = StoredBlob(data=data, content_type=content_type)

    def exists(self, path: str) -> bool:
        return path in self._objects

    def read(self, path: str) -> bytes:
        return self._objects[path].data

    def paths(self) -> list[str]:
        return sorted(self._objects)

    # ── BlobStore ────────────────────────────────────────────────────

    async def upload(
        self,
        path: str,
        data: bytes,
        *,
        overwrite: bool = True,
        content_type: str | None = None,
    ) -> None:
        async with self._call("upload", (path,), [path]):
            if not overwrite and path in self._objects:
                raise StorageError(
                    f"Object already exists: {path}",
                    kind="STORAGE_ALREADY_EXISTS",
                    retryable=False,
                    path=path,
                )
            self._objects[path] = StoredBlob(data=bytes(data), content_type=content_type)

    async def remove(self, paths: Sequence[str]) -> None:
        paths = list(paths)
        async with self._call("remove", (tuple(paths),), paths):
            if len(paths) > REMOVE_CEILING:
                raise StorageError(
                    f"Cannot remove {len(paths)} objects in one call (limit {REMOVE_CEILING})",
                    kind="STORAGE_BATCH_TOO_LARGE",
                    retryable=False,
                )
            for path in paths:
                self._objects.pop(path, None)

    async def list(
        self,
        prefix: str,
        *,
        limit: int = 1000,
        sort_by: str = "name",
    ) -> list[StoredObject]:
        async with self._call("list", (prefix,), [prefix]):
            base = prefix.rstrip("/") + "/" if prefix else ""
            leaves = sorted(p[len(base):] for p in self._objects if p.startswith(base))
            folders = sorted({name.split("/", 1)[0] for name in leaves if "/" in name})
            # ``limit`` caps leaves; folder placeholders come on top.
            entries = [StoredObject(name=f, is_leaf=False) for f in folders]
            entries += [StoredObject(name=n, is_leaf=True) for n in leaves[:limit]]
            if sort_by == "name":
                entries.sort(key=lambda e: e.name)
            return entries

    async def move(self, source: str, target: str) -> None:
        async with self._call("move", (source, target), [source, target]):
            if not self.supports_move:
                raise StorageError(
                    "Native move is not supported",
                    kind="STORAGE_MOVE_UNSUPPORTED",
                    retryable=False,
                    path=source,
                )
            blob = self._require(source)
            self._objects[target] = blob
            del self._objects[source]

    async def copy(self, source: str, target: str) -> None:
        async with self._call("copy", (source, target), [source, target]):
            blob = self._require(source)
            self._objects[target] = StoredBlob(data=blob.data, content_type=blob.content_type)

    # ── Internals ────────────────────────────────────────────────────

    def _require(self, path: str) -> StoredBlob:
        try:
            return self._objects[path]
        except KeyError:
            raise StorageError(
                f"Object not found: {path}", kind="STORAGE_NOT_FOUND", retryable=False, path=path
            ) from None

    def _call(self, operation: str, args: tuple[Any, ...], paths: Sequence[str]) -> _CallScope:
        self.calls.append(BlobCall(operation=operation, args=args))
        self._counts[operation] = self._counts.get(operation, 0) + 1
        return _CallScope(self, operation, paths, self._counts[operation])


class _CallScope:
    """Tracks in-flight calls, applies latency and fires injected faults."""

    def __init__(
        self, store: InMemoryBlobStore, operation: str, paths: Sequence[str], call_number: int
    ) -> None:
        self._store = store
        self._operation = operation
        self._paths = paths
        self._call_number = call_number

    async def __aenter__(self) -> None:
        store = self._store
        store.in_flight += 1
        store.max_in_flight = max(store.max_in_flight, store.in_flight)
        try:
            await asyncio.sleep(store.latency)
            for fault in store._faults:
                if fault.matches(self._operation, self._paths, self._call_number):
                    fault.fired += 1
                    raise fault.error
        except BaseException:
            store.in_flight -= 1
            raise

    async def __aexit__(self, *exc_info: Any) -> None:
        self._store.in_flight -= 1
