"""Folio Storage — blob-store adapters and the storage gateway.

MODULE MAP
──────────
  gateway.py  ─ StorageGateway: retried uploads, chunked deletes, recursive list, batched moves
  memory.py   ─ InMemoryBlobStore (tests, dry runs; fault injection)
  local.py    ─ LocalBlobStore (directory on disk)
"""

from folio.storage.gateway import StorageGateway
from folio.storage.local import LocalBlobStore
from folio.storage.memory import InMemoryBlobStore

__all__ = ["InMemoryBlobStore", "LocalBlobStore", "StorageGateway"]
