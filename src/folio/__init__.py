"""folio — saga-style coordination of versioned content items.

Keeps a content item's files (blob store) and its row (record store)
consistent without a shared transaction: retries for transient faults,
bounded-concurrency batches for bulk file work, compensating steps for
multi-system writes and version-checked updates for concurrent edits.

Packages
--------
  core           errors, models, paths, protocols, settings, logging, telemetry
  execution      retry, batch, partial retry
  storage        StorageGateway + blob-store adapters
  records        record-store adapters (SQLAlchemy, in-memory)
  orchestration  TransactionCoordinator
  content        ContentService
  cli            ``folio`` command
"""

__version__ = "0.1.0"
