"""Folio Records — record-store adapters for content items.

MODULE MAP
──────────
  tables.py  ─ FolioBase + ContentItemTable (SQLAlchemy 2.0 ORM)
  sql.py     ─ SqlRecordStore + create_folio_engine
  memory.py  ─ InMemoryRecordStore (tests, dry runs; fault injection)
"""

from folio.records.memory import InMemoryRecordStore
from folio.records.sql import SqlRecordStore, create_folio_engine
from folio.records.tables import ContentItemTable, FolioBase

__all__ = [
    "ContentItemTable",
    "FolioBase",
    "InMemoryRecordStore",
    "SqlRecordStore",
    "create_folio_engine",
]
