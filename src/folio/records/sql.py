"""SQLAlchemy-backed record store.

``SqlRecordStore`` keeps content items in the ``folio_content_items``
table.  SQLAlchemy sessions are synchronous; each call runs in a worker
thread via ``asyncio.to_thread`` and opens its own short-lived session.

The version-checked write is a single statement::

    UPDATE folio_content_items
       SET ..., version = version + 1
     WHERE id = :id AND version = :expected

Zero affected rows means another writer got there first; the store
returns ``None`` and the caller raises the conflict.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import delete, event, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from folio.core.errors import DatabaseError, UniqueViolationError, ValidationError
from folio.core.logging import get_logger
from folio.core.models import ContentItem
from folio.records.tables import ContentItemTable, FolioBase

T = TypeVar("T")

UPDATABLE_FIELDS = frozenset({"title", "issue_number"})

logger = get_logger(__name__)


def create_folio_engine(
    url: str = "sqlite:///folio.db",
    *,
    echo: bool = False,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    SQLite connections may be used from worker threads, and an in-memory
    database is pinned to one shared connection so every thread sees the
    same data.
    """
    if not url.startswith("sqlite"):
        return _sa_create_engine(url, echo=echo, **kwargs)

    kwargs.setdefault("connect_args", {"check_same_thread": False})
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs.setdefault("poolclass", StaticPool)

    engine = _sa_create_engine(url, echo=echo, **kwargs)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def _translate(error: SQLAlchemyError, operation: str) -> DatabaseError:
    detail = str(getattr(error, "orig", None) or error)
    if isinstance(error, IntegrityError) and "UNIQUE" in detail.upper():
        return UniqueViolationError(
            f"Unique constraint violated during {operation}: {detail}",
            constraint="issue_number" if "issue_number" in detail else None,
            cause=error,
        )
    return DatabaseError(
        f"Database error during {operation}: {detail}",
        kind="DATABASE_OPERATIONAL" if isinstance(error, OperationalError) else None,
        retryable=isinstance(error, OperationalError),
        cause=error,
    )


class SqlRecordStore:
    """``RecordStore`` over a SQLAlchemy engine."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> SqlRecordStore:
        return cls(create_folio_engine(url, **kwargs))

    def create_schema(self) -> None:
        """Create the folio tables if they do not exist."""
        FolioBase.metadata.create_all(self.engine)
        logger.info("records.schema_created", url=self.engine.url.render_as_string(hide_password=True))

    async def _run(self, operation: str, fn: Callable[[Session], T]) -> T:
        def _in_session() -> T:
            with self._sessions() as session:
                try:
                    return fn(session)
                except SQLAlchemyError as e:
                    session.rollback()
                    raise _translate(e, operation) from e

        return await asyncio.to_thread(_in_session)

    # ── Reads ────────────────────────────────────────────────────────

    async def select_by_id(self, item_id: str) -> ContentItem | None:
        def _select(session: Session) -> ContentItem | None:
            row = session.get(ContentItemTable, item_id)
            return row.to_item() if row else None

        return await self._run("select_by_id", _select)

    async def select_by_issue(self, issue_number: int) -> ContentItem | None:
        def _select(session: Session) -> ContentItem | None:
            row = session.scalars(
                select(ContentItemTable).where(ContentItemTable.issue_number == issue_number)
            ).first()
            return row.to_item() if row else None

        return await self._run("select_by_issue", _select)

    async def list_all(self) -> list[ContentItem]:
        def _list(session: Session) -> list[ContentItem]:
            rows = session.scalars(
                select(ContentItemTable).order_by(ContentItemTable.issue_number)
            ).all()
            return [row.to_item() for row in rows]

        return await self._run("list_all", _list)

    # ── Writes ───────────────────────────────────────────────────────

    async def insert(self, item: ContentItem) -> ContentItem:
        def _insert(session: Session) -> ContentItem:
            row = ContentItemTable.from_item(item)
            session.add(row)
            session.commit()
            return row.to_item()

        return await self._run("insert", _insert)

    async def update_where(
        self,
        item_id: str,
        expected_version: int,
        patch: Mapping[str, Any],
    ) -> ContentItem | None:
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update fields: {', '.join(sorted(unknown))}",
                field="patch",
                value=sorted(unknown),
            )

        def _update(session: Session) -> ContentItem | None:
            result = session.execute(
                update(ContentItemTable)
                .where(
                    ContentItemTable.id == item_id,
                    ContentItemTable.version == expected_version,
                )
                .values(**patch, version=ContentItemTable.version + 1)
            )
            if result.rowcount == 0:
                session.rollback()
                return None
            session.commit()
            row = session.get(ContentItemTable, item_id, populate_existing=True)
            return row.to_item() if row else None

        return await self._run("update_where", _update)

    async def delete_by_id(self, item_id: str) -> None:
        def _delete(session: Session) -> None:
            session.execute(delete(ContentItemTable).where(ContentItemTable.id == item_id))
            session.commit()

        await self._run("delete_by_id", _delete)
