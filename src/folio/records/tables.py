"""ORM table definitions for content items.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map`` so
``Mapped`` columns can use plain Python types.
"""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Integer, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from folio.core.models import ContentItem


class FolioBase(DeclarativeBase):
    """Shared declarative base for every folio table."""

    type_annotation_map = {
        str: Text,
        int: Integer,
        datetime.datetime: DateTime,
    }


class ContentItemTable(FolioBase):
    __tablename__ = "folio_content_items"
    __table_args__ = (UniqueConstraint("issue_number", name="uq_folio_content_items_issue_number"),)

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    issue_number: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)

    @classmethod
    def from_item(cls, item: ContentItem) -> ContentItemTable:
        return cls(
            id=item.id,
            title=item.title,
            issue_number=item.issue_number,
            version=item.version,
            created_at=item.created_at,
        )

    def to_item(self) -> ContentItem:
        created_at = self.created_at
        # SQLite drops tzinfo; values are always written in UTC.
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=datetime.UTC)
        return ContentItem(
            id=self.id,
            title=self.title,
            issue_number=self.issue_number,
            version=self.version,
            created_at=created_at,
        )
