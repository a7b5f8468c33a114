"""Value types shared by the stores, the gateway and the content service."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from folio.core import paths
from folio.core.errors import ValidationError


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class ContentItem:
    """A versioned content item as stored in the record store.

    ``version`` starts at 1 and grows by exactly one on every successful
    mutation.  File locations are derived from ``issue_number``.
    """

    id: str
    title: str
    issue_number: int
    version: int = 1
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def new(cls, title: str, issue_number: int) -> ContentItem:
        """Build an unsaved item with a fresh id."""
        if not title or not title.strip():
            raise ValidationError("Title cannot be empty", field="title", value=title)
        paths.folder_path(issue_number)
        return cls(id=str(uuid.uuid4()), title=title.strip(), issue_number=issue_number)

    @property
    def folder_path(self) -> str:
        return paths.folder_path(self.issue_number)

    @property
    def pages_path(self) -> str:
        return paths.pages_path(self.issue_number)

    def file_path(self, name: str) -> str:
        return paths.file_path(self.issue_number, name)

    def page_path(self, page_number: int) -> str:
        return paths.page_path(self.issue_number, page_number)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "issue_number": self.issue_number,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ContentFile:
    """One file to upload alongside a content item."""

    name: str
    data: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StoredObject:
    """One entry returned by a blob-store listing."""

    name: str
    is_leaf: bool = True


@dataclass(frozen=True)
class MovePair:
    """Source and target path of one blob move."""

    source: str
    target: str

    def reversed(self) -> MovePair:
        return MovePair(source=self.target, target=self.source)

    def __str__(self) -> str:
        return f"{self.source} -> {self.target}"
