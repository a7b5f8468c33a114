"""In-memory record store.

Behaves like the SQL store (unique issue numbers, version-checked
updates) without a database.  Tests use :meth:`InMemoryRecordStore.inject_fault`
to make individual operations fail, or :meth:`InMemoryRecordStore.on_call`
to run a hook first, e.g. to simulate a concurrent writer.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from folio.core.errors import DatabaseError, UniqueViolationError, ValidationError
from folio.core.models import ContentItem

UPDATABLE_FIELDS = frozenset({"title", "issue_number"})

Hook = Callable[[], Awaitable[None]]


class InMemoryRecordStore:
    def __init__(self) -> None:
        self._rows: dict[str, ContentItem] = {}
        self._faults: dict[str, list[tuple[BaseException, int | None]]] = {}
        self._hooks: dict[str, Hook] = {}
        self.calls: list[str] = []

    # ── Test helpers ─────────────────────────────────────────────────

    def inject_fault(
        self,
        operation: str,
        error: BaseException | None = None,
        *,
        times: int | None = None,
    ) -> None:
        """Make ``operation`` raise ``error`` (default: a retryable DatabaseError)."""
        if error is None:
            error = DatabaseError(f"Injected {operation} failure", retryable=True)
        self._faults.setdefault(operation, []).append((error, times))

    def on_call(self, operation: str, hook: Hook) -> None:
        """Await ``hook`` once, the next time ``operation`` is called."""
        self._hooks[operation] = hook

    def seed(self, item: ContentItem) -> ContentItem:
        self._rows[item.id] = item
        return item

    def calls_for(self, operation: str) -> int:
        return self.calls.count(operation)

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        hook = self._hooks.pop(operation, None)
        if hook is not None:
            await hook()
        faults = self._faults.get(operation)
        if faults:
            error, times = faults[0]
            if times is not None:
                if times <= 1:
                    faults.pop(0)
                else:
                    faults[0] = (error, times - 1)
            raise error

    def _issue_taken(self, issue_number: int, exclude_id: str | None = None) -> bool:
        return any(
            row.issue_number == issue_number and row.id != exclude_id for row in self._rows.values()
        )

    # ── RecordStore ──────────────────────────────────────────────────

    async def select_by_id(self, item_id: str) -> ContentItem | None:
        await self._enter("select_by_id")
        return self._rows.get(item_id)

    async def select_by_issue(self, issue_number: int) -> ContentItem | None:
        await self._enter("select_by_issue")
        for row in self._rows.values():
            if row.issue_number == issue_number:
                return row
        return None

    async def list_all(self) -> list[ContentItem]:
        await self._enter("list_all")
        return sorted(self._rows.values(), key=lambda r: r.issue_number)

    async def insert(self, item: ContentItem) -> ContentItem:
        await self._enter("insert")
        if item.id in self._rows:
            raise UniqueViolationError(f"Duplicate id: {item.id}", constraint="id")
        if self._issue_taken(item.issue_number):
            raise UniqueViolationError(
                f"Duplicate issue_number: {item.issue_number}", constraint="issue_number"
            )
        self._rows[item.id] = item
        return item

    async def update_where(
        self,
        item_id: str,
        expected_version: int,
        patch: Mapping[str, Any],
    ) -> ContentItem | None:
        await self._enter("update_where")
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update fields: {', '.join(sorted(unknown))}",
                field="patch",
                value=sorted(unknown),
            )
        row = self._rows.get(item_id)
        if row is None or row.version != expected_version:
            return None
        if "issue_number" in patch and self._issue_taken(patch["issue_number"], exclude_id=item_id):
            raise UniqueViolationError(
                f"Duplicate issue_number: {patch['issue_number']}", constraint="issue_number"
            )
        updated = dataclasses.replace(row, **patch, version=row.version + 1)
        self._rows[item_id] = updated
        return updated

    async def delete_by_id(self, item_id: str) -> None:
        await self._enter("delete_by_id")
        self._rows.pop(item_id, None)
