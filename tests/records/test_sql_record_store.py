"""Tests for SqlRecordStore against SQLite."""

import dataclasses

import pytest
from sqlalchemy import inspect

from folio.core.errors import UniqueViolationError, ValidationError
from folio.core.models import ContentItem
from folio.core.protocols import RecordStore
from folio.records.sql import SqlRecordStore, create_folio_engine


@pytest.fixture(params=["memory", "file"])
def sql_store(request, sqlite_url):
    url = "sqlite://" if request.param == "memory" else sqlite_url
    store = SqlRecordStore(create_folio_engine(url))
    store.create_schema()
    yield store
    store.engine.dispose()


class TestSchema:
    def test_table_created(self, sql_store):
        assert "folio_content_items" in inspect(sql_store.engine).get_table_names()

    def test_satisfies_protocol(self, sql_store):
        assert isinstance(sql_store, RecordStore)


class TestSqlRecordStore:
    @pytest.mark.asyncio
    async def test_insert_and_select(self, sql_store):
        item = ContentItem.new("Spring", 3)
        await sql_store.insert(item)

        by_id = await sql_store.select_by_id(item.id)
        by_issue = await sql_store.select_by_issue(3)

        assert by_id == by_issue
        assert by_id.title == "Spring"
        assert by_id.version == 1
        assert by_id.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_missing_rows(self, sql_store):
        assert await sql_store.select_by_id("nope") is None
        assert await sql_store.select_by_issue(404) is None

    @pytest.mark.asyncio
    async def test_unique_issue_number(self, sql_store):
        await sql_store.insert(ContentItem.new("A", 3))
        with pytest.raises(UniqueViolationError) as exc_info:
            await sql_store.insert(ContentItem.new("B", 3))
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_list_all_ordered_by_issue(self, sql_store):
        for issue in (5, 1, 3):
            await sql_store.insert(ContentItem.new(f"Issue {issue}", issue))
        assert [i.issue_number for i in await sql_store.list_all()] == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_update_where_matching_version(self, sql_store):
        item = await sql_store.insert(ContentItem.new("Old", 3))
        updated = await sql_store.update_where(item.id, 1, {"issue_number": 4, "title": "New"})
        assert updated.issue_number == 4
        assert updated.title == "New"
        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_update_where_stale_version_is_noop(self, sql_store):
        item = await sql_store.insert(ContentItem.new("Old", 3))
        await sql_store.update_where(item.id, 1, {"title": "First"})

        assert await sql_store.update_where(item.id, 1, {"title": "Second"}) is None
        stored = await sql_store.select_by_id(item.id)
        assert stored.title == "First"
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_update_where_unknown_field(self, sql_store):
        item = await sql_store.insert(ContentItem.new("Old", 3))
        with pytest.raises(ValidationError):
            await sql_store.update_where(item.id, 1, {"version": 9})

    @pytest.mark.asyncio
    async def test_update_to_taken_issue(self, sql_store):
        await sql_store.insert(ContentItem.new("A", 1))
        b = await sql_store.insert(ContentItem.new("B", 2))
        with pytest.raises(UniqueViolationError):
            await sql_store.update_where(b.id, 1, {"issue_number": 1})

    @pytest.mark.asyncio
    async def test_delete_by_id(self, sql_store):
        item = await sql_store.insert(ContentItem.new("A", 1))
        await sql_store.delete_by_id(item.id)
        assert await sql_store.select_by_id(item.id) is None

    @pytest.mark.asyncio
    async def test_insert_returns_stored_row(self, sql_store):
        item = dataclasses.replace(ContentItem.new("A", 1), version=1)
        stored = await sql_store.insert(item)
        assert stored.version == 1
