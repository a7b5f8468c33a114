"""Tests for StorageGateway over the in-memory blob store."""

import pytest

from folio.core.errors import (
    InvalidConfigError,
    PartialBatchError,
    StorageError,
    ValidationError,
)
from folio.core.models import MovePair
from folio.core.settings import FolioSettings
from folio.execution.retry import RetryPolicy
from folio.storage.gateway import StorageGateway
from folio.storage.memory import InMemoryBlobStore


def _paths(n: int, prefix: str = "1/pages") -> list[str]:
    return [f"{prefix}/f{i:04d}.webp" for i in range(n)]


class TestConstruction:
    def test_chunk_size_ceiling(self, blob_store):
        with pytest.raises(InvalidConfigError):
            StorageGateway(blob_store, delete_chunk_size=1001)

    def test_from_settings(self, blob_store):
        settings = FolioSettings(_env_file=None, move_batch_size=4, delete_chunk_size=50)
        gw = StorageGateway.from_settings(blob_store, settings)
        assert gw.move_batch_size == 4
        assert gw.delete_chunk_size == 50
        assert gw.upload_policy.max_attempts == 3


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_writes_object(self, gateway, blob_store):
        assert await gateway.upload("1/pages/a.webp", b"abc", content_type="image/webp") == "1/pages/a.webp"
        assert blob_store.read("1/pages/a.webp") == b"abc"

    @pytest.mark.asyncio
    async def test_transient_upload_failure_is_retried(self, gateway, blob_store, sleep):
        blob_store.inject_fault("upload", times=2)
        await gateway.upload("1/pages/a.webp", b"abc")
        assert len(blob_store.calls_for("upload")) == 3
        assert sleep.delays == [1.0, 2.0]
        assert blob_store.exists("1/pages/a.webp")

    @pytest.mark.asyncio
    async def test_exhausted_upload_names_path(self, gateway, blob_store, sleep):
        blob_store.inject_fault("upload")
        with pytest.raises(StorageError) as exc_info:
            await gateway.upload("1/pages/a.webp", b"abc")
        err = exc_info.value
        assert err.kind == "STORAGE_UPLOAD_FAILED"
        assert err.path == "1/pages/a.webp"
        assert "1/pages/a.webp" in err.message
        assert len(blob_store.calls_for("upload")) == 3

    @pytest.mark.asyncio
    async def test_non_retryable_upload_failure_is_not_retried(self, gateway, blob_store):
        blob_store.inject_fault("upload", StorageError("denied", retryable=False))
        with pytest.raises(StorageError, match="denied"):
            await gateway.upload("1/pages/a.webp", b"abc")
        assert len(blob_store.calls_for("upload")) == 1


class TestDeleteMany:
    @pytest.mark.asyncio
    async def test_empty_input_makes_no_call(self, gateway, blob_store):
        assert await gateway.delete_many([]) == 0
        assert blob_store.calls == []

    @pytest.mark.asyncio
    async def test_chunks_of_1000(self, gateway, blob_store):
        paths = _paths(2500)
        for p in paths:
            blob_store.seed(p)
        assert await gateway.delete_many(paths) == 2500
        removes = blob_store.calls_for("remove")
        assert [len(c.args[0]) for c in removes] == [1000, 1000, 500]
        assert blob_store.paths() == []

    @pytest.mark.asyncio
    async def test_failed_chunk_stops_and_is_named(self, gateway, blob_store):
        blob_store.inject_fault("remove", call_number=2)
        with pytest.raises(StorageError) as exc_info:
            await gateway.delete_many(_paths(2500))
        err = exc_info.value
        assert err.kind == "STORAGE_DELETE_FAILED"
        assert "chunk 2 of 3" in err.message
        assert len(blob_store.calls_for("remove")) == 2
        assert err.context.metadata["deleted"] == 1000

    @pytest.mark.asyncio
    async def test_custom_chunk_size(self, blob_store):
        gw = StorageGateway(blob_store, delete_chunk_size=2)
        await gw.delete_many(_paths(5))
        assert [len(c.args[0]) for c in blob_store.calls_for("remove")] == [2, 2, 1]


class TestDeleteWithPartialRetry:
    @pytest.mark.asyncio
    async def test_retries_only_failed_paths(self, gateway, blob_store, sleep):
        paths = _paths(4)
        for p in paths:
            blob_store.seed(p)
        blob_store.inject_fault("remove", path=paths[1], times=1)

        result = await gateway.delete_with_partial_retry(paths)

        assert sorted(result.successes) == paths
        assert result.rounds == 2
        assert len(blob_store.calls_for("remove")) == 5
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_zero_success_is_fatal_when_requested(self, gateway, blob_store):
        blob_store.inject_fault("remove", StorageError("locked", retryable=False))
        with pytest.raises(PartialBatchError) as exc_info:
            await gateway.delete_with_partial_retry(
                _paths(3), RetryPolicy(max_attempts=1), fail_if_none_deleted=True
            )
        assert exc_info.value.failure_count == 3
        assert exc_info.value.success_count == 0

    @pytest.mark.asyncio
    async def test_partial_failure_is_reported_not_raised(self, gateway, blob_store):
        paths = _paths(3)
        blob_store.inject_fault("remove", StorageError("locked", retryable=False), path=paths[0])
        result = await gateway.delete_with_partial_retry(paths, fail_if_none_deleted=True)
        assert [f.item for f in result.failures] == [paths[0]]
        assert len(result.successes) == 2


class TestListRecursive:
    @pytest.mark.asyncio
    async def test_single_call_leaves_only(self, gateway, blob_store):
        blob_store.seed("7/pages/page_001.webp")
        blob_store.seed("7/pages/page_002.webp")
        blob_store.seed("7/cover.webp")
        blob_store.seed("70/pages/page_001.webp")

        result = await gateway.list_recursive("7")

        assert result == ["7/cover.webp", "7/pages/page_001.webp", "7/pages/page_002.webp"]
        assert len(blob_store.calls_for("list")) == 1

    @pytest.mark.asyncio
    async def test_empty_prefix(self, gateway):
        assert await gateway.list_recursive("99") == []

    @pytest.mark.asyncio
    async def test_exactly_limit_files_is_complete(self, blob_store):
        for path in _paths(5, "7/pages"):
            blob_store.seed(path)
        gw = StorageGateway(blob_store, list_limit=5)
        assert len(await gw.list_recursive("7")) == 5

    @pytest.mark.asyncio
    async def test_more_files_than_limit_raises(self, blob_store):
        for path in _paths(6, "7/pages"):
            blob_store.seed(path)
        gw = StorageGateway(blob_store, list_limit=5)

        with pytest.raises(StorageError) as exc_info:
            await gw.list_recursive("7")

        assert exc_info.value.kind == "STORAGE_LIST_TRUNCATED"
        assert exc_info.value.retryable is False
        assert exc_info.value.path == "7"

    @pytest.mark.asyncio
    async def test_default_limit_over_a_thousand_files(self, gateway, blob_store):
        for path in _paths(1200, "7/pages"):
            blob_store.seed(path)
        with pytest.raises(StorageError, match="exceeds 1000 files"):
            await gateway.list_recursive("7")

    def test_limit_must_be_positive(self, blob_store):
        with pytest.raises(InvalidConfigError):
            StorageGateway(blob_store, list_limit=0)


class TestMove:
    @pytest.mark.asyncio
    async def test_native_move(self, gateway, blob_store):
        blob_store.seed("1/pages/a", b"a")
        await gateway.move_one(MovePair("1/pages/a", "2/pages/a"))
        assert blob_store.paths() == ["2/pages/a"]
        assert blob_store.calls_for("copy") == []

    @pytest.mark.asyncio
    async def test_falls_back_to_copy_then_remove(self, sleep):
        store = InMemoryBlobStore(supports_move=False)
        store.seed("1/pages/a", b"a")
        gw = StorageGateway(store, sleep=sleep)
        await gw.move_one(MovePair("1/pages/a", "2/pages/a"))
        assert store.paths() == ["2/pages/a"]
        assert [c.operation for c in store.calls] == ["move", "copy", "remove"]

    @pytest.mark.asyncio
    async def test_failed_copy_raises_move_failed(self, gateway, blob_store):
        with pytest.raises(StorageError) as exc_info:
            await gateway.move_one(MovePair("1/pages/missing", "2/pages/missing"))
        assert exc_info.value.kind == "STORAGE_MOVE_FAILED"
        assert exc_info.value.context.metadata["target"] == "2/pages/missing"

    @pytest.mark.asyncio
    async def test_failed_source_cleanup_is_only_a_warning(self, sleep):
        store = InMemoryBlobStore(supports_move=False)
        store.seed("1/pages/a", b"a")
        store.inject_fault("remove")
        gw = StorageGateway(store, sleep=sleep)
        pair = await gw.move_one(MovePair("1/pages/a", "2/pages/a"))
        assert pair.target == "2/pages/a"
        assert store.exists("2/pages/a")
        assert store.exists("1/pages/a")

    @pytest.mark.asyncio
    async def test_move_many_concurrency_and_tracking(self, sleep):
        store = InMemoryBlobStore(latency=0.001)
        moves = [MovePair(f"1/pages/{i}", f"2/pages/{i}") for i in range(25)]
        for m in moves:
            store.seed(m.source)
        moved = []
        gw = StorageGateway(store, sleep=sleep)

        result = await gw.move_many(moves, on_moved=moved.append)

        assert result == moves
        assert sorted(moved, key=str) == sorted(moves, key=str)
        assert store.max_in_flight == 10

    @pytest.mark.asyncio
    async def test_move_many_fails_together(self, gateway, blob_store):
        moves = [MovePair(f"1/pages/{i:02d}", f"2/pages/{i:02d}") for i in range(15)]
        for m in moves:
            if m.source != "1/pages/03":
                blob_store.seed(m.source)
        moved = []
        with pytest.raises(StorageError):
            await gateway.move_many(moves, on_moved=moved.append)
        # First window settled: nine realised, second window never started.
        assert len(moved) == 9
        assert all(m.source < "1/pages/10" for m in moved)
        assert blob_store.exists("1/pages/10")

    @pytest.mark.asyncio
    async def test_move_many_settled(self, gateway, blob_store):
        moves = [MovePair(f"1/pages/{i}", f"2/pages/{i}") for i in range(3)]
        blob_store.seed(moves[0].source)
        blob_store.seed(moves[2].source)
        report = await gateway.move_many_settled(moves)
        assert report.success_count == 2
        assert [f.item for f in report.failures] == [moves[1]]


class TestChunkValidation:
    @pytest.mark.asyncio
    async def test_zero_move_batch_size_rejected(self, blob_store):
        with pytest.raises(InvalidConfigError):
            StorageGateway(blob_store, move_batch_size=0)

    def test_chunked_validation_error_type(self):
        from folio.execution.batch import chunked

        with pytest.raises(ValidationError):
            list(chunked([1], -1))
