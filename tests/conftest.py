"""
Shared pytest fixtures for folio tests.

This module provides:
- In-memory blob and record stores with fault injection
- A recording sleep so backoff waits are instant and inspectable
- Telemetry / counter doubles
- A wired ContentService over the in-memory stores
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from folio.content.service import ContentService
from folio.core.models import ContentItem
from folio.core.settings import get_settings
from folio.core.telemetry import InMemoryCounter
from folio.records.memory import InMemoryRecordStore
from folio.storage.gateway import StorageGateway
from folio.storage.memory import InMemoryBlobStore


class RecordingSleep:
    """Drop-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingTelemetry:
    def __init__(self) -> None:
        self.exceptions: list[tuple[BaseException, dict[str, Any]]] = []
        self.breadcrumbs: list[tuple[str, dict[str, Any]]] = []

    def capture_exception(self, error: BaseException, **context: Any) -> None:
        self.exceptions.append((error, context))

    def add_breadcrumb(self, message: str, **data: Any) -> None:
        self.breadcrumbs.append((message, data))


class Flaky:
    """Async callable failing ``failures`` times with ``error`` before returning ``value``."""

    def __init__(self, failures: int, error: BaseException, value: Any = "ok") -> None:
        self.failures = failures
        self.error = error
        self.value = value
        self.calls = 0

    async def __call__(self, *args: Any) -> Any:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def gateway(blob_store: InMemoryBlobStore, sleep: RecordingSleep) -> StorageGateway:
    return StorageGateway(blob_store, sleep=sleep)


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    return RecordingTelemetry()


@pytest.fixture
def counter() -> InMemoryCounter:
    return InMemoryCounter()


@pytest.fixture
def service(
    record_store: InMemoryRecordStore,
    gateway: StorageGateway,
    telemetry: RecordingTelemetry,
    counter: InMemoryCounter,
) -> ContentService:
    return ContentService(record_store, gateway, telemetry=telemetry, counter=counter)


@pytest.fixture
def stored_item(record_store: InMemoryRecordStore, blob_store: InMemoryBlobStore) -> ContentItem:
    """Issue 12 with three pages and a cover, already persisted."""
    item = record_store.seed(ContentItem.new("Spring Issue", 12))
    for n in (1, 2, 3):
        blob_store.seed(item.page_path(n), f"page-{n}".encode())
    blob_store.seed("12/cover.webp", b"cover")
    return item


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'folio.db'}"


@pytest.fixture
def flaky() -> type[Flaky]:
    return Flaky
