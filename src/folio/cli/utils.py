"""
CLI utility helpers — service wiring and output formatting.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Coroutine, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from folio.content.service import ContentService
from folio.core.errors import FolioError
from folio.core.models import ContentItem
from folio.core.settings import get_settings
from folio.records.sql import SqlRecordStore
from folio.storage.gateway import StorageGateway
from folio.storage.local import LocalBlobStore

T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)


# ── Wiring ───────────────────────────────────────────────────────────────


def database_url(database: str | None) -> str:
    """Accept a SQLAlchemy URL or a plain SQLite file path."""
    if database is None:
        return get_settings().database_url
    if "://" in database:
        return database
    return f"sqlite:///{Path(database).expanduser()}"


def make_records(database: str | None = None) -> SqlRecordStore:
    records = SqlRecordStore.from_url(database_url(database))
    records.create_schema()
    return records


def make_service(database: str | None = None, blob_root: Path | None = None) -> ContentService:
    """Content service over ``SqlRecordStore`` + ``LocalBlobStore``."""
    settings = get_settings()
    store = LocalBlobStore(blob_root or settings.blob_root)
    gateway = StorageGateway.from_settings(store, settings)
    return ContentService(make_records(database), gateway)


def run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Print a ``FolioError`` as ``Error (KIND): message`` and exit 1."""
    try:
        yield
    except FolioError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.kind}): {e.message}")
        raise typer.Exit(code=1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def output_item(item: ContentItem, *, as_json: bool = False, title: str = "") -> None:
    data = item.to_dict()
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


def output_items(items: list[ContentItem], *, as_json: bool = False, title: str = "") -> None:
    if as_json:
        console.print_json(json.dumps([i.to_dict() for i in items], default=str))
        return
    if not items:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in ("issue_number", "title", "version", "id", "created_at"):
        table.add_column(col, overflow="fold")
    for item in items:
        table.add_row(
            str(item.issue_number),
            item.title,
            str(item.version),
            item.id,
            item.created_at.isoformat(),
        )
    console.print(table)
