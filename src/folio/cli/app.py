"""
Root Typer application for the folio CLI.

Commands run against a SQL record store (``--database`` or
``FOLIO_DATABASE_URL``) and a local blob directory (``--blob-root`` or
``FOLIO_BLOB_ROOT``).
"""

from __future__ import annotations

import mimetypes
from pathlib import Path

import typer

from folio.cli.utils import (
    console,
    handle_errors,
    make_records,
    make_service,
    output_item,
    output_items,
    run,
)
from folio.content.service import ContentService
from folio.core.errors import ContentNotFoundError
from folio.core.logging import configure_logging
from folio.core.models import ContentFile, ContentItem
from folio.core.settings import get_settings

app = typer.Typer(
    name="folio",
    help="folio — versioned content items across blob and record stores.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

DatabaseOption = typer.Option(None, "--database", "-d", help="Database URL or SQLite path")
BlobRootOption = typer.Option(None, "--blob-root", "-b", help="Blob store directory")
JsonOption = typer.Option(False, "--json", help="JSON output")


def _version_callback(value: bool) -> None:
    if value:
        from folio import __version__

        typer.echo(f"folio {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override FOLIO_LOG_LEVEL"),
) -> None:
    """folio CLI — upload, rename, delete and inspect content items."""
    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)


async def _require_issue(service: ContentService, issue: int) -> ContentItem:
    item = await service.find_by_issue(issue)
    if item is None:
        raise ContentNotFoundError(f"issue {issue}")
    return item


@app.command("init-db")
def init_db(database: str | None = DatabaseOption) -> None:
    """Create the record-store schema."""
    with handle_errors():
        records = make_records(database)
    console.print(f"[green]Schema ready[/green] at {records.engine.url.render_as_string(hide_password=True)}")


@app.command()
def upload(
    title: str = typer.Argument(..., help="Item title"),
    issue: int = typer.Argument(..., help="Issue number"),
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Files to upload"),
    database: str | None = DatabaseOption,
    blob_root: Path | None = BlobRootOption,
    json_out: bool = JsonOption,
) -> None:
    """Upload files for a new item and create its record."""
    with handle_errors():
        service = make_service(database, blob_root)
        item = ContentItem.new(title, issue)
        content = [
            ContentFile(name=p.name, data=p.read_bytes(), content_type=mimetypes.guess_type(p.name)[0])
            for p in files
        ]
        created = run(service.upload_with_files(item, content))
    output_item(created, as_json=json_out, title=f"Uploaded {len(content)} file(s)")


@app.command()
def rename(
    issue: int = typer.Argument(..., help="Current issue number"),
    new_issue: int = typer.Argument(..., help="New issue number"),
    expected_version: int | None = typer.Option(
        None, "--expected-version", "-e", help="Fail unless the stored version matches"
    ),
    title: str | None = typer.Option(None, "--title", "-t", help="New title"),
    database: str | None = DatabaseOption,
    blob_root: Path | None = BlobRootOption,
    json_out: bool = JsonOption,
) -> None:
    """Move an item to a new issue number."""
    with handle_errors():
        service = make_service(database, blob_root)

        async def _rename() -> ContentItem:
            item = await _require_issue(service, issue)
            version = expected_version if expected_version is not None else item.version
            return await service.rename(item, new_issue, version, new_title=title)

        updated = run(_rename())
    output_item(updated, as_json=json_out, title="Renamed")


@app.command()
def delete(
    issue: int = typer.Argument(..., help="Issue number"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    database: str | None = DatabaseOption,
    blob_root: Path | None = BlobRootOption,
) -> None:
    """Delete an item's files, then its record."""
    if not yes:
        typer.confirm(f"Delete issue {issue} and all its files?", abort=True)
    with handle_errors():
        service = make_service(database, blob_root)

        async def _delete() -> list[str]:
            return await service.delete(await _require_issue(service, issue))

        removed = run(_delete())
    console.print(f"[green]Deleted[/green] issue {issue} ({len(removed)} file(s))")


@app.command()
def show(
    issue: int = typer.Argument(..., help="Issue number"),
    database: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Show one item."""
    with handle_errors():
        service = make_service(database)
        item = run(_require_issue(service, issue))
    output_item(item, as_json=json_out, title=f"Issue {issue}")


@app.command("list")
def list_items(
    database: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """List every item by issue number."""
    with handle_errors():
        service = make_service(database)
        items = run(service.list_items())
    output_items(items, as_json=json_out, title="Content Items")
