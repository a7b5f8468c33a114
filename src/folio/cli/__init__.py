"""folio command-line interface (typer + rich)."""

from folio.cli.app import app

__all__ = ["app"]
