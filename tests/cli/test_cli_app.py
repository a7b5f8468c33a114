"""
Tests for the folio CLI against a SQLite file and a local blob directory.
"""

from __future__ import annotations

import json

import pytest
import structlog
from typer.testing import CliRunner

from folio.cli.app import app

runner = CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Database and blob root under tmp_path, passed explicitly and via env."""
    db = tmp_path / "folio.db"
    blobs = tmp_path / "blobs"
    blobs.mkdir()
    monkeypatch.setenv("FOLIO_DATABASE_URL", f"sqlite:///{db}")
    monkeypatch.setenv("FOLIO_BLOB_ROOT", str(blobs))
    yield {"db": str(db), "blobs": blobs, "tmp": tmp_path}
    structlog.reset_defaults()


def invoke(*args: str):
    return runner.invoke(app, ["--log-level", "ERROR", *args])


def make_pages(tmp_path, count: int = 2):
    src = tmp_path / "src"
    src.mkdir(exist_ok=True)
    files = []
    for n in range(1, count + 1):
        p = src / f"page_{n:03d}.webp"
        p.write_bytes(f"page-{n}".encode())
        files.append(str(p))
    return files


def upload(env, title: str = "Spring", issue: int = 12, count: int = 2):
    files = make_pages(env["tmp"], count)
    return invoke("upload", title, str(issue), *files, "-d", env["db"], "-b", str(env["blobs"]), "--json")


class TestRootApp:
    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "upload" in result.output
        assert "rename" in result.output

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "folio 0.1.0" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)


class TestCommands:
    def test_init_db(self, env):
        result = invoke("init-db", "-d", env["db"])
        assert result.exit_code == 0, result.output
        assert "Schema ready" in result.output

    def test_upload_then_show(self, env):
        result = upload(env)
        assert result.exit_code == 0, result.output
        created = json.loads(result.output)
        assert created["issue_number"] == 12
        assert created["version"] == 1
        assert (env["blobs"] / "12" / "pages" / "page_002.webp").read_bytes() == b"page-2"

        shown = invoke("show", "12", "-d", env["db"], "--json")
        assert shown.exit_code == 0, shown.output
        assert json.loads(shown.output)["id"] == created["id"]

    def test_list(self, env):
        upload(env, "Spring", 12)
        upload(env, "Winter", 3)
        result = invoke("list", "-d", env["db"], "--json")
        assert result.exit_code == 0, result.output
        assert [i["issue_number"] for i in json.loads(result.output)] == [3, 12]

    def test_list_empty(self, env):
        result = invoke("list", "-d", env["db"])
        assert result.exit_code == 0
        assert "No items" in result.output

    def test_rename_moves_pages(self, env):
        upload(env)
        result = invoke("rename", "12", "13", "-t", "Spring (rev)", "-d", env["db"], "-b", str(env["blobs"]), "--json")
        assert result.exit_code == 0, result.output
        updated = json.loads(result.output)
        assert updated["issue_number"] == 13
        assert updated["version"] == 2
        assert updated["title"] == "Spring (rev)"
        assert (env["blobs"] / "13" / "pages" / "page_001.webp").exists()
        assert not (env["blobs"] / "12" / "pages" / "page_001.webp").exists()

    def test_rename_stale_version(self, env):
        upload(env)
        result = invoke("rename", "12", "13", "-e", "5", "-d", env["db"], "-b", str(env["blobs"]))
        assert result.exit_code == 1
        assert "VERSION_CONFLICT" in result.output
        assert (env["blobs"] / "12" / "pages" / "page_001.webp").exists()

    def test_upload_duplicate_issue(self, env):
        upload(env)
        result = upload(env, "Again", 12, count=1)
        assert result.exit_code == 1
        assert "DUPLICATE_ISSUE" in result.output

    def test_delete(self, env):
        upload(env)
        result = invoke("delete", "12", "--yes", "-d", env["db"], "-b", str(env["blobs"]))
        assert result.exit_code == 0, result.output
        assert "2 file(s)" in result.output
        assert not (env["blobs"] / "12").exists()
        assert invoke("show", "12", "-d", env["db"]).exit_code == 1

    def test_delete_aborts_without_confirmation(self, env):
        upload(env)
        result = runner.invoke(
            app, ["--log-level", "ERROR", "delete", "12", "-d", env["db"]], input="n\n"
        )
        assert result.exit_code == 1
        assert (env["blobs"] / "12" / "pages" / "page_001.webp").exists()

    def test_missing_issue(self, env):
        result = invoke("show", "99", "-d", env["db"])
        assert result.exit_code == 1
        assert "CONTENT_NOT_FOUND" in result.output
