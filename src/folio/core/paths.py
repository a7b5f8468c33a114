"""Blob-store path layout for content items.

Every item owns one folder named after its issue number::

    {issue}/                  folder_path
    {issue}/pages/            pages_path
    {issue}/pages/page_001.webp

Renaming an item moves every leaf under its folder to the new issue;
deleting it removes them.
"""

from __future__ import annotations

import re

from folio.core.errors import ValidationError

PAGES_FOLDER = "pages"
PAGE_PREFIX = "page_"
PAGE_PADDING = 3
PAGE_EXTENSION = ".webp"

_INVALID_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')


def join_path(*segments: str | int) -> str:
    """Join segments with ``/``, dropping empty segments and stray slashes."""
    parts = (str(s).strip("/") for s in segments)
    return "/".join(p for p in parts if p)


def folder_path(issue_number: int) -> str:
    if isinstance(issue_number, bool) or not isinstance(issue_number, int) or issue_number < 1:
        raise ValidationError(
            "Issue number must be a positive integer",
            field="issue_number",
            value=issue_number,
        )
    return str(issue_number)


def pages_path(issue_number: int) -> str:
    return join_path(folder_path(issue_number), PAGES_FOLDER)


def validate_file_name(name: str) -> str:
    """Reject names that would escape the pages folder."""
    if not name or not name.strip():
        raise ValidationError("File name cannot be empty", field="name", value=name)
    if "/" in name or "\\" in name or name in (".", "..") or _INVALID_CHARS.search(name):
        raise ValidationError("File name contains invalid characters", field="name", value=name)
    return name


def file_path(issue_number: int, name: str) -> str:
    return join_path(pages_path(issue_number), validate_file_name(name))


def page_file_name(page_number: int) -> str:
    """``page_001.webp`` style name for a 1-indexed page."""
    if page_number < 1:
        raise ValidationError(
            "Page number must be a positive integer", field="page_number", value=page_number
        )
    return f"{PAGE_PREFIX}{page_number:0{PAGE_PADDING}d}{PAGE_EXTENSION}"


def page_path(issue_number: int, page_number: int) -> str:
    return join_path(pages_path(issue_number), page_file_name(page_number))


def relocate(path: str, old_prefix: str, new_prefix: str) -> str:
    """Swap ``old_prefix`` for ``new_prefix`` at the start of ``path``."""
    if path != old_prefix and not path.startswith(old_prefix + "/"):
        raise ValidationError(
            f"Path {path!r} is not under {old_prefix!r}", field="path", value=path
        )
    return new_prefix + path[len(old_prefix):]
