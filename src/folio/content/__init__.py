"""Folio Content — the orchestration policy for content items."""

from folio.content.service import ContentService

__all__ = ["ContentService"]
