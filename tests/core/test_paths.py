"""Tests for path layout and the ContentItem value type."""

import pytest

from folio.core import paths
from folio.core.errors import ValidationError
from folio.core.models import ContentItem, MovePair


class TestPaths:
    def test_join_path_drops_empty_and_slashes(self):
        assert paths.join_path("12/", "/pages", "", "a.webp") == "12/pages/a.webp"

    def test_folder_and_pages(self):
        assert paths.folder_path(7) == "7"
        assert paths.pages_path(7) == "7/pages"

    @pytest.mark.parametrize("bad", [0, -1, True, "3", 1.5])
    def test_folder_rejects_non_positive_ints(self, bad):
        with pytest.raises(ValidationError):
            paths.folder_path(bad)

    def test_page_names_are_padded(self):
        assert paths.page_file_name(1) == "page_001.webp"
        assert paths.page_file_name(42) == "page_042.webp"
        assert paths.page_file_name(1234) == "page_1234.webp"
        assert paths.page_path(3, 9) == "3/pages/page_009.webp"

    def test_page_number_must_be_positive(self):
        with pytest.raises(ValidationError):
            paths.page_file_name(0)

    @pytest.mark.parametrize("name", ["", "  ", "a/b.webp", "..", "x\\y", "bad?.webp"])
    def test_invalid_file_names(self, name):
        with pytest.raises(ValidationError):
            paths.file_path(1, name)

    def test_relocate(self):
        assert paths.relocate("3/pages/a.webp", "3/pages", "4/pages") == "4/pages/a.webp"

    def test_relocate_rejects_foreign_prefix(self):
        with pytest.raises(ValidationError):
            paths.relocate("30/pages/a.webp", "3", "4")


class TestContentItem:
    def test_new_assigns_id_and_version(self):
        item = ContentItem.new("  Winter  ", 5)
        assert item.title == "Winter"
        assert item.version == 1
        assert len(item.id) == 36
        assert item.created_at.tzinfo is not None

    def test_new_validates(self):
        with pytest.raises(ValidationError):
            ContentItem.new("", 5)
        with pytest.raises(ValidationError):
            ContentItem.new("Title", 0)

    def test_derived_paths(self):
        item = ContentItem.new("T", 12)
        assert item.folder_path == "12"
        assert item.pages_path == "12/pages"
        assert item.file_path("cover.webp") == "12/pages/cover.webp"
        assert item.page_path(2) == "12/pages/page_002.webp"

    def test_to_dict(self):
        data = ContentItem.new("T", 1).to_dict()
        assert set(data) == {"id", "title", "issue_number", "version", "created_at"}


class TestMovePair:
    def test_reversed(self):
        pair = MovePair("a", "b")
        assert pair.reversed() == MovePair("b", "a")
        assert str(pair) == "a -> b"
