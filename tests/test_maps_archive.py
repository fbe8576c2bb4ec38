"""Tests for maps/archive.py module.

Tests the ZIP archive codec used for map archives.
"""

import zipfile
import zlib
from unittest.mock import patch

import pytest

from mapbuilder.maps.archive import (
    ArchiveError,
    ZipArchiveWriter,
    ZipCodec,
    get_default_codec,
)


@pytest.fixture
def map_archive(tmp_path):
    """Create a small map archive."""
    path = tmp_path / "Test.w3x"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("war3map.lua", "function main() end")
        zf.writestr("war3map.w3e", b"\x00\x01terrain")
        zf.writestr("UI/", "")
        zf.writestr("UI/skin.txt", "skin")
    return path


class TestZipCodec:
    """Tests for ZipCodec class."""

    def test_default_codec_is_zip(self):
        """The default codec should handle ZIP archives."""
        assert isinstance(get_default_codec(), ZipCodec)

    def test_open_and_list(self, map_archive):
        """Should list file entries without directories."""
        handle = ZipCodec().open(map_archive)
        try:
            assert handle.list_files() == ["war3map.lua", "war3map.w3e", "UI/skin.txt"]
        finally:
            handle.close()

    def test_open_not_an_archive(self, tmp_path):
        """Should raise for files that are not archives."""
        path = tmp_path / "broken.w3x"
        path.write_text("not an archive")

        with pytest.raises(ArchiveError) as exc_info:
            ZipCodec().open(path)

        assert exc_info.value.code == "archive_open_error"


class TestZipArchive:
    """Tests for ZipArchive class."""

    def test_read_file(self, map_archive):
        """Should read entries, accepting backslash paths."""
        handle = ZipCodec().open(map_archive)
        try:
            assert handle.read_file("war3map.lua") == b"function main() end"
            assert handle.read_file("UI\\skin.txt") == b"skin"
        finally:
            handle.close()

    def test_read_missing_file(self, map_archive):
        """Should raise for missing entries."""
        handle = ZipCodec().open(map_archive)
        try:
            with pytest.raises(ArchiveError) as exc_info:
                handle.read_file("war3map.j")
            assert exc_info.value.code == "entry_not_found"
        finally:
            handle.close()

    def test_extract_all(self, map_archive, tmp_path):
        """Should extract every file entry."""
        dest = tmp_path / "out"
        handle = ZipCodec().open(map_archive)
        try:
            extracted = handle.extract_all(dest)
        finally:
            handle.close()

        assert sorted(extracted) == ["UI/skin.txt", "war3map.lua", "war3map.w3e"]
        assert (dest / "war3map.w3e").read_bytes() == b"\x00\x01terrain"
        assert (dest / "UI" / "skin.txt").read_text() == "skin"

    def test_extract_refuses_traversal(self, tmp_path):
        """Should refuse entries escaping the destination."""
        path = tmp_path / "evil.w3x"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("../escape.txt", "x")

        handle = ZipCodec().open(path)
        try:
            with pytest.raises(ArchiveError) as exc_info:
                handle.extract_all(tmp_path / "out")
            assert exc_info.value.code == "path_traversal"
        finally:
            handle.close()

        assert not (tmp_path / "escape.txt").exists()

    def test_backslash_entries(self, tmp_path):
        """Entries stored with backslashes should be listed and read normalized."""
        path = tmp_path / "Imported.w3x"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("war3mapImported\\icon.blp", b"BLP1 icon")

        handle = ZipCodec().open(path)
        try:
            assert handle.list_files() == ["war3mapImported/icon.blp"]
            assert handle.read_file("war3mapImported/icon.blp") == b"BLP1 icon"
            assert handle.read_file("war3mapImported\\icon.blp") == b"BLP1 icon"
            handle.extract_all(tmp_path / "out")
        finally:
            handle.close()

        assert (tmp_path / "out" / "war3mapImported" / "icon.blp").read_bytes() == (
            b"BLP1 icon"
        )

    @pytest.mark.parametrize(
        "error",
        [
            zlib.error("Error -3 while decompressing data"),
            RuntimeError("File is encrypted, password required for extraction"),
            NotImplementedError("That compression method is not supported"),
            EOFError(),
        ],
    )
    def test_read_errors_are_wrapped(self, map_archive, error):
        """Decompression failures should surface as ArchiveError."""
        handle = ZipCodec().open(map_archive)
        try:
            with patch.object(handle._zip, "read", side_effect=error):
                with pytest.raises(ArchiveError) as exc_info:
                    handle.read_file("war3map.lua")
            assert exc_info.value.code == "entry_read_error"
        finally:
            handle.close()

    def test_extract_errors_are_wrapped(self, map_archive, tmp_path):
        """Decompression failures during extraction should surface as ArchiveError."""
        handle = ZipCodec().open(map_archive)
        try:
            with patch.object(handle._zip, "open", side_effect=zlib.error("bad stream")):
                with pytest.raises(ArchiveError) as exc_info:
                    handle.extract_all(tmp_path / "out")
            assert exc_info.value.code == "extract_error"
        finally:
            handle.close()


class TestZipArchiveWriter:
    """Tests for ZipArchiveWriter class."""

    def test_later_additions_replace_earlier(self, tmp_path):
        """Adding the same path twice should keep the later content."""
        source = tmp_path / "disk.txt"
        source.write_text("from disk")

        writer = ZipArchiveWriter()
        writer.add_file("a.txt", source)
        writer.add_bytes("a.txt", b"inline")
        dest = writer.finalize(tmp_path / "out.w3x")

        with zipfile.ZipFile(dest) as zf:
            assert zf.namelist() == ["a.txt"]
            assert zf.read("a.txt") == b"inline"

    def test_add_missing_file_raises(self, tmp_path):
        """Should raise for missing source files."""
        writer = ZipArchiveWriter()
        with pytest.raises(ArchiveError) as exc_info:
            writer.add_file("a.txt", tmp_path / "missing.txt")
        assert exc_info.value.code == "source_not_found"

    def test_add_from_directory(self, tmp_path):
        """Should add every file keyed by its relative path."""
        root = tmp_path / "map"
        (root / "UI").mkdir(parents=True)
        (root / "war3map.lua").write_text("script")
        (root / "UI" / "skin.txt").write_text("skin")

        writer = ZipArchiveWriter()
        skipped = writer.add_from_directory(root)

        assert skipped == []
        assert sorted(writer.list_files()) == ["UI/skin.txt", "war3map.lua"]

    def test_add_from_handle_skips_unreadable(self, map_archive, tmp_path):
        """Entries that cannot be read should be reported, not fatal."""
        handle = ZipCodec().open(map_archive)
        original_read = handle.read_file

        def flaky_read(path):
            if path == "war3map.w3e":
                raise ArchiveError("corrupt entry", code="entry_read_error")
            return original_read(path)

        handle.read_file = flaky_read
        writer = ZipArchiveWriter()
        try:
            skipped = writer.add_from_handle(handle)
        finally:
            handle.close()

        assert [entry.path for entry in skipped] == ["war3map.w3e"]
        assert "corrupt entry" in skipped[0].reason
        assert sorted(writer.list_files()) == ["UI/skin.txt", "war3map.lua"]

    def test_finalize_failure_raises(self, tmp_path):
        """Should raise if the archive cannot be written."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        writer = ZipArchiveWriter()
        writer.add_bytes("a.txt", b"a")

        with pytest.raises(ArchiveError) as exc_info:
            writer.finalize(blocker / "out.w3x")
        assert exc_info.value.code == "finalize_error"
