"""Tests for maps/container.py module.

Tests opening maps and reading from their backing.
"""

import os
import zipfile
import zlib
from unittest.mock import MagicMock, patch

import pytest

from mapbuilder.maps.archive import ArchiveError
from mapbuilder.maps.container import (
    ArchiveMap,
    ArchiveOpenError,
    DirectoryMap,
    InvalidBackingKindError,
    MapNotFoundError,
    MapReadError,
    open_map,
)
from mapbuilder.maps.overlay import InlineFile


@pytest.fixture
def maps_dir(tmp_path):
    """Create a maps directory with a directory map and an archive map."""
    maps = tmp_path / "maps"
    dir_map = maps / "Folder.w3x"
    dir_map.mkdir(parents=True)
    (dir_map / "war3map.lua").write_text("-- folder script")

    with zipfile.ZipFile(maps / "Packed.w3x", "w") as zf:
        zf.writestr("war3map.lua", "-- packed script")

    return maps


class TestOpenMap:
    """Tests for open_map function."""

    def test_directory_backed(self, maps_dir):
        """A directory should open as a DirectoryMap."""
        container = open_map("Folder.w3x", maps_dir)
        assert isinstance(container, DirectoryMap)
        assert container.root == maps_dir / "Folder.w3x"
        assert container.name == "Folder.w3x"

    def test_archive_backed(self, maps_dir):
        """A file should open as an ArchiveMap."""
        with open_map("Packed.w3x", maps_dir) as container:
            assert isinstance(container, ArchiveMap)
            assert not isinstance(container, DirectoryMap)

    def test_missing_map(self, maps_dir):
        """A missing map should fail with a not-found error."""
        with pytest.raises(MapNotFoundError) as exc_info:
            open_map("bar", maps_dir)

        assert str(exc_info.value) == "map does not exist"
        assert exc_info.value.code == "map_not_found"

    def test_missing_map_never_touches_codec(self, maps_dir):
        """No archive should be opened for a missing map."""
        codec = MagicMock()
        with pytest.raises(MapNotFoundError):
            open_map("bar", maps_dir, codec=codec)
        codec.open.assert_not_called()

    def test_unreadable_archive(self, maps_dir):
        """A file that is not an archive should fail to open."""
        (maps_dir / "Broken.w3x").write_text("garbage")

        with pytest.raises(ArchiveOpenError) as exc_info:
            open_map("Broken.w3x", maps_dir)

        assert exc_info.value.code == "archive_open_error"

    def test_codec_failure_is_wrapped(self, maps_dir):
        """Codec errors should surface as ArchiveOpenError."""
        codec = MagicMock()
        codec.open.side_effect = ArchiveError("bad header")

        with pytest.raises(ArchiveOpenError, match="bad header"):
            open_map("Packed.w3x", maps_dir, codec=codec)

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="requires mkfifo")
    def test_invalid_backing_kind(self, maps_dir):
        """A path that is neither file nor directory should be rejected."""
        os.mkfifo(maps_dir / "Pipe.w3x")

        with pytest.raises(InvalidBackingKindError) as exc_info:
            open_map("Pipe.w3x", maps_dir)

        assert str(exc_info.value) == "map path is not a file or directory"


class TestReadFile:
    """Tests for reading files from a map's backing."""

    def test_read_from_directory(self, maps_dir):
        """Should read from the directory backing."""
        container = open_map("Folder.w3x", maps_dir)
        assert container.read_file("war3map.lua") == b"-- folder script"

    def test_read_from_archive(self, maps_dir):
        """Should read from the archive backing."""
        with open_map("Packed.w3x", maps_dir) as container:
            assert container.read_file("war3map.lua") == b"-- packed script"

    def test_read_missing_from_directory(self, maps_dir):
        """Should raise MapReadError for missing files."""
        container = open_map("Folder.w3x", maps_dir)
        with pytest.raises(MapReadError):
            container.read_file("war3map.j")

    def test_read_missing_from_archive(self, maps_dir):
        """Should raise MapReadError for missing entries."""
        with open_map("Packed.w3x", maps_dir) as container:
            with pytest.raises(MapReadError):
                container.read_file("war3map.j")

    def test_read_backslash_entry_from_archive(self, maps_dir):
        """Archive entries stored with backslashes should be readable."""
        with zipfile.ZipFile(maps_dir / "Imported.w3x", "w") as zf:
            zf.writestr("war3mapImported\\config.lua", "-- config")

        with open_map("Imported.w3x", maps_dir) as container:
            assert container.read_file("war3mapImported/config.lua") == b"-- config"

    def test_read_damaged_entry_from_archive(self, maps_dir):
        """A damaged archive entry should raise MapReadError."""
        with open_map("Packed.w3x", maps_dir) as container:
            with patch.object(
                container.archive._zip,
                "read",
                side_effect=zlib.error("invalid distance too far back"),
            ):
                with pytest.raises(MapReadError, match="invalid distance"):
                    container.read_file("war3map.lua")

    def test_staged_files_are_not_visible(self, maps_dir):
        """Reads should only see the backing, not staged files."""
        container = open_map("Folder.w3x", maps_dir)
        container.stage_inline("war3map.lua", "-- staged")
        container.stage_inline("new.txt", "new")

        assert container.read_file("war3map.lua") == b"-- folder script"
        with pytest.raises(MapReadError):
            container.read_file("new.txt")


class TestStaging:
    """Tests for staging files into a map."""

    def test_staging_does_not_modify_backing(self, maps_dir, tmp_path):
        """Staging should only touch the overlay."""
        source = tmp_path / "extra.txt"
        source.write_text("extra")

        container = open_map("Folder.w3x", maps_dir)
        container.stage_inline("war3map.lua", "-- staged")
        container.stage_from_disk("extra.txt", source)

        assert (maps_dir / "Folder.w3x" / "war3map.lua").read_text() == "-- folder script"
        assert not (maps_dir / "Folder.w3x" / "extra.txt").exists()
        assert container.overlay.get("war3map.lua") == InlineFile(content=b"-- staged")
        assert "extra.txt" in container.overlay

    def test_close_releases_archive(self, maps_dir):
        """Closing an archive map should close its handle."""
        handle = MagicMock()
        container = ArchiveMap("Packed.w3x", handle)
        container.close()
        handle.close.assert_called_once()
