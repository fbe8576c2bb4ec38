"""Map containers: a read-only backing plus an overlay of staged files.

This module handles:
- Opening a map by name and classifying its backing (directory or archive)
- Reading files from the backing
- Staging file additions into the overlay
- Per-backing bulk copy and archive seeding used by the artifact writers

The backing is never modified. Staged files only take effect when the map
is written to a separate destination (see mapbuilder.maps.writer).
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from types import TracebackType

from mapbuilder.maps.archive import (
    ArchiveCodec,
    ArchiveError,
    ArchiveHandle,
    ArchiveWriter,
    get_default_codec,
)
from mapbuilder.maps.overlay import OverlayStore, normalize_path
from mapbuilder.types import SkippedEntry

logger = logging.getLogger(__name__)


class MapError(Exception):
    """Base error for map container operations."""

    def __init__(self, message: str, code: str = "map_error") -> None:
        super().__init__(message)
        self.code = code


class MapNotFoundError(MapError):
    """Raised when no map exists under the requested name."""

    def __init__(self, path: Path) -> None:
        super().__init__("map does not exist", code="map_not_found")
        self.path = path


class InvalidBackingKindError(MapError):
    """Raised when the map path is neither a directory nor a file."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            "map path is not a file or directory", code="invalid_backing_kind"
        )
        self.path = path


class ArchiveOpenError(MapError):
    """Raised when a map archive cannot be opened."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="archive_open_error")


class MapReadError(MapError):
    """Raised when a file cannot be read from a map."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="map_read_error")


class MapContainer(ABC):
    """A map: its read-only backing and the files staged on top of it."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.overlay = OverlayStore()

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """Read a file from the backing.

        Staged files are not visible here until the map is written.

        Raises:
            MapReadError: If the file cannot be read.
        """

    @abstractmethod
    def copy_backing_to(self, dest_dir: Path) -> list[str]:
        """Copy the whole backing into dest_dir.

        Returns:
            Relative paths of the copied files.

        Raises:
            OSError, ArchiveError: If the copy fails.
        """

    @abstractmethod
    def seed_archive(self, writer: ArchiveWriter) -> list[SkippedEntry]:
        """Add every backing file to an archive writer.

        Returns:
            Entries that could not be added.
        """

    def stage_inline(self, path: str, content: bytes | str) -> None:
        """Add a file with the given content when the map is written."""
        self.overlay.stage_inline(path, content)

    def stage_from_disk(self, archive_path: str, disk_path: Path | str) -> None:
        """Add a copy of disk_path at archive_path when the map is written."""
        self.overlay.stage_from_disk(archive_path, disk_path)

    def close(self) -> None:
        """Release resources held by the backing."""

    def __enter__(self) -> MapContainer:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class DirectoryMap(MapContainer):
    """Map backed by a directory tree."""

    def __init__(self, name: str, root: Path) -> None:
        super().__init__(name)
        self.root = root

    def read_file(self, path: str) -> bytes:
        file_path = self.root / normalize_path(path)
        try:
            return file_path.read_bytes()
        except OSError as e:
            raise MapReadError(f"Failed to read {file_path}: {e}") from e

    def copy_backing_to(self, dest_dir: Path) -> list[str]:
        logger.debug("Copying map directory %s -> %s", self.root, dest_dir)
        shutil.copytree(self.root, dest_dir, dirs_exist_ok=True)
        return [
            p.relative_to(self.root).as_posix()
            for p in sorted(self.root.rglob("*"))
            if p.is_file()
        ]

    def seed_archive(self, writer: ArchiveWriter) -> list[SkippedEntry]:
        return writer.add_from_directory(self.root)

    def __repr__(self) -> str:
        return f"DirectoryMap({self.name!r}, root={str(self.root)!r})"


class ArchiveMap(MapContainer):
    """Map backed by an opened archive."""

    def __init__(self, name: str, handle: ArchiveHandle) -> None:
        super().__init__(name)
        self.archive = handle

    def read_file(self, path: str) -> bytes:
        try:
            return self.archive.read_file(path)
        except ArchiveError as e:
            raise MapReadError(str(e)) from e

    def copy_backing_to(self, dest_dir: Path) -> list[str]:
        logger.debug("Extracting map archive %s -> %s", self.archive.path, dest_dir)
        return self.archive.extract_all(dest_dir)

    def seed_archive(self, writer: ArchiveWriter) -> list[SkippedEntry]:
        return writer.add_from_handle(self.archive)

    def close(self) -> None:
        self.archive.close()

    def __repr__(self) -> str:
        return f"ArchiveMap({self.name!r}, archive={str(self.archive.path)!r})"


def open_map(
    name: str,
    maps_dir: Path,
    codec: ArchiveCodec | None = None,
) -> MapContainer:
    """Open a map by name from the maps directory.

    Args:
        name: Map name, relative to maps_dir.
        maps_dir: Directory containing the project's maps.
        codec: Archive codec for archive-backed maps (default: ZIP).

    Returns:
        DirectoryMap if a directory exists at the path, ArchiveMap if a file does.

    Raises:
        MapNotFoundError: If nothing exists at the path.
        ArchiveOpenError: If the file cannot be opened as an archive.
        InvalidBackingKindError: If the path is neither a file nor a directory.
    """
    map_path = maps_dir / name

    if not map_path.exists():
        raise MapNotFoundError(map_path)

    if map_path.is_dir():
        logger.debug("Opening directory map: %s", map_path)
        return DirectoryMap(name, map_path)

    if map_path.is_file():
        logger.debug("Opening archive map: %s", map_path)
        if codec is None:
            codec = get_default_codec()
        try:
            handle = codec.open(map_path)
        except ArchiveError as e:
            raise ArchiveOpenError(str(e)) from e
        return ArchiveMap(name, handle)

    raise InvalidBackingKindError(map_path)


__all__ = [
    "ArchiveMap",
    "ArchiveOpenError",
    "DirectoryMap",
    "InvalidBackingKindError",
    "MapContainer",
    "MapError",
    "MapNotFoundError",
    "MapReadError",
    "open_map",
]
