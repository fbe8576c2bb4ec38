"""Archive codec for map archives.

This module handles:
- Opening map archives for reading and extraction
- Collecting entries into a new archive and writing it out
- Safe extraction (no entries escaping the destination)

Maps are stored as ZIP containers. Other codecs can be plugged in by
implementing the ArchiveCodec protocol.
"""

from __future__ import annotations

import logging
import os
import zipfile
import zlib
from pathlib import Path
from typing import Protocol

from mapbuilder.maps.overlay import DiskFile, InlineFile, PendingFile, normalize_path
from mapbuilder.types import SkippedEntry

logger = logging.getLogger(__name__)

# Errors zipfile raises for damaged, encrypted or unsupported entries
ZIP_READ_ERRORS = (
    zipfile.BadZipFile,
    zlib.error,
    RuntimeError,
    NotImplementedError,
    EOFError,
    OSError,
)


class ArchiveError(Exception):
    """Raised when an archive operation fails."""

    def __init__(self, message: str, code: str = "archive_error") -> None:
        super().__init__(message)
        self.code = code


class ArchiveHandle(Protocol):
    """An opened, read-only map archive."""

    path: Path

    def list_files(self) -> list[str]: ...

    def read_file(self, path: str) -> bytes: ...

    def extract_all(self, dest_dir: Path) -> list[str]: ...

    def close(self) -> None: ...


class ArchiveWriter(Protocol):
    """Collects entries for a new archive."""

    def add_bytes(self, path: str, data: bytes) -> None: ...

    def add_file(self, path: str, disk_path: Path) -> None: ...

    def add_from_handle(self, handle: ArchiveHandle) -> list[SkippedEntry]: ...

    def add_from_directory(self, root: Path) -> list[SkippedEntry]: ...

    def list_files(self) -> list[str]: ...

    def finalize(self, dest: Path) -> Path: ...


class ArchiveCodec(Protocol):
    """Factory for archive handles and writers."""

    def open(self, path: Path) -> ArchiveHandle: ...

    def new_writer(self) -> ArchiveWriter: ...


def _safe_member_path(dest_dir: Path, name: str) -> Path:
    """Resolve an archive member name under dest_dir.

    Raises:
        ArchiveError: If the member would be written outside dest_dir.
    """
    member_path = Path(normalize_path(name))
    if member_path.is_absolute() or ".." in member_path.parts:
        raise ArchiveError(
            f"Refusing to extract {name}: path traversal detected",
            code="path_traversal",
        )
    return dest_dir / member_path


class ZipArchive:
    """Read-only handle on a ZIP map archive.

    Entry names are exposed normalized (forward slashes); map archives
    commonly store them with backslashes.
    """

    def __init__(self, path: Path, zip_file: zipfile.ZipFile) -> None:
        self.path = path
        self._zip = zip_file
        # normalized name -> name as stored in the archive
        self._names: dict[str, str] = {
            normalize_path(info.filename): info.filename
            for info in zip_file.infolist()
            if not info.is_dir()
        }

    def list_files(self) -> list[str]:
        """Return the file entries in archive order (directories excluded)."""
        return list(self._names)

    def read_file(self, path: str) -> bytes:
        """Read one entry from the archive.

        Raises:
            ArchiveError: If the entry is missing or cannot be read.
        """
        name = normalize_path(path)
        stored_name = self._names.get(name)
        if stored_name is None:
            raise ArchiveError(
                f"File {name} not found in archive {self.path}",
                code="entry_not_found",
            )
        try:
            return self._zip.read(stored_name)
        except ZIP_READ_ERRORS as e:
            raise ArchiveError(
                f"Failed to read {name} from archive {self.path}: {e}",
                code="entry_read_error",
            ) from e

    def extract_all(self, dest_dir: Path) -> list[str]:
        """Extract every entry into dest_dir.

        Returns:
            The extracted entry names.

        Raises:
            ArchiveError: If extraction fails or an entry escapes dest_dir.
        """
        extracted: list[str] = []
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            for name, stored_name in self._names.items():
                target = _safe_member_path(dest_dir, name)
                target.parent.mkdir(parents=True, exist_ok=True)
                with self._zip.open(stored_name) as src, target.open("wb") as dst:
                    while chunk := src.read(64 * 1024):
                        dst.write(chunk)
                extracted.append(name)
        except ZIP_READ_ERRORS as e:
            raise ArchiveError(
                f"Failed to extract {self.path} to {dest_dir}: {e}",
                code="extract_error",
            ) from e

        logger.debug("Extracted %d files from %s", len(extracted), self.path)
        return extracted

    def close(self) -> None:
        self._zip.close()

    def __repr__(self) -> str:
        return f"ZipArchive({str(self.path)!r})"


class ZipArchiveWriter:
    """Builds a new ZIP map archive.

    Entries are collected in memory (file entries by reference) and only
    written when finalize() is called. Adding a path that was already
    added replaces the earlier entry.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PendingFile] = {}

    def add_bytes(self, path: str, data: bytes) -> None:
        self._entries[normalize_path(path)] = InlineFile(content=data)

    def add_file(self, path: str, disk_path: Path) -> None:
        """Add a file on disk under the given archive path.

        Raises:
            ArchiveError: If the file does not exist or is not readable.
        """
        if not disk_path.is_file():
            raise ArchiveError(
                f"Source file not found: {disk_path}",
                code="source_not_found",
            )
        if not os.access(disk_path, os.R_OK):
            raise ArchiveError(
                f"Source file is not readable: {disk_path}",
                code="source_not_readable",
            )
        self._entries[normalize_path(path)] = DiskFile(source_path=disk_path)

    def add_from_handle(self, handle: ArchiveHandle) -> list[SkippedEntry]:
        """Copy every entry of another archive.

        Entries that cannot be read are skipped and reported.
        """
        skipped: list[SkippedEntry] = []
        for name in handle.list_files():
            try:
                self.add_bytes(name, handle.read_file(name))
            except ArchiveError as e:
                skipped.append(SkippedEntry(path=name, reason=str(e)))
        return skipped

    def add_from_directory(self, root: Path) -> list[SkippedEntry]:
        """Add every file under root, keyed by its path relative to root.

        Files that cannot be added are skipped and reported.
        """
        skipped: list[SkippedEntry] = []
        for item in sorted(root.rglob("*")):
            if item.is_dir():
                continue
            rel_path = item.relative_to(root).as_posix()
            try:
                self.add_file(rel_path, item)
            except ArchiveError as e:
                skipped.append(SkippedEntry(path=rel_path, reason=str(e)))
        return skipped

    def list_files(self) -> list[str]:
        return list(self._entries)

    def finalize(self, dest: Path) -> Path:
        """Write the collected entries to a new archive at dest.

        Raises:
            ArchiveError: If the archive cannot be written.
        """
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(dest, "w", zipfile.ZIP_DEFLATED) as zf:
                for name in sorted(self._entries):
                    entry = self._entries[name]
                    if isinstance(entry, InlineFile):
                        zf.writestr(name, entry.content)
                    else:
                        zf.write(entry.source_path, arcname=name)
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveError(
                f"Failed to write archive {dest}: {e}",
                code="finalize_error",
            ) from e

        logger.info("Wrote archive %s (%d files)", dest, len(self._entries))
        return dest


class ZipCodec:
    """ArchiveCodec for ZIP map archives."""

    def open(self, path: Path) -> ZipArchive:
        """Open an archive for reading.

        Raises:
            ArchiveError: If the file is not a readable archive.
        """
        try:
            return ZipArchive(path, zipfile.ZipFile(path, "r"))
        except (zipfile.BadZipFile, OSError, ValueError) as e:
            raise ArchiveError(
                f"Failed to open archive {path}: {e}",
                code="archive_open_error",
            ) from e

    def new_writer(self) -> ZipArchiveWriter:
        return ZipArchiveWriter()


def get_default_codec() -> ArchiveCodec:
    """Return the codec used when none is supplied."""
    return ZipCodec()


__all__ = [
    "ArchiveCodec",
    "ArchiveError",
    "ArchiveHandle",
    "ArchiveWriter",
    "ZipArchive",
    "ZipArchiveWriter",
    "ZipCodec",
    "get_default_codec",
]
