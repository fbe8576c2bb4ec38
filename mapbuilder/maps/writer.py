"""Artifact writers for map containers.

This module handles:
- Writing a map to a directory (bulk copy, then staged files)
- Writing a map to a new archive (seeding, then staged files, then finalize)

Both writers apply the same override rule: every staged file replaces
whatever the backing had at the same path. Replacement is whole-file.
Nothing is cleaned up if a write fails halfway.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from mapbuilder.maps.archive import ArchiveCodec, ArchiveError, get_default_codec
from mapbuilder.maps.container import MapContainer
from mapbuilder.maps.overlay import InlineFile
from mapbuilder.types import WriteReport

logger = logging.getLogger(__name__)


class ArtifactWriteError(Exception):
    """Raised when a map cannot be written to its destination."""

    def __init__(self, message: str, code: str = "artifact_write_error") -> None:
        super().__init__(message)
        self.code = code


def _check_staged_path(path: str) -> None:
    if not path:
        raise ArtifactWriteError("Staged file has an empty path", code="invalid_path")


def _overlay_destination(dest_dir: Path, path: str) -> Path:
    """Resolve a staged path under dest_dir.

    Raises:
        ArtifactWriteError: If the path is empty or escapes dest_dir.
    """
    _check_staged_path(path)
    target = dest_dir / path
    try:
        target.resolve().relative_to(dest_dir.resolve())
    except ValueError:
        raise ArtifactWriteError(
            f"Staged path traversal detected: {path} resolves outside {dest_dir}",
            code="path_traversal",
        ) from None
    return target


def write_to_directory(container: MapContainer, dest_dir: Path) -> WriteReport:
    """Write a map to a directory.

    Copies the whole backing to dest_dir, then writes every staged file
    into it, overwriting files produced by the copy.

    Args:
        container: Map to write.
        dest_dir: Destination directory (created if missing).

    Returns:
        WriteReport listing the files written.

    Raises:
        ArtifactWriteError: If copying or writing any file fails.
    """
    report = WriteReport(destination=dest_dir)

    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        report.written.extend(container.copy_backing_to(dest_dir))
    except (OSError, ArchiveError) as e:
        raise ArtifactWriteError(
            f"Failed to copy map {container.name} to {dest_dir}: {e}",
            code="copy_error",
        ) from e

    for path, pending in container.overlay.items():
        target = _overlay_destination(dest_dir, path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(pending, InlineFile):
                target.write_bytes(pending.content)
            else:
                shutil.copyfile(pending.source_path, target)
        except OSError as e:
            raise ArtifactWriteError(
                f"Failed to write {path} to {dest_dir}: {e}",
                code="copy_error",
            ) from e

        logger.debug("Wrote staged file: %s", target)
        if path not in report.written:
            report.written.append(path)

    logger.info("Wrote map %s to directory %s", container.name, dest_dir)
    return report


def write_to_archive(
    container: MapContainer,
    dest: Path,
    codec: ArchiveCodec | None = None,
) -> WriteReport:
    """Write a map to a new archive.

    The archive is seeded from the backing; files that cannot be seeded
    are logged and skipped. Staged files are then added on top and the
    archive is written to dest.

    Args:
        container: Map to write.
        dest: Destination archive path.
        codec: Archive codec (default: ZIP).

    Returns:
        WriteReport listing the archive entries and any skipped seed files.

    Raises:
        ArtifactWriteError: If a staged file cannot be added or the archive
            cannot be written.
    """
    if codec is None:
        codec = get_default_codec()

    writer = codec.new_writer()
    report = WriteReport(destination=dest)

    report.skipped.extend(container.seed_archive(writer))
    for entry in report.skipped:
        logger.warning("Couldn't add file %s to archive: %s", entry.path, entry.reason)

    for path, pending in container.overlay.items():
        _check_staged_path(path)
        try:
            if isinstance(pending, InlineFile):
                writer.add_bytes(path, pending.content)
            else:
                writer.add_file(path, pending.source_path)
        except ArchiveError as e:
            raise ArtifactWriteError(
                f"Couldn't add file {path} to archive: {e}",
                code="archive_write_error",
            ) from e

    try:
        writer.finalize(dest)
    except ArchiveError as e:
        raise ArtifactWriteError(str(e), code="archive_write_error") from e

    report.written.extend(writer.list_files())
    logger.info(
        "Wrote map %s to archive %s (%d files, %d skipped)",
        container.name,
        dest,
        len(report.written),
        len(report.skipped),
    )
    return report


__all__ = [
    "ArtifactWriteError",
    "write_to_archive",
    "write_to_directory",
]
