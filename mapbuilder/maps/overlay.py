"""Overlay store for staged map file additions.

This module handles:
- Pending file sources (inline content or a file on disk)
- Path normalization for artifact-relative paths
- The in-memory overlay keyed by artifact path (last write wins)

Nothing here touches the filesystem; staged files are only materialized
when a map is written to a directory or an archive.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InlineFile:
    """File content held in memory."""

    content: bytes


@dataclass(frozen=True)
class DiskFile:
    """File content read from a file on disk at write time."""

    source_path: Path


PendingFile = Union[InlineFile, DiskFile]


def overlay_key(path: str) -> str:
    """Key a staged path: forward slashes, no leading slash. Never fails."""
    return path.replace("\\", "/").lstrip("/")


def normalize_path(path: str) -> str:
    """Normalize an artifact-relative path.

    Map paths may use either separator; the overlay stores them with
    forward slashes and without a leading slash.

    Args:
        path: Artifact-relative path like 'war3map.lua' or 'UI\\\\skin.txt'.

    Returns:
        Normalized path.

    Raises:
        ValueError: If the path is empty after normalization.
    """
    normalized = overlay_key(path)
    if not normalized:
        raise ValueError(f"Invalid artifact path: {path!r}")
    return normalized


class OverlayStore:
    """Mapping from artifact path to the file staged at that path.

    Re-staging a path silently replaces the earlier entry. Staging never
    fails; paths are checked when the overlay is written.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PendingFile] = {}

    def stage(self, path: str, pending: PendingFile) -> None:
        """Stage a pending file at an artifact path."""
        key = overlay_key(path)
        if key in self._entries:
            logger.debug("Replacing staged file: %s", key)
        self._entries[key] = pending

    def stage_inline(self, path: str, content: bytes | str) -> None:
        """Stage in-memory content; strings are encoded as UTF-8."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.stage(path, InlineFile(content=content))

    def stage_from_disk(self, archive_path: str, disk_path: Path | str) -> None:
        """Stage a file on disk to be copied to archive_path."""
        self.stage(archive_path, DiskFile(source_path=Path(disk_path)))

    def get(self, path: str) -> PendingFile | None:
        return self._entries.get(overlay_key(path))

    def paths(self) -> list[str]:
        return list(self._entries)

    def items(self) -> Iterator[tuple[str, PendingFile]]:
        return iter(self._entries.items())

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        return overlay_key(path) in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"OverlayStore({sorted(self._entries)!r})"


__all__ = [
    "DiskFile",
    "InlineFile",
    "OverlayStore",
    "PendingFile",
    "normalize_path",
    "overlay_key",
]
