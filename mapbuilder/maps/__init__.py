"""Map container module.

This module handles:
- Opening maps backed by a directory or an archive
- Staging file additions on top of a map
- Writing maps to directories and archives
"""

from mapbuilder.maps.archive import ArchiveError, ZipCodec, get_default_codec
from mapbuilder.maps.container import (
    ArchiveMap,
    ArchiveOpenError,
    DirectoryMap,
    InvalidBackingKindError,
    MapContainer,
    MapError,
    MapNotFoundError,
    MapReadError,
    open_map,
)
from mapbuilder.maps.overlay import DiskFile, InlineFile, OverlayStore
from mapbuilder.maps.writer import (
    ArtifactWriteError,
    write_to_archive,
    write_to_directory,
)

__all__ = [
    # Archive codec
    "ArchiveError",
    "ZipCodec",
    "get_default_codec",
    # Containers
    "ArchiveMap",
    "ArchiveOpenError",
    "DirectoryMap",
    "InvalidBackingKindError",
    "MapContainer",
    "MapError",
    "MapNotFoundError",
    "MapReadError",
    "open_map",
    # Overlay
    "DiskFile",
    "InlineFile",
    "OverlayStore",
    # Writers
    "ArtifactWriteError",
    "write_to_archive",
    "write_to_directory",
]
