"""Shared type definitions for mapbuilder.

This module contains dataclasses, enums, and type aliases shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class OutputKind(str, Enum):
    """Kind of artifact produced by a build."""

    SCRIPT = "script"
    ARCHIVE = "mpq"
    DIRECTORY = "dir"

    @property
    def requires_map(self) -> bool:
        """Whether this kind of artifact needs an input map."""
        return self is not OutputKind.SCRIPT


@dataclass
class BuildRequest:
    """What to build and how.

    The output kind is kept as the raw string supplied by the caller;
    it is only checked against OutputKind during request validation.
    """

    input_name: str | None = None
    output: str = OutputKind.ARCHIVE.value
    retain_script: bool = True


@dataclass(frozen=True)
class SkippedEntry:
    """A file left out of an artifact because it could not be added."""

    path: str
    reason: str


@dataclass
class WriteReport:
    """Result of materializing a map into an artifact."""

    destination: Path
    written: list[str] = field(default_factory=list)
    skipped: list[SkippedEntry] = field(default_factory=list)


__all__ = [
    "BuildRequest",
    "OutputKind",
    "SkippedEntry",
    "WriteReport",
]
