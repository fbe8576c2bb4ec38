"""Launch the game with a built map.

This module handles:
- Deciding whether a build produced a runnable artifact
- Composing the game launch command
- Starting the game process (without waiting for it)
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path

from mapbuilder.build import BuildResult
from mapbuilder.config import Settings
from mapbuilder.types import OutputKind

logger = logging.getLogger(__name__)


class RunMapError(Exception):
    """Raised when the game cannot be launched."""

    def __init__(self, message: str, code: str = "runmap_error") -> None:
        super().__init__(message)
        self.code = code


def is_runnable(result: BuildResult) -> bool:
    """Only successful archive and directory builds can be run."""
    return (
        result.success
        and result.artifact_path is not None
        and result.output in (OutputKind.ARCHIVE, OutputKind.DIRECTORY)
    )


def compose_run_command(artifact: Path, settings: Settings) -> list[str]:
    """Compose the game command for an artifact.

    Raises:
        RunMapError: If no game executable is configured.
    """
    if settings.game_path is None:
        raise RunMapError(
            "No game executable configured (set MAPBUILD_GAME_PATH)",
            code="game_not_configured",
        )
    return [
        str(settings.game_path),
        *settings.game_args,
        "-loadfile",
        str(artifact.resolve()),
    ]


def run_map(artifact: Path, settings: Settings) -> subprocess.Popen[bytes]:
    """Start the game with the given artifact.

    Returns:
        The started game process.

    Raises:
        RunMapError: If the game is not configured or fails to start.
    """
    cmd = compose_run_command(artifact, settings)
    logger.info("Running map: %s", shlex.join(cmd))

    try:
        return subprocess.Popen(cmd)
    except OSError as e:
        raise RunMapError(f"Failed to start game: {e}", code="launch_error") from e


__all__ = ["RunMapError", "compose_run_command", "is_runnable", "run_map"]
