"""Build orchestration.

This module provides the high-level build API:
- validate_request(): check a build request before any I/O
- build_map(): load the input map, compile the map script, write the artifact
- run_build(): build_map() that reports failures in the result instead of raising

A build runs its stages in order and stops at the first fatal failure:
validate -> load map -> extract map script -> compile -> write artifact.
The map stages are skipped when no input map is given. Failing to extract
the previous map script is not fatal; the build continues without it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from mapbuilder.compiler import (
    CompileError,
    CompileRequest,
    ScriptCompiler,
    get_default_compiler,
)
from mapbuilder.config import Settings, get_settings
from mapbuilder.maps.archive import ArchiveCodec
from mapbuilder.maps.container import MapContainer, MapError, MapReadError, open_map
from mapbuilder.maps.writer import (
    ArtifactWriteError,
    write_to_archive,
    write_to_directory,
)
from mapbuilder.types import BuildRequest, OutputKind, SkippedEntry

logger = logging.getLogger(__name__)

DIRECTORY_SUFFIX = ".dir"


class BuildError(Exception):
    """Raised when a build fails; code names the failing stage."""

    def __init__(self, message: str, code: str = "build_error") -> None:
        super().__init__(message)
        self.code = code


@dataclass
class BuildResult:
    """Result of a build.

    Attributes:
        success: Whether the build produced its artifact.
        output: Requested output kind (None if the request was invalid).
        artifact_path: Where the artifact was written.
        error_message: Error message if the build failed.
        code: Error code if the build failed.
        retained_script: Whether the previous map script was compiled in.
        skipped: Files left out of an archive artifact while seeding it.
    """

    success: bool
    output: OutputKind | None = None
    artifact_path: Path | None = None
    error_message: str | None = None
    code: str | None = None
    retained_script: bool = False
    skipped: list[SkippedEntry] = field(default_factory=list)

    def artifact_path_or_false(self) -> str | bool:
        """Artifact path as a string on success, False on failure."""
        if self.success and self.artifact_path is not None:
            return str(self.artifact_path)
        return False


def validate_request(request: BuildRequest) -> OutputKind:
    """Validate a build request.

    Args:
        request: The request to validate.

    Returns:
        The requested output kind.

    Raises:
        BuildError: If the output kind is unknown or a required input map
            is missing.
    """
    try:
        kind = OutputKind(request.output)
    except ValueError:
        raise BuildError(
            "Output type must be one of 'mpq', 'dir' or 'script'",
            code="invalid_output_kind",
        ) from None

    if kind.requires_map and request.input_name is None:
        raise BuildError(
            f"Output type {kind.value} requires an input map, but none was specified",
            code="missing_input",
        )

    return kind


def artifact_path_for(
    kind: OutputKind,
    input_name: str | None,
    settings: Settings,
) -> Path:
    """Return the destination of the artifact for a given output kind."""
    if kind is OutputKind.SCRIPT:
        return settings.target_dir / Path(settings.map_script_path).name
    if input_name is None:
        raise BuildError(
            f"Output type {kind.value} requires an input map, but none was specified",
            code="missing_input",
        )
    if kind is OutputKind.DIRECTORY:
        return settings.target_dir / f"{input_name}{DIRECTORY_SUFFIX}"
    return settings.target_dir / input_name


def load_map(
    name: str,
    settings: Settings,
    codec: ArchiveCodec | None = None,
) -> MapContainer:
    """Open the input map.

    Raises:
        BuildError: If the map cannot be opened.
    """
    try:
        container = open_map(name, settings.maps_dir, codec=codec)
    except MapError as e:
        raise BuildError(f"Could not load map {name}: {e}", code="map_load_error") from e

    logger.info("Loaded map %s", name)
    return container


def extract_map_script(container: MapContainer, settings: Settings) -> str | None:
    """Read the script embedded in a map.

    Returns:
        The script text, or None if it could not be read.
    """
    try:
        script = container.read_file(settings.map_script_path).decode("utf-8")
    except (MapReadError, UnicodeDecodeError) as e:
        logger.warning("Could not extract script from map %s: %s", container.name, e)
        logger.warning("Map script won't be included in the final artifact")
        return None

    logger.info("Loaded map script from %s", container.name)
    return script


def _write_artifact(
    kind: OutputKind,
    destination: Path,
    script: str,
    container: MapContainer | None,
    codec: ArchiveCodec | None,
) -> list[SkippedEntry]:
    """Write the artifact for the requested output kind.

    Returns:
        Files skipped while seeding an archive artifact.

    Raises:
        BuildError: If the artifact cannot be written.
    """
    logger.info("Writing artifact [%s] to %s", kind.value, destination)

    if kind is OutputKind.SCRIPT:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text(script, encoding="utf-8")
        except OSError as e:
            raise BuildError(
                f"Saving the artifact failed: {e}", code="artifact_write_error"
            ) from e
        return []

    if container is None:
        raise BuildError(
            f"Output type {kind.value} requires a loaded map",
            code="missing_input",
        )

    try:
        if kind is OutputKind.ARCHIVE:
            report = write_to_archive(container, destination, codec=codec)
        else:
            report = write_to_directory(container, destination)
    except ArtifactWriteError as e:
        raise BuildError(
            f"Saving the artifact failed: {e}", code="artifact_write_error"
        ) from e

    return report.skipped


def build_map(
    request: BuildRequest,
    settings: Settings | None = None,
    codec: ArchiveCodec | None = None,
    compiler: ScriptCompiler | None = None,
) -> BuildResult:
    """Build an artifact from a build request.

    Args:
        request: What to build.
        settings: Settings providing the project layout.
        codec: Archive codec (default: ZIP).
        compiler: Script compiler (default: LuaBundleCompiler).

    Returns:
        Successful BuildResult.

    Raises:
        BuildError: On the first fatal failure.
    """
    if settings is None:
        settings = get_settings()
    if compiler is None:
        compiler = get_default_compiler()

    kind = validate_request(request)

    logger.info("Received build command")
    logger.info("    Input: %s", request.input_name)
    logger.info("    Retain map script: %s", request.retain_script)
    logger.info("    Output type: %s", kind.value)

    container: MapContainer | None = None
    map_script: str | None = None

    try:
        if request.input_name is not None:
            container = load_map(request.input_name, settings, codec=codec)
            if request.retain_script:
                map_script = extract_map_script(container, settings)

        if container is None:
            logger.info("Building in script-only mode")
        if map_script is None:
            logger.info("Building without including original map script")

        try:
            script = compiler.compile(
                CompileRequest(
                    src_dir=settings.src_dir,
                    lib_dir=settings.lib_dir,
                    map_script=map_script or "",
                    container=container,
                )
            )
        except CompileError as e:
            raise BuildError(f"Map build failed: {e}", code="compile_error") from e

        logger.info("Successfully built the map script")

        if container is not None:
            container.stage_inline(settings.map_script_path, script)

        destination = artifact_path_for(kind, request.input_name, settings)
        skipped = _write_artifact(kind, destination, script, container, codec)
    finally:
        if container is not None:
            container.close()

    logger.info("Build complete!")
    return BuildResult(
        success=True,
        output=kind,
        artifact_path=destination,
        retained_script=map_script is not None,
        skipped=skipped,
    )


def run_build(
    request: BuildRequest,
    settings: Settings | None = None,
    codec: ArchiveCodec | None = None,
    compiler: ScriptCompiler | None = None,
) -> BuildResult:
    """Run a build, reporting fatal failures in the result.

    Returns:
        BuildResult; success is False with error_message and code set if
        the build failed.
    """
    try:
        return build_map(request, settings=settings, codec=codec, compiler=compiler)
    except BuildError as e:
        logger.error("%s", e)
        try:
            output: OutputKind | None = OutputKind(request.output)
        except ValueError:
            output = None
        return BuildResult(
            success=False,
            output=output,
            error_message=str(e),
            code=e.code,
        )


__all__ = [
    "BuildError",
    "BuildResult",
    "DIRECTORY_SUFFIX",
    "artifact_path_for",
    "build_map",
    "extract_map_script",
    "load_map",
    "run_build",
    "validate_request",
]
