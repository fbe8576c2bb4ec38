"""Configuration settings for mapbuilder.

Uses pydantic-settings for config parsing from environment variables
and defaults, with optional per-project overrides from a YAML file.
Configuration precedence: CLI flags > project file > env vars > defaults.
"""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROJECT_FILE = Path("mapbuild.yaml")

# Keys accepted under the project file's `layout:` mapping
LAYOUT_KEYS = {
    "maps_directory": "maps_dir",
    "src_directory": "src_dir",
    "lib_directory": "lib_dir",
    "target_directory": "target_dir",
}


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the MAPBUILD_ prefix.
    Project files and CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="MAPBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Layout
    maps_dir: Path = Field(
        default=Path("maps"),
        description="Directory containing base maps (directories or archives)",
    )
    src_dir: Path = Field(
        default=Path("src"),
        description="Directory containing the project's script sources",
    )
    lib_dir: Path = Field(
        default=Path("lib"),
        description="Directory containing library script sources",
    )
    target_dir: Path = Field(
        default=Path("target"),
        description="Directory where build artifacts are written",
    )

    # Build
    map_script_path: str = Field(
        default="war3map.lua",
        description="Path of the embedded map script inside a map",
    )

    # Run-map
    game_path: Path | None = Field(
        default=None,
        description="Game executable used to run built maps",
    )
    game_args: list[str] = Field(
        default_factory=list,
        description="Extra arguments passed to the game executable",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )


def load_project_file(path: Path) -> dict[str, Any]:
    """Load setting overrides from a YAML project file.

    The file may contain top-level setting keys and a `layout:` mapping
    using the editor-facing names (maps_directory, src_directory, ...).

    Args:
        path: Path to the YAML project file.

    Returns:
        Dictionary of setting overrides keyed by Settings field name.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the file content or its layout is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")

    overrides = {k: v for k, v in data.items() if k != "layout"}
    layout = data.get("layout") or {}
    if not isinstance(layout, dict):
        raise ValueError(f"Expected 'layout' to be a mapping, got {type(layout).__name__}")

    for key, value in layout.items():
        field_name = LAYOUT_KEYS.get(key, key)
        overrides[field_name] = value

    return overrides


def get_settings(project_file: Path | None = None, **overrides: Any) -> Settings:
    """Get the application settings.

    Args:
        project_file: Optional YAML project file. When None, the default
            project file is used if it exists in the working directory.
        **overrides: Explicit overrides (e.g. from CLI flags).

    Returns:
        Settings instance.
    """
    values: dict[str, Any] = {}
    if project_file is None and DEFAULT_PROJECT_FILE.is_file():
        project_file = DEFAULT_PROJECT_FILE
    if project_file is not None:
        values.update(load_project_file(project_file))

    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)


def layout_manifest(settings: Settings | None = None) -> dict[str, str]:
    """Describe the folder layout for editor integrations.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        Mapping of layout names to directory paths.
    """
    if settings is None:
        settings = get_settings()
    return {
        "mapsDirectory": settings.maps_dir.as_posix(),
        "srcDirectory": settings.src_dir.as_posix(),
        "libDirectory": settings.lib_dir.as_posix(),
        "targetDirectory": settings.target_dir.as_posix(),
    }


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "DEFAULT_PROJECT_FILE",
    "Settings",
    "get_settings",
    "layout_manifest",
    "load_project_file",
    "print_settings_json",
]
