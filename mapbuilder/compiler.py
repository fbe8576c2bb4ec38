"""Map script compilation.

This module handles:
- The compile request handed to script compilers
- The ScriptCompiler protocol used by the build orchestrator
- A default compiler bundling Lua modules into a single map script

The map being built (if any) is passed to the compiler explicitly as part
of the request; compilers may read from it or stage files into it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from mapbuilder.maps.container import MapContainer

logger = logging.getLogger(__name__)

MAIN_MODULE = "main"

LUA_PRELUDE = """\
local __modules = {}
local __loaded = {}
local __require = require

function require(name)
    local loaded = __loaded[name]
    if loaded ~= nil then
        return loaded
    end
    local loader = __modules[name]
    if loader == nil then
        if __require ~= nil then
            return __require(name)
        end
        error("module not found: " .. name)
    end
    loaded = loader(name)
    if loaded == nil then
        loaded = true
    end
    __loaded[name] = loaded
    return loaded
end
"""


class CompileError(Exception):
    """Raised when the map script cannot be compiled."""

    def __init__(self, message: str, code: str = "compile_error") -> None:
        super().__init__(message)
        self.code = code


@dataclass
class CompileRequest:
    """Inputs for compiling a map script.

    Attributes:
        src_dir: Directory with the project's script sources.
        lib_dir: Directory with library script sources.
        map_script: Script previously embedded in the map ("" if none).
        container: The map being built, or None in script-only builds.
    """

    src_dir: Path
    lib_dir: Path
    map_script: str = ""
    container: MapContainer | None = None


class ScriptCompiler(Protocol):
    """Turns a source tree and library tree into a single map script."""

    def compile(self, request: CompileRequest) -> str: ...


def module_name(rel_path: Path) -> str:
    """Derive a module name from a path relative to its source root.

    'util/math.lua' -> 'util.math', 'util/init.lua' -> 'util'.
    """
    parts = list(rel_path.with_suffix("").parts)
    if len(parts) > 1 and parts[-1] == "init":
        parts.pop()
    return ".".join(parts)


def collect_modules(root: Path) -> dict[str, Path]:
    """Collect Lua modules under root, keyed by module name."""
    modules: dict[str, Path] = {}
    if not root.is_dir():
        return modules
    for path in sorted(root.rglob("*.lua")):
        if path.is_file():
            modules[module_name(path.relative_to(root))] = path
    return modules


class LuaBundleCompiler:
    """Bundles Lua modules into one map script.

    Library modules are collected first, then project sources; a project
    module replaces a library module with the same name. The emitted script
    registers every module with a small loader, appends the previous map
    script, and finally requires the main module.
    """

    def __init__(self, main_module: str = MAIN_MODULE) -> None:
        self.main_module = main_module

    def compile(self, request: CompileRequest) -> str:
        """Compile the map script.

        Raises:
            CompileError: If sources are missing or cannot be read.
        """
        if not request.src_dir.is_dir():
            raise CompileError(
                f"Source directory not found: {request.src_dir}",
                code="src_not_found",
            )

        modules = collect_modules(request.lib_dir)
        for name, path in collect_modules(request.src_dir).items():
            if name in modules:
                logger.debug("Source module %s shadows library module", name)
            modules[name] = path

        if self.main_module not in modules:
            raise CompileError(
                f"Could not find module '{self.main_module}' in {request.src_dir}",
                code="main_not_found",
            )

        chunks = [LUA_PRELUDE]
        for name in sorted(modules):
            path = modules[name]
            try:
                source = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise CompileError(
                    f"Failed to read module {name} from {path}: {e}",
                    code="module_read_error",
                ) from e
            chunks.append(f'__modules["{name}"] = function(...)\n{source}\nend\n')

        if request.map_script:
            chunks.append(request.map_script)
            if not request.map_script.endswith("\n"):
                chunks.append("\n")

        chunks.append(f'require("{self.main_module}")\n')

        logger.info(
            "Compiled %d modules%s",
            len(modules),
            f" for map {request.container.name}" if request.container else "",
        )
        return "\n".join(chunks)


def get_default_compiler() -> ScriptCompiler:
    """Return the compiler used when none is supplied."""
    return LuaBundleCompiler()


__all__ = [
    "CompileError",
    "CompileRequest",
    "LuaBundleCompiler",
    "MAIN_MODULE",
    "ScriptCompiler",
    "collect_modules",
    "get_default_compiler",
    "module_name",
]
