"""Translate raw command-line tokens into a build request.

No validation happens here; see mapbuilder.build.validate_request.
"""

from collections.abc import Sequence

from mapbuilder.types import BuildRequest, OutputKind


class ScriptArgs:
    """Lookup helpers over a list of raw argument tokens."""

    def __init__(self, tokens: Sequence[str]) -> None:
        self.tokens = list(tokens)

    def exists(self, name: str) -> bool:
        return name in self.tokens

    def value(self, name: str) -> str | None:
        """Return the token following the first occurrence of name, if any."""
        try:
            pos = self.tokens.index(name)
        except ValueError:
            return None
        if pos + 1 < len(self.tokens):
            return self.tokens[pos + 1]
        return None


def resolve_request(tokens: Sequence[str]) -> BuildRequest:
    """Build a request from `--map`, `--output` and `--no-map-script`."""
    args = ScriptArgs(tokens)
    return BuildRequest(
        input_name=args.value("--map"),
        output=args.value("--output") or OutputKind.ARCHIVE.value,
        retain_script=not args.exists("--no-map-script"),
    )


__all__ = ["ScriptArgs", "resolve_request"]
