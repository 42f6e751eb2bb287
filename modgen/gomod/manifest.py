"""Module directive extraction from go.mod style manifests."""

from __future__ import annotations

from pathlib import Path


class ManifestError(ValueError):
    """Raised when a manifest has no usable module directive."""


def parse_module_path(path: Path, directive: str = "module") -> str:
    """Return the module identity declared by the first ``directive`` line.

    The directive must start a trimmed line and be followed by whitespace or
    the end of the line, so ``modules foo`` does not match ``module``. One
    pair of enclosing double quotes around the value is removed.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not _is_directive(line, directive):
                    continue
                fields = line.split()
                if len(fields) < 2:
                    raise ManifestError(
                        f"invalid {directive} directive in {path}: missing module path"
                    )
                module = _unquote(fields[1])
                if not module:
                    raise ManifestError(
                        f"invalid {directive} directive in {path}: empty module path"
                    )
                return module
    except UnicodeDecodeError as exc:
        raise ManifestError(f"{path} is not valid UTF-8: {exc}") from exc
    raise ManifestError(f"no {directive} directive found in {path}")


def _is_directive(line: str, directive: str) -> bool:
    if not line.startswith(directive):
        return False
    rest = line[len(directive):]
    return not rest or rest[0] in " \t"


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1]
    return value


__all__ = ["ManifestError", "parse_module_path"]
