"""Locate the manifest directory that governs a visited directory."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from ..models import ManifestDirectory


class BoundaryError(RuntimeError):
    """Raised when a visited directory lies outside the configured root."""


class BoundaryResolver:
    """Finds the nearest directory, up to and including the root, holding a manifest."""

    def __init__(self, manifest_file: str = "go.mod") -> None:
        self.manifest_file = manifest_file

    def resolve(
        self,
        directory: Path,
        regular_files: Iterable[str],
        root: Path,
    ) -> Optional[ManifestDirectory]:
        """Return the governing manifest directory for ``directory``, or None.

        ``regular_files`` is the listing the walker already made of
        ``directory``; only ancestors are probed on disk.
        """
        current = Path(directory).resolve()
        boundary = Path(root).resolve()
        rel = _relative_to(current, boundary)

        if self.manifest_file in set(regular_files):
            return ManifestDirectory(path=current, rel=rel)

        candidate = current
        while candidate != boundary:
            candidate = candidate.parent
            if (candidate / self.manifest_file).is_file():
                return ManifestDirectory(
                    path=candidate, rel=_relative_to(candidate, boundary)
                )
        return None


def _relative_to(path: Path, root: Path) -> str:
    try:
        relative = path.relative_to(root)
    except ValueError:
        raise BoundaryError(f"{path} is not inside the walk root {root}") from None
    return relative.as_posix() if relative.parts else ""


__all__ = ["BoundaryError", "BoundaryResolver"]
