"""Accumulates library targets per governing manifest and emits go_mod rules."""

from __future__ import annotations

import threading
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from ..config import GoModConfig
from ..logging import get_logger
from ..models import BuildFile, ManifestDirectory, Rule
from .labels import format_label, normalise_rel
from .manifest import ManifestError, parse_module_path

_SALVAGED_ATTRS = ("visibility", "module_path")


class Aggregator:
    """Folds per-directory library targets into their governing manifest.

    State lives for one walk. Call :meth:`reset` before reusing an instance.
    """

    def __init__(self, settings: GoModConfig | None = None) -> None:
        self.settings = settings or GoModConfig()
        self.logger = get_logger("gomod.aggregator")
        self._lock = threading.Lock()
        self._targets: Dict[Path, Set[str]] = {}
        self._emitted: Set[Path] = set()

    def reset(self) -> None:
        with self._lock:
            self._targets.clear()
            self._emitted.clear()

    def targets_for(self, manifest_dir: Path) -> List[str]:
        """Return the sorted references accumulated so far for ``manifest_dir``."""
        with self._lock:
            return sorted(self._targets.get(manifest_dir, ()))

    def pending(self) -> List[Path]:
        """Manifest directories that received targets but never emitted."""
        with self._lock:
            return sorted(path for path in self._targets if path not in self._emitted)

    def visit(
        self,
        file: Optional[BuildFile],
        other_gen: Sequence[Rule],
        rel: str,
        governing: Optional[ManifestDirectory],
        regular_files: Iterable[str],
    ) -> List[Rule]:
        """Contribute this directory's libraries and emit when it is a manifest directory."""
        if governing is None:
            return []

        existing = file.rules if file is not None else []
        labels = self._collect_libraries(existing, other_gen, rel, governing.rel)
        self._contribute(governing.path, labels)

        if normalise_rel(governing.rel) != normalise_rel(rel):
            return []

        files = set(regular_files)
        manifest_path = governing.path / self.settings.manifest_file
        try:
            module_path = parse_module_path(manifest_path, self.settings.module_directive)
        except (ManifestError, OSError) as exc:
            self.logger.warning(
                "Skipping %s rule in %s: %s", self.settings.rule_kind, governing.path, exc
            )
            return []

        manifest = replace(
            governing,
            module_path=module_path,
            has_lock=self.settings.lock_file in files,
        )
        return [self._emit(manifest, existing)]

    def _collect_libraries(
        self,
        existing: Sequence[Rule],
        other_gen: Sequence[Rule],
        rel: str,
        manifest_rel: str,
    ) -> List[str]:
        kinds = set(self.settings.library_kinds)
        labels: List[str] = []
        for rule in list(existing) + list(other_gen):
            # Rules already marked for removal are not part of the module.
            if rule.kind not in kinds or rule.deleted:
                continue
            labels.append(format_label(rel, rule.name, manifest_rel))
        return labels

    def _contribute(self, manifest_dir: Path, labels: Sequence[str]) -> None:
        with self._lock:
            if manifest_dir in self._emitted and labels:
                self.logger.debug(
                    "Late contribution of %d target(s) to %s after emission",
                    len(labels),
                    manifest_dir,
                )
            self._targets.setdefault(manifest_dir, set()).update(labels)

    def _emit(self, manifest: ManifestDirectory, existing: Sequence[Rule]) -> Rule:
        settings = self.settings
        salvaged: Dict[str, object] = {}
        name = settings.rule_name
        for rule in existing:
            if rule.kind != settings.rule_kind:
                continue
            for key in _SALVAGED_ATTRS:
                value = rule.attr(key)
                if value:
                    salvaged[key] = value
            name = rule.name
            rule.delete()
            break

        with self._lock:
            deps = sorted(self._targets.get(manifest.path, ()))
            self._emitted.add(manifest.path)

        rule = Rule(settings.rule_kind, name)
        rule.set_attr("module_path", salvaged.get("module_path", manifest.module_path))
        rule.set_attr("go_mod", f":{settings.manifest_file}")
        if manifest.has_lock:
            rule.set_attr("go_sum", f":{settings.lock_file}")
        rule.set_attr("deps", deps)
        if "visibility" in salvaged:
            rule.set_attr("visibility", salvaged["visibility"])

        self.logger.debug(
            "Emitting %s(%s) in %s with %d dep(s)",
            settings.rule_kind,
            rule.attr("module_path"),
            manifest.rel or "//",
            len(deps),
        )
        return rule


__all__ = ["Aggregator"]
