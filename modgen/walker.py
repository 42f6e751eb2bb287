"""Post-order directory walk that drives languages and rewrites BUILD files."""

from __future__ import annotations

import difflib
import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .build_file import BuildFileRenderer, load_build_file
from .config import ModGenConfig
from .languages import Language, discover_languages
from .logging import get_logger
from .models import (
    BuildFile,
    GenerateArgs,
    KindInfo,
    LoadInfo,
    LoadStatement,
    Rule,
    Statement,
    Verbatim,
)

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
}


@dataclass
class ExcludeRule:
    """A path pattern from ``exclude_paths`` in .modgen.yml."""

    pattern: str
    directory_only: bool
    anchored: bool

    @classmethod
    def parse(cls, raw: str) -> Optional["ExcludeRule"]:
        pattern = raw.strip()
        if not pattern:
            return None
        directory_only = pattern.endswith("/")
        pattern = pattern.rstrip("/")
        anchored = pattern.startswith("/") or "/" in pattern
        pattern = pattern.lstrip("/")
        if not pattern:
            return None
        return cls(pattern=pattern, directory_only=directory_only, anchored=anchored)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.anchored:
            return fnmatchcase(rel_path, self.pattern)
        return fnmatchcase(rel_path.rsplit("/", 1)[-1], self.pattern)


@dataclass
class WalkResult:
    """Outcome of one walk over the repository."""

    root: Path
    visited: int = 0
    changed: List[Path] = field(default_factory=list)
    diffs: Dict[Path, str] = field(default_factory=dict)
    dry_run: bool = False


class Walker:
    """Visits every directory under the root children-first, like Gazelle.

    A directory is handed to the languages only after all of its
    subdirectories, so a manifest directory is seen after its whole subtree.
    """

    def __init__(
        self,
        config: ModGenConfig,
        languages: Optional[Sequence[Language]] = None,
        renderer: BuildFileRenderer | None = None,
    ) -> None:
        self.config = config
        self.languages = list(languages) if languages is not None else discover_languages(config)
        self.renderer = renderer or BuildFileRenderer()
        self.logger = get_logger("walker")
        self._excludes = [
            rule for rule in (ExcludeRule.parse(raw) for raw in config.exclude_paths) if rule
        ]
        self._kinds: Dict[str, KindInfo] = {}
        self._loads: List[LoadInfo] = []
        for language in self.languages:
            self._kinds.update(language.kinds())
            self._loads.extend(language.loads())

    def run(self, *, dry_run: bool = False) -> WalkResult:
        root = self.config.root
        if not root.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")

        result = WalkResult(root=root, dry_run=dry_run)
        self.logger.info(
            "Walking %s with languages: %s",
            root,
            ", ".join(language.name for language in self.languages) or "(none)",
        )
        for language in self.languages:
            language.begin_walk()
        self._walk(root, "", result)
        for language in self.languages:
            language.end_walk()
        self.logger.info(
            "Visited %d directories; %d BUILD file(s) %s",
            result.visited,
            len(result.changed),
            "would change" if dry_run else "updated",
        )
        return result

    def _walk(self, directory: Path, rel: str, result: WalkResult) -> None:
        subdirs, regular_files = self._list(directory, rel)
        for name in subdirs:
            child_rel = f"{rel}/{name}" if rel else name
            self._walk(directory / name, child_rel, result)
        self._visit(directory, rel, regular_files, result)

    def _list(self, directory: Path, rel: str) -> Tuple[List[str], List[str]]:
        subdirs: List[str] = []
        regular_files: List[str] = []
        with os.scandir(directory) as entries:
            for entry in entries:
                entry_rel = f"{rel}/{entry.name}" if rel else entry.name
                if entry.is_dir(follow_symlinks=False):
                    if entry.name in _EXCLUDED_DIRS or entry.name.startswith("bazel-"):
                        continue
                    if self._is_excluded(entry_rel, True):
                        continue
                    subdirs.append(entry.name)
                elif entry.is_file(follow_symlinks=True):
                    if self._is_excluded(entry_rel, False):
                        continue
                    regular_files.append(entry.name)
        return sorted(subdirs), sorted(regular_files)

    def _is_excluded(self, rel_path: str, is_dir: bool) -> bool:
        return any(rule.matches(rel_path, is_dir) for rule in self._excludes)

    def _visit(
        self, directory: Path, rel: str, regular_files: List[str], result: WalkResult
    ) -> None:
        result.visited += 1
        build_file = self._load_existing(directory, regular_files)
        original = self.renderer.render(build_file) if build_file is not None else ""
        source_text = build_file.path.read_text(encoding="utf-8") if build_file is not None else ""

        generated: List[Rule] = []
        for language in self.languages:
            args = GenerateArgs(
                dir=directory,
                rel=rel,
                root=self.config.root,
                regular_files=list(regular_files),
                file=build_file,
                other_gen=list(generated),
            )
            outcome = language.generate_rules(args)
            if len(outcome.imports) != len(outcome.gen):
                raise RuntimeError(
                    f"Language '{language.name}' returned {len(outcome.gen)} rule(s) "
                    f"but {len(outcome.imports)} import placeholder(s) for {directory}"
                )
            generated.extend(outcome.gen)

        if build_file is None:
            if not generated:
                return
            build_file = BuildFile(path=directory / self.config.build_file_name)

        merge_rules(build_file, generated, self._kinds, self._loads)
        rendered = self.renderer.render(build_file)
        if rendered == original:
            return

        result.changed.append(build_file.path)
        diff = "".join(
            difflib.unified_diff(
                source_text.splitlines(keepends=True),
                rendered.splitlines(keepends=True),
                fromfile=f"a/{rel + '/' if rel else ''}{build_file.path.name}",
                tofile=f"b/{rel + '/' if rel else ''}{build_file.path.name}",
            )
        )
        result.diffs[build_file.path] = diff
        if result.dry_run:
            self.logger.info("Would update %s", build_file.path)
            self.logger.debug("%s", diff)
            return
        build_file.path.write_text(rendered, encoding="utf-8")
        self.logger.info("Updated %s", build_file.path)

    def _load_existing(self, directory: Path, regular_files: Iterable[str]) -> Optional[BuildFile]:
        present = set(regular_files)
        for name in self.config.build_file_names:
            if name in present:
                return load_build_file(directory / name)
        return None


def merge_rules(
    build_file: BuildFile,
    generated: Sequence[Rule],
    kinds: Dict[str, KindInfo],
    loads: Sequence[LoadInfo],
) -> None:
    """Fold generated rules into ``build_file`` in place.

    A generated rule takes the slot of a deleted rule with the same kind and
    name. If a live rule with that kind and name exists, its mergeable
    attributes are overwritten and any missing attributes are filled in.
    Rules missing a required attribute of their kind are dropped.
    """
    pending = list(generated)
    statements = []
    for stmt in build_file.statements:
        if not isinstance(stmt, Rule):
            statements.append(stmt)
            continue
        match = _take_matching(pending, stmt.kind, stmt.name)
        if stmt.deleted:
            if match is not None:
                statements.append(match)
            continue
        if match is not None:
            _merge_into(stmt, match, kinds.get(stmt.kind))
        statements.append(stmt)
    statements.extend(pending)

    build_file.statements = [
        stmt
        for stmt in statements
        if not (isinstance(stmt, Rule) and _is_empty(stmt, kinds.get(stmt.kind)))
    ]
    _sync_loads(build_file, loads)


def _take_matching(pending: List[Rule], kind: str, name: str) -> Optional[Rule]:
    for index, rule in enumerate(pending):
        if rule.kind == kind and rule.name == name:
            return pending.pop(index)
    return None


def _merge_into(existing: Rule, generated: Rule, info: Optional[KindInfo]) -> None:
    mergeable = info.mergeable_attrs if info is not None else frozenset()
    for key, value in generated.attrs.items():
        if key in mergeable or not existing.has_attr(key):
            existing.set_attr(key, value)


def _is_empty(rule: Rule, info: Optional[KindInfo]) -> bool:
    if info is None:
        return False
    return any(not rule.attr(key) for key in info.non_empty_attrs)


def _sync_loads(build_file: BuildFile, loads: Sequence[LoadInfo]) -> None:
    used_kinds = {rule.kind for rule in build_file.rules}
    for info in loads:
        wanted = [symbol for symbol in info.symbols if symbol in used_kinds]
        existing = next((load for load in build_file.loads if load.label == info.name), None)
        if existing is None:
            if wanted:
                _insert_load(build_file, LoadStatement(label=info.name, symbols=wanted))
            continue
        known = set(info.symbols)
        symbols = [s for s in existing.symbols if s not in known or s in wanted]
        symbols.extend(s for s in wanted if s not in symbols)
        if symbols:
            existing.symbols = symbols
        else:
            build_file.statements.remove(existing)


def _insert_load(build_file: BuildFile, load: LoadStatement) -> None:
    """Insert after the last load, or below a leading header comment if none."""
    statements = build_file.statements
    loads = [i for i, stmt in enumerate(statements) if isinstance(stmt, LoadStatement)]
    if loads:
        statements.insert(loads[-1] + 1, load)
        return
    index = 0
    while index < len(statements) and _is_header(statements[index]):
        index += 1
    statements.insert(index, load)


def _is_header(stmt: Statement) -> bool:
    # A comment attached to the statement below it belongs to that statement.
    if not isinstance(stmt, Verbatim) or stmt.attached:
        return False
    return all(line.lstrip().startswith("#") for line in stmt.text.splitlines())


__all__ = ["ExcludeRule", "WalkResult", "Walker", "merge_rules"]
