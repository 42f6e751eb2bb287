"""Core data models shared across modgen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Union

_MISSING = object()


class Rule:
    """A single build declaration such as ``go_library(name = "lib")``."""

    def __init__(
        self,
        kind: str,
        name: str,
        attrs: Optional[Dict[str, Any]] = None,
        *,
        source: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.name = name
        self._attrs: Dict[str, Any] = dict(attrs or {})
        self._deleted = False
        self._source = source

    @property
    def deleted(self) -> bool:
        return self._deleted

    def delete(self) -> None:
        """Mark the rule for removal when the file is next written."""
        self._deleted = True
        self._source = None

    def attr(self, key: str, default: Any = None) -> Any:
        return self._attrs.get(key, default)

    def set_attr(self, key: str, value: Any) -> None:
        if key in self._attrs and self._attrs[key] == value:
            return
        self._attrs[key] = value
        self._source = None

    def del_attr(self, key: str) -> None:
        if self._attrs.pop(key, _MISSING) is not _MISSING:
            self._source = None

    def has_attr(self, key: str) -> bool:
        return key in self._attrs

    @property
    def attrs(self) -> Dict[str, Any]:
        return dict(self._attrs)

    @property
    def source(self) -> Optional[str]:
        """Text the rule was parsed from, or None once it has been modified."""
        return self._source

    def __repr__(self) -> str:
        marker = " deleted" if self._deleted else ""
        return f"Rule({self.kind}:{self.name}{marker})"


@dataclass
class LoadStatement:
    """A ``load("label", "symbol", ...)`` statement."""

    label: str
    symbols: List[str] = field(default_factory=list)


@dataclass
class Verbatim:
    """Source text the reader does not model, written back unchanged."""

    text: str
    attached: bool = False


Statement = Union[LoadStatement, Rule, Verbatim]


@dataclass
class BuildFile:
    """Parsed view of one BUILD file."""

    path: Path
    statements: List[Statement] = field(default_factory=list)

    @property
    def rules(self) -> List[Rule]:
        return [stmt for stmt in self.statements if isinstance(stmt, Rule)]

    @property
    def loads(self) -> List[LoadStatement]:
        return [stmt for stmt in self.statements if isinstance(stmt, LoadStatement)]


@dataclass(frozen=True)
class KindInfo:
    """Attribute contract of a generated rule kind."""

    non_empty_attrs: FrozenSet[str] = frozenset()
    mergeable_attrs: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class LoadInfo:
    """Where the symbols for generated kinds are loaded from."""

    name: str
    symbols: Sequence[str]


@dataclass(frozen=True)
class ManifestDirectory:
    """Directory that directly contains a governing manifest file."""

    path: Path
    rel: str
    module_path: Optional[str] = None
    has_lock: bool = False


@dataclass
class GenerateArgs:
    """Per-directory input handed to each language by the walker."""

    dir: Path
    rel: str
    root: Path
    regular_files: List[str] = field(default_factory=list)
    file: Optional[BuildFile] = None
    other_gen: List[Rule] = field(default_factory=list)


@dataclass
class GenerateResult:
    """Rules produced for one directory and their import placeholders."""

    gen: List[Rule] = field(default_factory=list)
    imports: List[Any] = field(default_factory=list)
