"""Configuration loading for modgen (.modgen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".modgen.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class GoModConfig:
    """Settings for the go_mod language."""

    manifest_file: str = "go.mod"
    lock_file: str = "go.sum"
    module_directive: str = "module"
    library_kinds: List[str] = field(default_factory=lambda: ["go_library"])
    rule_kind: str = "go_mod"
    rule_name: str = "go_mod_dir"
    load_label: str = "//rules/go_mod:go_mod.bzl"


@dataclass
class ModGenConfig:
    """Represents the settings defined in .modgen.yml."""

    root: Path
    languages: Optional[List[str]] = None
    build_file_names: List[str] = field(default_factory=lambda: ["BUILD.bazel", "BUILD"])
    exclude_paths: List[str] = field(default_factory=list)
    go_mod: GoModConfig = field(default_factory=GoModConfig)

    @property
    def build_file_name(self) -> str:
        """Name used when a directory has no BUILD file yet."""
        return self.build_file_names[0]


def load_config(config_path: Path) -> ModGenConfig:
    """Load configuration from a .modgen.yml file or the directory holding it."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ModGenConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = ModGenConfig(root=root)

    if "languages" in data:
        config.languages = _as_str_list(data.get("languages"))

    build_file_names = _as_str_list(data.get("build_file_names"))
    if build_file_names:
        config.build_file_names = build_file_names

    config.exclude_paths = _as_str_list(data.get("exclude_paths"))

    go_mod_data = _as_dict(data.get("go_mod"))
    if go_mod_data:
        config.go_mod = _load_go_mod(go_mod_data)

    return config


def _load_go_mod(data: Dict[str, Any]) -> GoModConfig:
    defaults = GoModConfig()
    library_kinds = _as_str_list(data.get("library_kinds"))
    settings = GoModConfig(
        manifest_file=_as_str(data.get("manifest_file")) or defaults.manifest_file,
        lock_file=_as_str(data.get("lock_file")) or defaults.lock_file,
        module_directive=_as_str(data.get("module_directive")) or defaults.module_directive,
        library_kinds=library_kinds or defaults.library_kinds,
        rule_kind=_as_str(data.get("rule_kind")) or defaults.rule_kind,
        rule_name=_as_str(data.get("rule_name")) or defaults.rule_name,
        load_label=_as_str(data.get("load_label")) or defaults.load_label,
    )
    if any(char.isspace() for char in settings.module_directive):
        raise ConfigError("go_mod.module_directive must be a single word")
    return settings


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []
