"""Language plugins and discovery utilities.

Languages come from two places: the built-ins shipped with modgen and the
``modgen.languages`` entry-point group. Each source yields ``(name, factory)``
candidates; a factory is only called once its language has been selected, so
plugins that are not enabled are never imported.
"""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, Iterable, Iterator, List, Sequence, Tuple

from ..config import ModGenConfig
from .base import Language

_ENTRY_POINT_GROUP = "modgen.languages"

LanguageFactory = Callable[[ModGenConfig], Language]


class UnknownLanguageError(ValueError):
    """Raised when a requested language is neither built in nor installed."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = sorted(set(names))
        super().__init__(f"Unknown languages requested: {', '.join(self.names)}")


def _go_mod(config: ModGenConfig) -> Language:
    # Imported here: gomod.language imports this package for the base class.
    from ..gomod.language import GoModLanguage

    return GoModLanguage(config.go_mod)


_BUILTINS: Tuple[Tuple[str, LanguageFactory], ...] = (("go_mod", _go_mod),)


def discover_languages(
    config: ModGenConfig, enabled: Sequence[str] | None = None
) -> List[Language]:
    """Instantiate the selected languages in run order.

    ``enabled`` falls back to ``config.languages``; ``None`` selects every
    available language. Names match case-insensitively, and the run order is
    always built-ins first, then entry points, whatever order was requested.
    The first candidate registered under a name wins.
    """
    available: Dict[str, Tuple[str, LanguageFactory]] = {}
    for name, factory in _candidates():
        available.setdefault(name.lower(), (name, factory))

    selection = config.languages if enabled is None else enabled
    if selection is not None:
        wanted = {name.lower() for name in selection}
        unknown = wanted.difference(available)
        if unknown:
            raise UnknownLanguageError(unknown)
        available = {key: value for key, value in available.items() if key in wanted}

    return [_instantiate(name, factory, config) for name, factory in available.values()]


def _candidates() -> Iterator[Tuple[str, LanguageFactory]]:
    yield from _BUILTINS
    for entry in _iter_entry_points():
        yield entry.name, _entry_point_factory(entry)


def _entry_point_factory(entry: metadata.EntryPoint) -> LanguageFactory:
    def _factory(config: ModGenConfig) -> Language:
        try:
            target = entry.load()
        except Exception as exc:  # pragma: no cover - plugin import failure
            raise RuntimeError(f"Failed to load language entry point '{entry.name}': {exc}") from exc
        return _coerce_language(target, config)

    return _factory


def _instantiate(name: str, factory: LanguageFactory, config: ModGenConfig) -> Language:
    language = factory(config)
    if not isinstance(language, Language):
        raise TypeError(f"Language factory for '{name}' did not return a Language instance")
    return language


def _coerce_language(target: object, config: ModGenConfig) -> Language:
    """Accept a Language instance, a Language subclass, or a factory taking the config."""
    if isinstance(target, Language):
        return target
    if isinstance(target, type):
        if issubclass(target, Language):
            return target()
    elif callable(target):
        produced = target(config)
        if isinstance(produced, Language):
            return produced
    raise TypeError("Language entry point must be a Language subclass or a factory taking the config")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "Language",
    "UnknownLanguageError",
    "discover_languages",
]
