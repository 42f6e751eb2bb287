"""Bazel label formatting for library references."""

from __future__ import annotations

ROOT_PACKAGE = ""

_ROOT_ALIASES = {"", ".", "/", "./"}


def normalise_rel(rel: str) -> str:
    """Return ``rel`` as a slash-separated package path, ``""`` for the root."""
    cleaned = rel.replace("\\", "/").strip()
    if cleaned in _ROOT_ALIASES:
        return ROOT_PACKAGE
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    parts = [part for part in cleaned.split("/") if part and part != "."]
    return "/".join(parts)


def format_label(target_rel: str, name: str, manifest_rel: str) -> str:
    """Render a reference to ``name`` in ``target_rel`` as seen from ``manifest_rel``.

    Targets living in the manifest's own package use the ``:name`` shorthand.
    Everything else is fully qualified, e.g. ``//pkg/a:lib`` or ``//:lib``.
    """
    package = normalise_rel(target_rel)
    if package == normalise_rel(manifest_rel):
        return f":{name}"
    return f"//{package}:{name}"


__all__ = ["ROOT_PACKAGE", "format_label", "normalise_rel"]
