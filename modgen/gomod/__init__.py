"""go.mod boundary resolution, target aggregation and go_mod rule emission."""

from .aggregator import Aggregator
from .boundary import BoundaryError, BoundaryResolver
from .labels import format_label
from .language import GoModLanguage
from .manifest import ManifestError, parse_module_path

__all__ = [
    "Aggregator",
    "BoundaryError",
    "BoundaryResolver",
    "GoModLanguage",
    "ManifestError",
    "format_label",
    "parse_module_path",
]
