"""The go_mod language: one go_mod rule per directory holding a go.mod."""

from __future__ import annotations

from typing import Dict, List

from ..config import GoModConfig
from ..languages.base import Language
from ..logging import get_logger
from ..models import GenerateArgs, GenerateResult, KindInfo, LoadInfo
from .aggregator import Aggregator
from .boundary import BoundaryResolver


class GoModLanguage(Language):
    """Groups go_library targets under the go.mod that governs them.

    Only library kinds are collected; binaries and tests never become deps.
    """

    name = "go_mod"

    def __init__(self, settings: GoModConfig | None = None) -> None:
        self.settings = settings or GoModConfig()
        self.resolver = BoundaryResolver(self.settings.manifest_file)
        self.aggregator = Aggregator(self.settings)
        self.logger = get_logger("gomod")

    def kinds(self) -> Dict[str, KindInfo]:
        return {
            self.settings.rule_kind: KindInfo(
                non_empty_attrs=frozenset({"module_path", "go_mod"}),
                mergeable_attrs=frozenset({"deps"}),
            )
        }

    def loads(self) -> List[LoadInfo]:
        return [LoadInfo(name=self.settings.load_label, symbols=(self.settings.rule_kind,))]

    def begin_walk(self) -> None:
        self.aggregator.reset()

    def end_walk(self) -> None:
        for path in self.aggregator.pending():
            self.logger.warning(
                "Targets were collected for %s but no %s rule was emitted",
                path,
                self.settings.rule_kind,
            )

    def generate_rules(self, args: GenerateArgs) -> GenerateResult:
        governing = self.resolver.resolve(args.dir, args.regular_files, args.root)
        gen = self.aggregator.visit(
            args.file,
            args.other_gen,
            args.rel,
            governing,
            args.regular_files,
        )
        return GenerateResult(gen=gen, imports=[None] * len(gen))


__all__ = ["GoModLanguage"]
