"""Base class for language plugins driven by the walker."""

from abc import ABC, abstractmethod
from typing import Dict, List

from ..models import GenerateArgs, GenerateResult, KindInfo, LoadInfo


class Language(ABC):
    """Contract for languages that generate rules one directory at a time."""

    name: str = ""

    @abstractmethod
    def kinds(self) -> Dict[str, KindInfo]:
        """Rule kinds this language generates, with their attribute contracts."""

    @abstractmethod
    def loads(self) -> List[LoadInfo]:
        """Load statements needed by the generated kinds."""

    @abstractmethod
    def generate_rules(self, args: GenerateArgs) -> GenerateResult:
        """Produce rules for ``args.dir``; subdirectories have already been visited."""

    def begin_walk(self) -> None:
        """Hook called before the first directory of a walk."""

    def end_walk(self) -> None:
        """Hook called after the last directory of a walk."""
