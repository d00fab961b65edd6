"""
Build diagnostics: problems that are reported but do not stop the build.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional

from mkdocs.utils import log


class DiagnosticKind(str, Enum):
    MALFORMED_FRONT_MATTER = "MalformedFrontMatter"
    UNREADABLE_SOURCE = "UnreadableSource"
    PATH_COLLISION = "PathCollision"
    BROKEN_LINK = "BrokenLink"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    subject: str
    message: str
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


class Diagnostics:
    """
    Non-fatal build problems, collected and returned next to the output.

    Every entry is also logged as a warning when it is recorded.
    """

    def __init__(self):
        self._items: List[Diagnostic] = []

    def record(self, kind: DiagnosticKind, subject: str, message: str, source: Optional[str] = None) -> Diagnostic:
        diagnostic = Diagnostic(kind, subject, message, source)
        self._items.append(diagnostic)
        log.warning(f"[content_build] {kind.value}: {message}")
        return diagnostic

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self._items if d.kind is kind]

    def to_list(self) -> List[Dict[str, Optional[str]]]:
        return [d.to_dict() for d in self._items]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)
