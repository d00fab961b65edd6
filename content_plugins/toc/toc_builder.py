"""
Table of contents built from a document's heading list, bounded by depth.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from content_plugins.document_parser.document_parser import Document


@dataclass
class TocEntry:
    level: int
    text: str
    anchor: str
    children: List["TocEntry"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.anchor,
            "depth": self.level,
            "text": self.text,
            "children": [child.to_dict() for child in self.children],
        }


def build_toc(document: Document, max_depth: int) -> List[TocEntry]:
    """
    Build the table of contents for ``document``.

    Headings deeper than ``max_depth`` are left out entirely; the rest nest
    under the nearest preceding heading of a lower level. A first heading
    below level 1 still becomes a root entry.
    """
    if max_depth < 1:
        raise ValueError(f"max_depth must be >= 1, got {max_depth}")

    roots: List[TocEntry] = []
    stack: List[TocEntry] = []
    for heading in document.headings:
        if heading.level > max_depth:
            continue
        entry = TocEntry(heading.level, heading.text, heading.anchor)
        while stack and stack[-1].level >= entry.level:
            stack.pop()
        if stack:
            stack[-1].children.append(entry)
        else:
            roots.append(entry)
        stack.append(entry)
    return roots


def iter_toc(entries: List[TocEntry]):
    """Depth-first walk over a TOC forest."""
    for entry in entries:
        yield entry
        yield from iter_toc(entry.children)
