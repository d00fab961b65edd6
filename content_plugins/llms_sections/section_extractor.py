"""
Named sections of a collection, used to group pages in llms.txt.
"""

import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from content_plugins.collection.collection_index import CollectionHandle, CollectionIndex, FilterPredicate
from content_plugins.document_parser.document_parser import Document


@dataclass(frozen=True)
class SectionDefinition:
    title: str
    collection: str
    filters: Sequence[FilterPredicate] = ()
    description: str = ""


@dataclass
class SectionView:
    """
    Named point-in-time result of a section query.

    Holds weak references only; the collection index owns the documents.
    Re-run :func:`extract_section` after a rebuild instead of reusing a view.
    """

    name: str
    paths: List[str]
    description: str = ""
    _refs: List["weakref.ref[Document]"] = field(default_factory=list, repr=False)

    @property
    def documents(self) -> List[Document]:
        docs = []
        for ref in self._refs:
            doc = ref()
            if doc is not None:
                docs.append(doc)
        return docs

    def __len__(self) -> int:
        return len(self.paths)

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.name, "description": self.description, "paths": list(self.paths)}


def extract_section(
    name: str,
    index: CollectionIndex,
    handle: CollectionHandle,
    filters: Sequence[FilterPredicate] = (),
    description: str = "",
) -> SectionView:
    documents = index.query(handle, filters)
    return SectionView(
        name=name,
        paths=[doc.path for doc in documents],
        description=description,
        _refs=[weakref.ref(doc) for doc in documents],
    )


def union_documents(sections: Sequence[SectionView]) -> List[Document]:
    """Documents of every section, first occurrence wins."""
    seen = set()
    out: List[Document] = []
    for section in sections:
        for doc in section.documents:
            key = (doc.source_path, doc.path)
            if key in seen:
                continue
            seen.add(key)
            out.append(doc)
    return out


def build_sections(
    definitions: Sequence[SectionDefinition],
    index: CollectionIndex,
    handles: Optional[Dict[str, CollectionHandle]] = None,
) -> List[SectionView]:
    handles = handles or {}
    views = []
    for definition in definitions:
        handle = handles.get(definition.collection) or index.handle(definition.collection)
        views.append(
            extract_section(definition.title, index, handle, definition.filters, definition.description)
        )
    return views
