"""
In-memory collection index over parsed documents.

Front matter is not schematized, so every operator is total: a missing
field or a type mismatch makes the predicate false instead of raising.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from content_plugins.content_build.diagnostics import DiagnosticKind, Diagnostics
from content_plugins.document_parser.document_parser import Document

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# Document attributes that shadow front-matter keys of the same name
DOCUMENT_FIELDS = ("path", "title", "description", "stem", "extension", "body", "source_path")

_MISSING = object()


class Operator(str, Enum):
    EQ = "="
    NE = "<>"
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    IN = "IN"
    NOT_IN = "NOT IN"
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"
    BETWEEN = "BETWEEN"
    NOT_BETWEEN = "NOT BETWEEN"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"

    @classmethod
    def parse(cls, raw: Any) -> "Operator":
        """Accept either the symbol (``=``, ``LIKE``) or the name (``EQ``, ``NOT_LIKE``)."""
        if isinstance(raw, Operator):
            return raw
        text = " ".join(str(raw).strip().upper().replace("_", " ").split())
        aliases = {"EQ": "=", "==": "=", "NE": "<>", "!=": "<>", "GT": ">", "GTE": ">=", "LT": "<", "LTE": "<="}
        text = aliases.get(text, text)
        for op in cls:
            if op.value == text:
                return op
        raise ValueError(f"unknown filter operator: {raw!r}")


@dataclass(frozen=True)
class FilterPredicate:
    field: str
    operator: Operator
    value: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterPredicate":
        if "field" not in data or "operator" not in data:
            raise ValueError(f"filter needs 'field' and 'operator': {data!r}")
        return cls(str(data["field"]), Operator.parse(data["operator"]), data.get("value"))


@dataclass(frozen=True)
class CollectionHandle:
    name: str


class UnknownCollectionError(KeyError):
    pass


class CollectionIndex:
    def __init__(self, like_case_sensitive: bool = False, diagnostics: Optional[Diagnostics] = None):
        self.like_case_sensitive = like_case_sensitive
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._collections: Dict[str, Dict[str, Document]] = {}

    # Storage

    def ingest(self, documents: Iterable[Document], name: str = "docs") -> CollectionHandle:
        """Replace collection ``name`` with ``documents``; on duplicate paths the later one wins."""
        store: Dict[str, Document] = {}
        for doc in documents:
            previous = store.pop(doc.path, None)
            if previous is not None:
                self.diagnostics.record(
                    DiagnosticKind.PATH_COLLISION,
                    doc.path,
                    f"{doc.source_path} replaces {previous.source_path} at {doc.path} in collection '{name}'",
                    source=doc.source_path,
                )
            store[doc.path] = doc
        self._collections[name] = store
        logger.info(f"[collection] ingested {len(store)} documents into '{name}'")
        return CollectionHandle(name)

    def names(self) -> List[str]:
        return list(self._collections)

    def handle(self, name: str) -> CollectionHandle:
        self._store(CollectionHandle(name))
        return CollectionHandle(name)

    def documents(self, handle: CollectionHandle) -> List[Document]:
        return list(self._store(handle).values())

    def get(self, handle: CollectionHandle, path: str) -> Optional[Document]:
        return self._store(handle).get(path)

    def _store(self, handle: CollectionHandle) -> Dict[str, Document]:
        try:
            return self._collections[handle.name]
        except KeyError:
            raise UnknownCollectionError(handle.name) from None

    # Querying

    def query(
        self,
        handle: CollectionHandle,
        filters: Sequence[FilterPredicate] = (),
        order_by: Optional[Tuple[str, str]] = None,
    ) -> List[Document]:
        matched = [
            doc for doc in self._store(handle).values() if all(self.matches(doc, f) for f in filters)
        ]
        if order_by:
            matched = self._order(matched, *order_by)
        logger.debug(f"[collection] query on '{handle.name}' with {len(filters)} filters -> {len(matched)} documents")
        return matched

    @staticmethod
    def field_value(doc: Document, name: str) -> Any:
        if name in DOCUMENT_FIELDS:
            return getattr(doc, name)
        value: Any = doc.front_matter
        for key in (k.strip() for k in name.split(".") if k.strip()):
            if not isinstance(value, dict) or key not in value:
                return _MISSING
            value = value[key]
        return value

    def matches(self, doc: Document, predicate: FilterPredicate) -> bool:
        value = self.field_value(doc, predicate.field)
        op = predicate.operator
        target = predicate.value

        if op is Operator.IS_NULL:
            return value is _MISSING or value is None
        if op is Operator.IS_NOT_NULL:
            return value is not _MISSING and value is not None
        if value is _MISSING:
            return False

        if op is Operator.EQ:
            return self._equals(value, target)
        if op is Operator.NE:
            return not self._equals(value, target)
        if op in (Operator.IN, Operator.NOT_IN):
            if not isinstance(target, (list, tuple, set, frozenset)):
                return False
            found = self._member(value, target)
            return found if op is Operator.IN else not found
        if op in (Operator.LIKE, Operator.NOT_LIKE):
            if not isinstance(value, str) or not isinstance(target, str):
                return False
            found = self.like(value, target, self.like_case_sensitive)
            return found if op is Operator.LIKE else not found
        if op in (Operator.BETWEEN, Operator.NOT_BETWEEN):
            if not isinstance(target, (list, tuple)) or len(target) != 2:
                return False
            low, high = target
            if not (self._is_number(value) and self._is_number(low) and self._is_number(high)):
                return False
            inside = low <= value <= high
            return inside if op is Operator.BETWEEN else not inside

        if not (self._is_number(value) and self._is_number(target)):
            return False
        if op is Operator.GT:
            return value > target
        if op is Operator.GTE:
            return value >= target
        if op is Operator.LT:
            return value < target
        return value <= target

    @staticmethod
    def _is_number(value: Any) -> bool:
        return isinstance(value, Real) and not isinstance(value, bool)

    @staticmethod
    def _equals(value: Any, target: Any) -> bool:
        if isinstance(value, bool) or isinstance(target, bool):
            return type(value) is type(target) and value == target
        if isinstance(value, (list, tuple)) and isinstance(target, (list, tuple)):
            return list(value) == list(target)
        return value == target

    def _member(self, value: Any, options) -> bool:
        if isinstance(value, (list, tuple)):
            return any(self._member(item, options) for item in value)
        return any(self._equals(value, option) for option in options)

    @staticmethod
    def like(value: str, pattern: str, case_sensitive: bool = False) -> bool:
        """SQL LIKE: ``%`` matches any run, ``_`` one character."""
        regex = "".join(
            ".*" if ch == "%" else "." if ch == "_" else re.escape(ch) for ch in pattern
        )
        flags = re.DOTALL if case_sensitive else re.DOTALL | re.IGNORECASE
        return re.fullmatch(regex, value, flags) is not None

    def _order(self, docs: List[Document], field_name: str, direction: str = "ASC") -> List[Document]:
        descending = str(direction).upper() == "DESC"

        def sort_key(doc: Document):
            value = self.field_value(doc, field_name)
            # missing values sort last in either direction
            if value is _MISSING or value is None:
                return (1, 0, "")
            if self._is_number(value):
                return (0, 0, value)
            return (0, 1, str(value))

        present = [d for d in docs if sort_key(d)[0] == 0]
        missing = [d for d in docs if sort_key(d)[0] == 1]
        present.sort(key=sort_key, reverse=descending)
        return present + missing
