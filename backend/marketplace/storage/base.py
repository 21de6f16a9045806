"""
Document collection contract.

WHAT: Storage-agnostic query facade over keyed JSON documents
WHY: Lifecycle services must not depend on a specific storage engine
HOW: Query value object plus abstract collection/store classes that every
     backend (in-memory, SQL) implements with identical semantics
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

OPERATORS = ("==", "!=", "<", "<=", ">", ">=")
# Last code point of the BMP private use area. Python and SQLite (BINARY
# collation) agree that it sorts below U+F900..U+FFFF and every
# supplementary-plane character such as emoji; a value whose next character
# after the prefix is one of those falls outside the prefix range.
PREFIX_SENTINEL = "\uf8ff"

_FIELD_PATH = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


class StoreUnavailableError(Exception):
    """Backing store is unreachable or failed mid-operation."""
    pass


class DocumentNotFoundError(Exception):
    """Update targeted a document that does not exist."""
    pass


class ConcurrentUpdateError(Exception):
    """Conditional update lost: the stored document no longer matches `expect`."""

    def __init__(self, doc_id: str, field_name: str, expected: Any, actual: Any):
        super().__init__(
            f"Document {doc_id}: expected {field_name}={expected!r}, found {actual!r}"
        )
        self.doc_id = doc_id
        self.field_name = field_name
        self.expected = expected
        self.actual = actual


def validate_field_path(path: str) -> str:
    """Reject anything that is not a dotted identifier path."""
    if not _FIELD_PATH.match(path):
        raise ValueError(f"Invalid field path: {path!r}")
    return path


def get_path(document: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path like 'location.city'; missing segments give None."""
    value: Any = document
    for key in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def check_expectations(doc_id: str, document: Mapping[str, Any], expect: Optional[Mapping[str, Any]]):
    """Raise ConcurrentUpdateError on the first `expect` entry that no longer holds."""
    for path, expected in (expect or {}).items():
        actual = get_path(document, path)
        if actual != expected:
            raise ConcurrentUpdateError(doc_id, path, expected, actual)


@dataclass(frozen=True)
class FieldFilter:
    """Single comparison on a (possibly dotted) field."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        validate_field_path(self.field)
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op!r}")


@dataclass(frozen=True)
class OrderBy:
    """Sort key; applied in the order added to the query."""
    field: str
    direction: str = "asc"

    def __post_init__(self):
        validate_field_path(self.field)
        if self.direction not in ("asc", "desc"):
            raise ValueError(f"Unsupported sort direction: {self.direction!r}")


@dataclass
class Query:
    """
    Conjunctive filters, ordering and limit.

    Builder methods return the query so calls chain:
        Query().where("status", "==", "active").order("priority", "desc").take(50)
    """
    filters: List[FieldFilter] = field(default_factory=list)
    order_by: List[OrderBy] = field(default_factory=list)
    limit: Optional[int] = None

    def where(self, field_name: str, op: str, value: Any) -> "Query":
        self.filters.append(FieldFilter(field_name, op, value))
        return self

    def where_prefix(self, field_name: str, prefix: str) -> "Query":
        """
        Range pair matching strings that start with prefix.

        Not exact: see PREFIX_SENTINEL for the characters it cannot follow.
        """
        self.where(field_name, ">=", prefix)
        return self.where(field_name, "<=", prefix + PREFIX_SENTINEL)

    def order(self, field_name: str, direction: str = "asc") -> "Query":
        self.order_by.append(OrderBy(field_name, direction))
        return self

    def take(self, limit: Optional[int]) -> "Query":
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        self.limit = limit
        return self


class DocumentCollection(ABC):
    """
    Keyed collection of JSON documents.

    Semantics every backend must share:
    - Missing fields read as null.
    - A null field matches `== None` only; `!=` and range comparisons
      never match it.
    - Ascending order puts nulls first, descending puts them last.
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of the document or None."""
        ...

    @abstractmethod
    async def put(self, doc_id: str, document: Mapping[str, Any]) -> None:
        """Create or replace a document."""
        ...

    @abstractmethod
    async def update(
        self,
        doc_id: str,
        fields: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Shallow-merge fields into a stored document.

        Args:
            doc_id: Document key
            fields: Top-level keys to overwrite
            expect: Optional dotted-path -> value preconditions checked atomically

        Returns:
            The merged document

        Raises:
            DocumentNotFoundError: No document with doc_id
            ConcurrentUpdateError: A precondition no longer holds (nothing written)
        """
        ...

    @abstractmethod
    async def query(self, query: Query) -> List[Dict[str, Any]]:
        """Return copies of matching documents, ordered and limited."""
        ...


class DocumentStore(ABC):
    """Named collections plus lifecycle hooks."""

    COLLECTIONS = ("vendors", "emergency", "surplus", "prices")

    @abstractmethod
    def collection(self, name: str) -> DocumentCollection:
        ...

    @property
    def vendors(self) -> DocumentCollection:
        return self.collection("vendors")

    @property
    def emergency(self) -> DocumentCollection:
        return self.collection("emergency")

    @property
    def surplus(self) -> DocumentCollection:
        return self.collection("surplus")

    @property
    def prices(self) -> DocumentCollection:
        return self.collection("prices")

    def initialize(self):
        """Prepare the backend (create tables etc.)."""
        pass

    def close(self):
        """Release backend resources."""
        pass

    @abstractmethod
    def ping(self) -> dict:
        """Health check: {"available": bool, "backend": str, "error": str | None}."""
        ...
