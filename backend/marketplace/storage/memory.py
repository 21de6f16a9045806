"""
In-memory document store.

WHAT: Dict-backed implementation of the collection contract
WHY: Development and tests without a database
HOW: One dict per collection, a lock around every read-modify-write,
     deep copies at the boundary so callers never alias stored state
"""

import copy
import operator
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from .base import (
    DocumentCollection,
    DocumentNotFoundError,
    DocumentStore,
    FieldFilter,
    Query,
    check_expectations,
    get_path,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _matches(document: Mapping[str, Any], flt: FieldFilter) -> bool:
    actual = get_path(document, flt.field)

    if flt.value is None:
        if flt.op == "==":
            return actual is None
        if flt.op == "!=":
            return actual is not None
        return False
    if actual is None:
        return False

    try:
        return _COMPARATORS[flt.op](actual, flt.value)
    except TypeError:
        # Mismatched types (e.g. str vs int) never match
        return False


def _sort_key(path: str):
    def key(document):
        value = get_path(document, path)
        return (value is not None, value)
    return key


class InMemoryCollection(DocumentCollection):
    """Single named collection inside an InMemoryDocumentStore."""

    def __init__(self, name: str, lock: threading.Lock):
        super().__init__(name)
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = lock

    async def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._documents.get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    async def put(self, doc_id: str, document: Mapping[str, Any]) -> None:
        with self._lock:
            self._documents[doc_id] = copy.deepcopy({**document, "id": doc_id})

    async def update(
        self,
        doc_id: str,
        fields: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        with self._lock:
            existing = self._documents.get(doc_id)
            if existing is None:
                raise DocumentNotFoundError(f"{self.name}/{doc_id}")
            check_expectations(doc_id, existing, expect)

            merged = {**existing, **copy.deepcopy(dict(fields))}
            self._documents[doc_id] = merged
            return copy.deepcopy(merged)

    async def query(self, query: Query) -> List[Dict[str, Any]]:
        with self._lock:
            results = [
                doc for doc in self._documents.values()
                if all(_matches(doc, flt) for flt in query.filters)
            ]

            # Stable sorts applied last-key-first give multi-key ordering
            for order in reversed(query.order_by):
                try:
                    results.sort(key=_sort_key(order.field), reverse=order.direction == "desc")
                except TypeError:
                    logger.warning(f"Mixed value types in {self.name}.{order.field}; order skipped")

            if query.limit is not None:
                results = results[:query.limit]
            return copy.deepcopy(results)

    def clear(self):
        with self._lock:
            self._documents.clear()


class InMemoryDocumentStore(DocumentStore):
    """
    Process-local store, one instance per app or test.

    Data lives only as long as the instance; nothing is shared at module level.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._collections = {
            name: InMemoryCollection(name, self._lock) for name in self.COLLECTIONS
        }

    def collection(self, name: str) -> InMemoryCollection:
        try:
            return self._collections[name]
        except KeyError:
            raise ValueError(f"Unknown collection: {name}") from None

    def initialize(self):
        logger.info("In-memory document store ready")

    def clear(self):
        """Drop every document in every collection."""
        for collection in self._collections.values():
            collection.clear()

    def ping(self) -> dict:
        return {"available": True, "backend": "memory", "error": None}
