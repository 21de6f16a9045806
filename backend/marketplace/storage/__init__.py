"""Document storage layer."""

from .base import (
    ConcurrentUpdateError,
    DocumentCollection,
    DocumentNotFoundError,
    DocumentStore,
    FieldFilter,
    OrderBy,
    Query,
    StoreUnavailableError,
)
from .memory import InMemoryDocumentStore
from .factory import build_store

__all__ = [
    "ConcurrentUpdateError",
    "DocumentCollection",
    "DocumentNotFoundError",
    "DocumentStore",
    "FieldFilter",
    "OrderBy",
    "Query",
    "StoreUnavailableError",
    "InMemoryDocumentStore",
    "build_store",
]
