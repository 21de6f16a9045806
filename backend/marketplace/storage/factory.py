"""
Document store factory.

WHAT: Build the store configured by STORAGE_BACKEND
WHY: The app factory should not know which backend it gets
HOW: Read settings, import the SQL backend lazily, log the selection
"""

from ..core.config import Settings
from ..utils.logger import get_logger
from .base import DocumentStore

logger = get_logger(__name__)


def build_store(settings: Settings) -> DocumentStore:
    """
    Create a new document store for settings.

    Every call returns a fresh instance; callers own its lifecycle.

    Raises:
        ValueError: If STORAGE_BACKEND is unknown
    """
    backend = settings.STORAGE_BACKEND

    if backend == "memory":
        from .memory import InMemoryDocumentStore
        store = InMemoryDocumentStore()
    elif backend == "sql":
        # Import here to avoid loading SQLAlchemy models for the memory backend
        from .sql import SqlDocumentStore
        store = SqlDocumentStore(settings.DATABASE_URL, echo=settings.DEBUG)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info(f"Document store selected: {backend}")
    return store
