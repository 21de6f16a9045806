"""
SQL-backed document store.

WHAT: SQLAlchemy implementation of the collection contract
WHY: Durable storage behind the same facade the in-memory store satisfies
HOW: JSON documents in one table, json_extract for filters/ordering,
     optimistic version check for conditional updates, blocking work
     pushed to a worker thread so the event loop never waits on SQLite
"""

import asyncio
import operator
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import false, func, select, text, update as sql_update

from .base import (
    ConcurrentUpdateError,
    DocumentCollection,
    DocumentNotFoundError,
    DocumentStore,
    FieldFilter,
    Query,
    check_expectations,
)
from ..core.database import Base, build_engine, build_session_factory, session_scope
from ..core.models import DocumentRecord
from ..utils.logger import get_logger

logger = get_logger(__name__)

_SQL_OPERATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _json_field(path: str):
    return func.json_extract(DocumentRecord.body, f"$.{path}")


def _filter_clause(flt: FieldFilter):
    column = _json_field(flt.field)
    if flt.value is None:
        if flt.op == "==":
            return column.is_(None)
        if flt.op == "!=":
            return column.is_not(None)
        return false()
    # SQL NULL comparisons are never true, matching the in-memory semantics
    return _SQL_OPERATORS[flt.op](column, flt.value)


class SqlCollection(DocumentCollection):
    """Single named collection stored in the `documents` table."""

    def __init__(self, name: str, store: "SqlDocumentStore"):
        super().__init__(name)
        self._store = store

    def _record_query(self, doc_id: str):
        return select(DocumentRecord).where(
            DocumentRecord.collection == self.name,
            DocumentRecord.doc_id == doc_id
        )

    # Sync implementations

    def _get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        with session_scope(self._store.session_factory) as db:
            record = db.execute(self._record_query(doc_id)).scalar_one_or_none()
            return dict(record.body) if record else None

    def _put(self, doc_id: str, document: Mapping[str, Any]) -> None:
        body = {**document, "id": doc_id}
        with session_scope(self._store.session_factory) as db:
            record = db.execute(self._record_query(doc_id)).scalar_one_or_none()
            if record is None:
                db.add(DocumentRecord(collection=self.name, doc_id=doc_id, body=body, version=1))
            else:
                record.body = body
                record.version = record.version + 1

    def _update(
        self,
        doc_id: str,
        fields: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]]
    ) -> Dict[str, Any]:
        with session_scope(self._store.session_factory) as db:
            record = db.execute(self._record_query(doc_id)).scalar_one_or_none()
            if record is None:
                raise DocumentNotFoundError(f"{self.name}/{doc_id}")
            check_expectations(doc_id, record.body, expect)

            merged = {**record.body, **fields}
            read_version = record.version

            # Only lands if nobody else wrote since our read
            result = db.execute(
                sql_update(DocumentRecord)
                .where(DocumentRecord.id == record.id, DocumentRecord.version == read_version)
                .values(body=merged, version=read_version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrentUpdateError(doc_id, "version", read_version, None)
            return merged

    def _query(self, query: Query) -> List[Dict[str, Any]]:
        stmt = select(DocumentRecord.body).where(DocumentRecord.collection == self.name)

        for flt in query.filters:
            stmt = stmt.where(_filter_clause(flt))

        for order in query.order_by:
            column = _json_field(order.field)
            stmt = stmt.order_by(column.desc() if order.direction == "desc" else column.asc())

        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        with session_scope(self._store.session_factory) as db:
            return [dict(body) for body in db.execute(stmt).scalars().all()]

    # Async facade

    async def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._get, doc_id)

    async def put(self, doc_id: str, document: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._put, doc_id, dict(document))

    async def update(
        self,
        doc_id: str,
        fields: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        return await asyncio.to_thread(self._update, doc_id, dict(fields), expect)

    async def query(self, query: Query) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._query, query)


class SqlDocumentStore(DocumentStore):
    """
    Document store over a SQLAlchemy engine.

    Filtering relies on SQLite's json_extract, so the backend targets SQLite.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = build_engine(database_url, echo=echo)
        self.session_factory = build_session_factory(self.engine)
        self._collections = {name: SqlCollection(name, self) for name in self.COLLECTIONS}

    def collection(self, name: str) -> SqlCollection:
        try:
            return self._collections[name]
        except KeyError:
            raise ValueError(f"Unknown collection: {name}") from None

    def initialize(self):
        """Create tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"SQL document store initialized ({self.database_url})")

    def close(self):
        """Close database connections."""
        self.engine.dispose()
        logger.info("Database connections closed")

    def ping(self) -> dict:
        """
        Check database connectivity.

        Returns:
            Dict with status and info
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return {"available": True, "backend": "sql", "error": None}
        except Exception as e:
            logger.error(f"Database ping failed: {e}")
            return {"available": False, "backend": "sql", "error": str(e)}
