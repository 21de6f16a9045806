"""
ORM models for the SQL document store.

WHAT: One table holding every collection's JSON documents
WHY: The lifecycle services address documents by collection + id, not by table
HOW: Declarative model with a version counter for optimistic updates
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, DateTime, JSON, UniqueConstraint, Index
)

from .database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class DocumentRecord(Base):
    """
    Document table - one row per stored document.

    WHAT: JSON body keyed by (collection, doc_id)
    WHY: Lets vendors, emergency requests and surplus listings share one schema
    HOW: Unique (collection, doc_id); `version` bumps on every write
    """
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(50), nullable=False)
    doc_id = Column(String(64), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    body = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="unique_collection_doc"),
        Index("idx_document_collection", "collection"),
    )

    def __repr__(self):
        return f"<DocumentRecord(collection={self.collection}, doc_id={self.doc_id}, version={self.version})>"
