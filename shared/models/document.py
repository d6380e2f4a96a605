"""Pydantic models for documents and the chunks derived from them.

Hierarchy:
  Document        - a user's medical document as persisted in the relational store.
  DocumentStatus  - indexing lifecycle of a document.
  Chunk           - transient slice of a document's text, rebuilt from vector-store hits.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class DocumentStatus(str, Enum):
    """Indexing lifecycle of a document.

    INDEXING is set when the row is first persisted; indexing then moves it to
    READY or INDEXING_FAILED. The document row is kept in both cases.
    """

    INDEXING = "indexing"
    READY = "ready"
    INDEXING_FAILED = "indexing_failed"


class Document(BaseModel):
    """A medical document owned by exactly one user."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    content: str
    status: DocumentStatus = DocumentStatus.INDEXING
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Chunk(BaseModel):
    """A contiguous slice of a document's text, identified by
    (document_id, index, user_id). Never persisted in the relational store."""

    document_id: int
    user_id: int
    index: int
    content: str
    title: str = ""
