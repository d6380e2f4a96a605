"""ChunkMetadata model - typed metadata stored alongside each chunk vector."""

from typing import Any

from pydantic import BaseModel, ValidationError


class ChunkMetadata(BaseModel):
    """Metadata stored alongside each chunk vector in a RAG backend.

    Retrieval and deletion filter exclusively on these fields, so every record
    must carry all of them. The user_id is the security invariant: it always
    equals the owner of the source document.

    Attributes:
        document_id: ID of the source document in the relational store.
        user_id:     Owner of the source document; used for access isolation.
        chunk_index: Zero-based position of this chunk within the document.
        title:       Human-readable document title.
    """

    document_id: int
    user_id: int
    chunk_index: int
    title: str = ""

    def to_wire(self) -> dict[str, Any]:
        """Render the metadata as the flat map stored by the vector store."""
        return {
            "document_id": self.document_id,
            "user_id": self.user_id,
            "chunk_index": self.chunk_index,
            "title": self.title,
        }

    @classmethod
    def from_wire(cls, raw: dict[str, Any] | None) -> "ChunkMetadata | None":
        """Parse a metadata map returned by the vector store.

        JSON numbers may come back as floats (e.g. 3.0); they are accepted as long
        as they are integral. Returns None when a required field is missing or
        malformed, so a single bad record never fails a whole query.
        """
        if not raw:
            return None
        try:
            return cls(
                document_id=_as_int(raw["document_id"]),
                user_id=_as_int(raw["user_id"]),
                chunk_index=_as_int(raw["chunk_index"]),
                title=str(raw.get("title") or ""),
            )
        except (KeyError, TypeError, ValueError, ValidationError):
            return None


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("boolean is not a valid id")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"non-integral value {value!r}")
        return int(value)
    return int(value)
