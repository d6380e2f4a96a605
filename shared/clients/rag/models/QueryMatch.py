from pydantic import BaseModel

from shared.clients.rag.models.ChunkMetadata import ChunkMetadata


class QueryMatch(BaseModel):
    """One ranked hit of a vector-store similarity query.

    Attributes:
        id:       The record id (see RAGService for its derivation).
        text:     The raw chunk text stored with the vector.
        metadata: Parsed metadata, or None when the stored metadata was incomplete.
        distance: Distance to the query vector; smaller is closer.
    """

    id: str
    text: str
    metadata: ChunkMetadata | None = None
    distance: float
