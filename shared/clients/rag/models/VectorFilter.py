"""VectorFilter - typed metadata equality filter for vector-store queries."""

from pydantic import BaseModel, model_validator


class VectorFilter(BaseModel):
    """Equality filter over chunk metadata. All set fields must match (AND).

    Each RAG engine renders this into its own wire filter syntax.

    Attributes:
        user_id:     Restrict to chunks owned by this user.
        document_id: Restrict to chunks of this document.
    """

    user_id: int | None = None
    document_id: int | None = None

    @model_validator(mode="after")
    def _require_condition(self) -> "VectorFilter":
        if self.user_id is None and self.document_id is None:
            raise ValueError("VectorFilter needs at least one of user_id or document_id")
        return self

    def conditions(self) -> list[tuple[str, int]]:
        """Return the set (key, value) pairs in a stable order: document_id, then user_id."""
        pairs: list[tuple[str, int]] = []
        if self.document_id is not None:
            pairs.append(("document_id", self.document_id))
        if self.user_id is not None:
            pairs.append(("user_id", self.user_id))
        return pairs
