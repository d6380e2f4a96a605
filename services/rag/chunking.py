"""Text chunking and record id helpers for the RAG engine."""

DEFAULT_CHUNK_SIZE = 800  # characters per text chunk


def chunk_text(text: str, max_length: int) -> list[str]:
    """Split a document's text into fixed-size chunks.

    The text is trimmed first. Chunks are consecutive, non-overlapping windows
    of at most max_length characters; the last one may be shorter. Joining the
    result gives back the trimmed text.

    Args:
        text (str): The full document text.
        max_length (int): Maximum characters per chunk.

    Returns:
        list[str]: Ordered list of text chunks. Empty for blank text or max_length <= 0.
    """
    text = text.strip()
    if not text or max_length <= 0:
        return []
    return [text[start:start + max_length] for start in range(0, len(text), max_length)]


def make_record_id(document_id: int, chunk_index: int, user_id: int) -> str:
    """Build the deterministic vector-store record id of a chunk.

    The same chunk always maps to the same id so re-indexing overwrites rather
    than duplicates.
    """
    return f"{document_id}-{chunk_index}-{user_id}"
