from shared.models.chat import ChatMessage
from shared.models.document import Chunk

SYSTEM_PROMPT = (
    "You are a medical question-answering assistant. Answer concisely, accurately and safely, "
    "using established medical knowledge only. Do not diagnose individual cases and do not "
    "invent facts, studies or figures. If the available evidence is insufficient, say so "
    "plainly. For decisions about an individual's care, recommend consulting a qualified "
    "healthcare professional."
)

CONTEXT_HEADER = "The following excerpts from the user's medical documents are relevant to the question:"

CONTEXT_INSTRUCTION = (
    "When answering, prefer the information in the excerpts above over general knowledge. "
    "If neither the excerpts nor established medical knowledge support an answer, state that "
    "it cannot be determined rather than guessing."
)


def build_context_block(chunks: list[Chunk]) -> str:
    """Render retrieved chunks as numbered excerpts, best match first."""
    lines = [CONTEXT_HEADER, ""]
    for number, chunk in enumerate(chunks, start=1):
        source = chunk.title or f"document #{chunk.document_id}"
        lines.append(f"[Excerpt {number}] ({source})")
        lines.append(chunk.content)
        lines.append("")
    lines.append(CONTEXT_INSTRUCTION)
    return "\n".join(lines)


def build_messages(question: str, chunks: list[Chunk]) -> list[ChatMessage]:
    """Build the system/user message pair sent to the chat provider.

    Args:
        question (str): The user's question; surrounding whitespace is removed.
        chunks (list[Chunk]): Retrieved context, may be empty.

    Returns:
        list[ChatMessage]: Exactly two messages, system first.
    """
    system_content = SYSTEM_PROMPT
    if chunks:
        system_content = f"{system_content}\n\n{build_context_block(chunks)}"
    return [
        ChatMessage(role="system", content=system_content),
        ChatMessage(role="user", content=question.strip()),
    ]
