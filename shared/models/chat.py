"""Pydantic models for chat provider messages and completions."""

from typing import Literal

from pydantic import BaseModel


class ChatMessage(BaseModel):
    """A single OpenAI-format chat message."""

    role: Literal["system", "user", "assistant"]
    content: str


class ChatCompletion(BaseModel):
    """The candidate answers returned by a single-shot chat request.

    Attributes:
        model:   Model name reported by the provider (empty if not reported).
        choices: Candidate answer texts in provider order. May be empty.
    """

    model: str = ""
    choices: list[str] = []


class StreamEvent(BaseModel):
    """One parsed line of a provider's incremental-delta stream.

    Attributes:
        delta: Partial answer text carried by this event (may be empty).
        done:  True for the provider's end-of-stream signal.
    """

    delta: str = ""
    done: bool = False
