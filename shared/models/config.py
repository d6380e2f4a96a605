from typing import Literal

from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single configuration key a client needs, declared so it can be validated
    when the client is constructed.

    Attributes:
        env_key (str): The raw key, prefixed with "{TYPE}_{ENGINE}_" on lookup (e.g. "API_KEY" -> "RAG_CHROMA_API_KEY").
        val_type (str): The expected value type: "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Fallback value. None marks the key as required.
    """

    env_key: str
    val_type: Literal["string", "number", "bool", "list"] = "string"
    default: str | int | float | bool | list | None = None
