"""Shared fixtures: isolated env, config helper, fake clients."""
import logging
import os
from unittest.mock import AsyncMock, Mock

import pytest

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.helper.HelperConfig import HelperConfig

_CONFIG_PREFIXES = ("EMBED_", "LLM_", "RAG_", "DB_", "API_SERVER_")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop any app configuration inherited from the outer environment."""
    for key in list(os.environ):
        if key.startswith(_CONFIG_PREFIXES):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=logging.getLogger("medqa_bridge.tests"))


@pytest.fixture
def embed_client() -> Mock:
    """Embedding client stub with a credential; returns one 3-dim vector per text."""
    client = Mock(spec=EmbedClientInterface)
    client.has_credentials.return_value = True
    client.get_engine_name.return_value = "openai"

    async def fake_embed(texts):
        return [[float(len(text)), 0.0, 1.0] for text in texts]

    client.do_embed = AsyncMock(side_effect=fake_embed)
    return client


@pytest.fixture
def rag_client() -> Mock:
    client = Mock(spec=RAGClientInterface)
    client.get_collection_name.return_value = "medical_documents"
    client.do_add = AsyncMock(return_value=None)
    client.do_query = AsyncMock(return_value=[])
    client.do_get_ids_by_metadata = AsyncMock(return_value=[])
    client.do_delete = AsyncMock(return_value=None)
    client.do_ensure_collection = AsyncMock(return_value=None)
    return client


@pytest.fixture
def llm_client() -> Mock:
    client = Mock(spec=LLMClientInterface)
    client.has_credentials.return_value = True
    client.get_engine_name.return_value = "openai"
    client.do_chat = AsyncMock()
    return client
