"""Answer engine.

Builds the prompt from the user's question and their retrieved document
excerpts, then asks the chat provider either for one complete answer or for an
incremental stream of deltas pushed to a callback.
"""

import asyncio
from typing import Awaitable, Callable

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.errors import ConfigurationError, InvalidInputError, ProviderError, StreamCancelledError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage
from services.qa.PromptBuilder import build_messages
from services.rag.RAGService import RAGService

ChunkCallback = Callable[[str], Awaitable[None]]


class QAService:
    def __init__(
        self,
        helper_config: HelperConfig,
        llm_client: LLMClientInterface,
        rag_service: RAGService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._llm_client = llm_client
        self._rag_service = rag_service

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_request(self, user_id: int, question: str) -> str:
        """Check the preconditions shared by ask and ask_stream.

        Returns:
            str: The trimmed question.

        Raises:
            InvalidInputError: If user_id is zero or the question is blank.
            ConfigurationError: If no chat credential is configured.
        """
        if not user_id:
            raise InvalidInputError("user id is required")
        if not self._llm_client.has_credentials():
            raise ConfigurationError(
                f"No API key configured for LLM engine '{self._llm_client.get_engine_name()}'."
            )
        question = question.strip()
        if not question:
            raise InvalidInputError("question must not be empty")
        return question

    ##########################################
    ################ CORE ####################
    ##########################################

    async def ask(self, user_id: int, question: str) -> str:
        """Answer a question in one request.

        Returns:
            str: The text of the provider's first choice.

        Raises:
            InvalidInputError, ConfigurationError: See validate_request.
            ProviderError: If the provider fails or returns no choices.
            StoreError: If retrieval from the vector store fails.
        """
        question = self.validate_request(user_id, question)
        messages = await self._build_messages(user_id, question)

        completion = await self._llm_client.do_chat(messages)
        if not completion.choices:
            raise ProviderError("Chat provider returned no choices", retryable=False)

        self.logging.info("Answered question for user_id=%d (%d chars).", user_id, len(completion.choices[0]))
        return completion.choices[0]

    async def ask_stream(
        self,
        user_id: int,
        question: str,
        on_chunk: ChunkCallback,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """Answer a question as a stream of deltas.

        on_chunk is awaited once per non-empty delta, in arrival order. An exception
        raised by on_chunk stops the stream and propagates unchanged. When cancel_event
        is set, the stream stops before the next delta is emitted. The provider
        response is released on every exit path.

        Raises:
            InvalidInputError, ConfigurationError: See validate_request.
            ProviderError: If the provider stream cannot be opened or reports an error.
            StoreError: If retrieval from the vector store fails.
            StreamCancelledError: If cancel_event was set while streaming.
        """
        question = self.validate_request(user_id, question)
        messages = await self._build_messages(user_id, question)

        emitted = 0
        async with self._llm_client.do_chat_stream(messages) as deltas:
            async for delta in deltas:
                if not delta:
                    continue
                if cancel_event is not None and cancel_event.is_set():
                    self.logging.info("Answer stream for user_id=%d cancelled after %d chunk(s).", user_id, emitted)
                    raise StreamCancelledError("answer stream cancelled by consumer")
                await on_chunk(delta)
                emitted += 1
        self.logging.info("Streamed answer for user_id=%d in %d chunk(s).", user_id, emitted)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _build_messages(self, user_id: int, question: str) -> list[ChatMessage]:
        chunks = []
        if self._rag_service.is_enabled():
            chunks = await self._rag_service.retrieve_relevant_chunks(user_id, question)
        return build_messages(question, chunks)
