from abc import abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.errors import BridgeError, ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatCompletion, ChatMessage, StreamEvent


class LLMClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion config
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default=self._get_default_chat_model())
        self.temperature = float(helper_config.get_number_val(f"{self.get_client_type().upper()}_TEMPERATURE", default=0.2))

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @abstractmethod
    def has_credentials(self) -> bool:
        """Returns whether a provider credential is configured."""
        pass

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    def _get_error_class(self) -> type[BridgeError]:
        return ProviderError

    @abstractmethod
    def _get_default_chat_model(self) -> str:
        """Returns the model used when LLM_CHAT_MODEL is not set."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/chat/completions")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[ChatMessage], stream: bool = False) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[ChatMessage]): The prompt messages.
            stream (bool): Request incremental deltas instead of one response.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_completion(self, response_data: dict) -> ChatCompletion:
        """Extract the candidate answers from a raw chat API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            ChatCompletion: All candidates in provider order; may hold zero choices.

        Raises:
            ProviderError: If the response shape is invalid.
        """
        pass

    @abstractmethod
    def parse_stream_line(self, line: str) -> StreamEvent | None:
        """Parse one line of the streaming response body.

        Args:
            line (str): A single line without its trailing newline.

        Returns:
            StreamEvent | None: The parsed event, or None for lines that carry
                nothing (blank keep-alives, comments, unrelated SSE fields).

        Raises:
            ProviderError: If the line carries a provider error or malformed JSON.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[ChatMessage]) -> ChatCompletion:
        """Send a single-shot chat/completion request.

        Args:
            messages (list[ChatMessage]): The prompt messages.

        Returns:
            ChatCompletion: The provider's candidate answers.

        Raises:
            ProviderError: On transport failure, non-2xx status or invalid response.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=self.get_chat_payload(messages),
            raise_on_error=True,
        )
        try:
            response_data = response.json()
        except ValueError as exc:
            raise ProviderError(f"Chat response is not valid JSON: {exc}", retryable=False) from exc
        return self.extract_chat_completion(response_data)

    @asynccontextmanager
    async def do_chat_stream(self, messages: list[ChatMessage]) -> AsyncIterator[AsyncIterator[str]]:
        """Open an incremental-delta chat stream.

        Usage::

            async with llm_client.do_chat_stream(messages) as deltas:
                async for delta in deltas:
                    ...

        The provider response is released when the block exits, whichever way it exits.

        Yields:
            AsyncIterator[str]: Delta texts in arrival order, ending at the provider's end signal.

        Raises:
            ProviderError: If the stream cannot be opened or the provider reports an error mid-stream.
        """
        async with self.do_stream_request(
            method="POST",
            json=self.get_chat_payload(messages, stream=True),
            endpoint=self._get_endpoint_chat(),
            additional_headers={"Accept": "text/event-stream"},
        ) as response:
            yield self._iter_stream_deltas(response)

    async def _iter_stream_deltas(self, response: httpx.Response) -> AsyncIterator[str]:
        async for line in response.aiter_lines():
            event = self.parse_stream_line(line)
            if event is None:
                continue
            if event.done:
                return
            yield event.delta
        self.logging.warning("Chat stream from %s closed without an end signal.", self.get_engine_name())
