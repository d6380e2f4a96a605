import json

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.errors import ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatCompletion, ChatMessage, StreamEvent
from shared.models.config import EnvConfig

_SSE_DATA_PREFIX = "data:"
_SSE_DONE_MARKER = "[DONE]"


class LLMClientOpenai(LLMClientInterface):
    """Chat client for OpenAI-compatible /chat/completions APIs."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=self._get_default_base_url(), val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def has_credentials(self) -> bool:
        return bool(self._api_key)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    def _get_default_chat_model(self) -> str:
        return "gpt-3.5-turbo"

    def _get_default_base_url(self) -> str:
        return "https://api.openai.com/v1"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=self._get_default_base_url()),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[ChatMessage], stream: bool = False) -> dict:
        """Build the chat request body.

        Returns:
            dict: {"model": "...", "messages": [...], "temperature": 0.2[, "stream": True]}
        """
        payload = {
            "model": self.chat_model,
            "messages": [message.model_dump() for message in messages],
            "temperature": self.temperature,
        }
        if stream:
            payload["stream"] = True
        return payload

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_completion(self, response_data: dict) -> ChatCompletion:
        """Extract candidates from {"choices": [{"message": {"content": "..."}}]}."""
        choices = response_data.get("choices")
        if choices is None:
            raise ProviderError(
                "Chat response does not contain a choices list. "
                f"Response keys: {list(response_data.keys())}",
                retryable=False,
            )
        texts: list[str] = []
        for choice in choices:
            message = (choice or {}).get("message") or {}
            texts.append(message.get("content") or "")
        return ChatCompletion(model=response_data.get("model") or "", choices=texts)

    def parse_stream_line(self, line: str) -> StreamEvent | None:
        """Parse one server-sent-events line of a streamed completion.

        Only `data:` lines are meaningful; `data: [DONE]` ends the stream.
        """
        line = line.strip()
        if not line.startswith(_SSE_DATA_PREFIX):
            return None
        data = line[len(_SSE_DATA_PREFIX):].strip()
        if not data:
            return None
        if data == _SSE_DONE_MARKER:
            return StreamEvent(done=True)
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ProviderError(f"Malformed chat stream fragment: {data[:200]}", retryable=False) from exc
        if chunk.get("error"):
            raise ProviderError(f"Chat stream error from provider: {chunk['error']}")
        choices = chunk.get("choices") or []
        if not choices:
            return StreamEvent()
        delta = (choices[0] or {}).get("delta") or {}
        return StreamEvent(delta=delta.get("content") or "")
