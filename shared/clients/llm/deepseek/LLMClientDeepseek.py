from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai


class LLMClientDeepseek(LLMClientOpenai):
    """DeepSeek chat client. DeepSeek speaks the OpenAI wire format; only the
    engine name (and therefore the LLM_DEEPSEEK_* config keys) and defaults differ."""

    def _get_engine_name(self) -> str:
        return "Deepseek"

    def _get_default_chat_model(self) -> str:
        return "deepseek-chat"

    def _get_default_base_url(self) -> str:
        return "https://api.deepseek.com/v1"
