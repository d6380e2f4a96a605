from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.errors import ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientOpenai(EmbedClientInterface):
    """Embedding client for any OpenAI-compatible /embeddings API
    (OpenAI, DashScope compatible mode, ...)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
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

    def _get_default_model(self) -> str:
        return "text-embedding-3-small"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
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

    def get_endpoint_embedding(self) -> str:
        return "/embeddings"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the OpenAI embedding request body.

        Returns:
            dict: {"model": "...", "input": [...]}
        """
        return {"model": self.embed_model, "input": texts}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract vectors from {"data": [{"embedding": [...], "index": 0}, ...]}.

        Entries are sorted by their index field; providers are allowed to return
        them out of order.
        """
        data = response_data.get("data")
        if not isinstance(data, list):
            raise ProviderError(
                "Embedding response does not contain a data list. "
                f"Response keys: {list(response_data.keys())}",
                retryable=False,
            )
        try:
            ordered = sorted(data, key=lambda item: item.get("index", 0))
            return [[float(value) for value in item["embedding"]] for item in ordered]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ProviderError(f"Malformed embedding entry in response: {exc}", retryable=False) from exc
