from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.errors import BridgeError, ProviderError
from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default=self._get_default_model())

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @abstractmethod
    def has_credentials(self) -> bool:
        """
        Returns whether a provider credential is configured. Without one the
        client must not be used; the RAG engine treats this as "RAG disabled".
        """
        pass

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "embed"

    def _get_error_class(self) -> type[BridgeError]:
        return ProviderError

    @abstractmethod
    def _get_default_model(self) -> str:
        """Returns the model used when EMBED_MODEL is not set."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/embeddings")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ProviderError: If the response format is invalid.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send one embedding request for all texts and return the vectors.

        No retry happens here; callers decide whether a ProviderError is worth retrying.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: One vector per input, in input order.

        Raises:
            ProviderError: On auth failure, rate limiting, transport failure,
                a malformed response, or a vector count that differs from the input count.
        """
        texts = [texts] if isinstance(texts, str) else texts
        if not texts:
            return []
        response = await self.do_request(
            method="POST",
            endpoint=self.get_endpoint_embedding(),
            json=self.get_embed_payload(texts),
            raise_on_error=True,
        )
        try:
            response_data = response.json()
        except ValueError as exc:
            raise ProviderError(f"Embedding response is not valid JSON: {exc}", retryable=False) from exc

        vectors = self.extract_embeddings_from_response(response_data)
        if len(vectors) != len(texts):
            raise ProviderError(
                f"Embeddings count mismatch: got {len(vectors)}, want {len(texts)}",
                retryable=False,
            )
        return vectors
