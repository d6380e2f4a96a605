from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface


class EmbedClientManager:
    """
    Manager class to instantiate the configured embedding client.

    The client is always constructed; whether it may be used is decided by
    EmbedClientInterface.has_credentials().
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the Embed engine from ENV configuration.

        Returns:
            str: Capitalised engine name (e.g. "Openai").

        Raises:
            ValueError: If EMBED_ENGINE is set but empty after stripping.
        """
        engine = self.helper_config.get_string_val("EMBED_ENGINE", default="openai").strip()
        if not engine:
            raise ValueError("No Embed engine specified in configuration (EMBED_ENGINE).")
        return engine.lower().capitalize()

    def _initialize_client(self) -> EmbedClientInterface:
        """
        Instantiates the Embed client by importing
        shared.clients.embed.{engine}.EmbedClient{Engine}.

        Returns:
            EmbedClientInterface: The instantiated client.

        Raises:
            ValueError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"EmbedClient{engine}"
        try:
            module = __import__(
                f"shared.clients.embed.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported Embed engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        if not client.has_credentials():
            self.logging.warning("No credential configured for Embed engine '%s'. RAG will be disabled.", engine)
        self.logging.debug("Instantiated Embed client for engine: %s", engine)
        return client

    def get_client(self) -> EmbedClientInterface:
        """
        Returns the instantiated Embed client.

        Returns:
            EmbedClientInterface: The Embed client instance.
        """
        return self.client
