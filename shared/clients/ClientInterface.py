from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from httpx._types import QueryParamTypes, RequestContent

from shared.errors import BridgeError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        # client and config
        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Validates that all required configuration values for the client are set and valid.

        Raises:
            ValueError: If any required configuration value is missing or invalid.
        """
        for config in self._get_required_config():
            _ = self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    def is_booted(self) -> bool:
        return self._client is not None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """
        Returns the type of the client in lowercase. E.g. "rag"
        """
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        pass

    def get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client. E.g. "chroma"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client. E.g. "Chroma"
        """
        pass

    @abstractmethod
    def _get_error_class(self) -> type[BridgeError]:
        """
        Returns the error type raised for transport failures and non-success
        responses of this client (e.g. StoreError for vector stores).
        """
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns all required configurations for the client.

        Returns:
            list[EnvConfig]: A list containing the details of each required configuration key.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """
        Returns:
            str: The full configuration key name for the client. E.g. "RAG_CHROMA_API_KEY"
        """
        key_prefix = f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}"
        return f"{key_prefix}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Retrieves the value of a configuration key for the client.

        Args:
            raw_key (str): The raw configuration key name
            default (Any): The default value to return if the configuration key is not set
            val_type (str): The type of the configuration value ("string", "number", "bool", "list")
        """
        key = self._get_config_key_name(raw_key)
        if val_type == "string":
            return self._helper_config.get_string_val(key, default=default)
        elif val_type == "number":
            return self._helper_config.get_number_val(key, default=default)
        elif val_type == "bool":
            return self._helper_config.get_bool_val(key, default=default)
        elif val_type == "list":
            return self._helper_config.get_list_val(key, default=default)
        else:
            raise ValueError(f"Unsupported config value type '{val_type}' for env key '{raw_key}' in {self.get_client_type().upper()} client '{self.get_engine_name()}'.")

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the authentication header for the client backend server, if an API key is set.

        Returns:
            dict: A dictionary containing the auth data
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Returns the base URL of the client backend server from env variables

        Returns:
            str: The base URL of the client backend server (e.g. "http://localhost:8000")
        """
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """
        Returns the endpoint path for healthcheck requests.

        Returns:
            str: The endpoint path for healthcheck requests (e.g. "/healthz")
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """Check if the client backend is healthy by sending a test request.

        Returns:
            httpx.Response: The response from the healthcheck request.
        """
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Initialise the HTTP client. The client is safe for concurrent reuse across requests.

        Args:
            transport: Optional custom transport (e.g. httpx.MockTransport in tests).
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        """Close the HTTP client and any other resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_request_kwargs(
        self,
        content: RequestContent | None,
        json: dict | None,
        params: QueryParamTypes | None,
        endpoint: str,
        additional_headers: dict | None,
    ) -> dict:
        if self._client is None:
            raise self._get_error_class()(
                f"HTTP client for {self.get_client_type()} engine '{self.get_engine_name()}' not initialised. Call boot() before making requests.",
                retryable=False,
            )

        endpoint = "/" + endpoint.strip().lstrip("/") if endpoint.strip() else ""

        # Do NOT set a default Content-Type: httpx sets it automatically for json bodies.
        headers: dict = {}
        headers.update(self._get_auth_header())
        if additional_headers:
            headers.update(additional_headers)

        kwargs: dict = {
            "url": f"{self._get_base_url().rstrip('/')}{endpoint}",
            "headers": headers,
            "timeout": self.timeout,
            "params": params,
        }
        # add exactly one body argument
        if content is not None:
            kwargs["content"] = content
        elif json is not None:
            kwargs["json"] = json
        return kwargs

    def _raise_for_status(self, response: httpx.Response, url: str, body: str) -> None:
        self.logging.error(
            "Request to %s failed with status %d: %s",
            url,
            response.status_code,
            body[:500],
        )
        raise self._get_error_class()(
            f"Request to {url} failed with status {response.status_code}: {body[:200]}",
            status_code=response.status_code,
            retryable=response.status_code == 429 or response.status_code >= 500,
        )

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send an HTTP request to the client backend.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, …).
            content: Raw bytes / string body.
            json: JSON-serialisable body (sets Content-Type automatically).
            params: URL query parameters.
            endpoint: Path to append to the base URL (leading slash optional).
            additional_headers: Extra headers that override the defaults.
            raise_on_error: Raise on any status >= 300 instead of returning the response.

        Returns:
            The raw httpx.Response.

        Raises:
            BridgeError: The client's error class (see _get_error_class) if the client is not
                initialised, the transport fails, or (with raise_on_error) the status is not 2xx.
        """
        kwargs = self._build_request_kwargs(content, json, params, endpoint, additional_headers)
        try:
            response = await self._client.request(method, **kwargs)
        except httpx.HTTPError as exc:
            self.logging.error("Request to %s failed: %s", kwargs["url"], exc)
            raise self._get_error_class()(f"Request to {kwargs['url']} failed: {exc}") from exc

        if raise_on_error and response.status_code >= 300:
            self._raise_for_status(response, kwargs["url"], response.text)
        return response

    @asynccontextmanager
    async def do_stream_request(
        self,
        method: str = "POST",
        json: dict | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming HTTP request; the response body is read incrementally.

        The response is closed when the ``async with`` block exits, on every path
        (normal completion, exception in the caller, task cancellation).

        Raises:
            BridgeError: The client's error class on transport failure or a non-2xx status.
        """
        kwargs = self._build_request_kwargs(None, json, None, endpoint, additional_headers)
        try:
            async with self._client.stream(method, **kwargs) as response:
                if response.status_code >= 300:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    self._raise_for_status(response, kwargs["url"], body)
                yield response
        except httpx.HTTPError as exc:
            self.logging.error("Streaming request to %s failed: %s", kwargs["url"], exc)
            raise self._get_error_class()(f"Streaming request to {kwargs['url']} failed: {exc}") from exc
