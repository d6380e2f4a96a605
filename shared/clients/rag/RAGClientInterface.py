from abc import abstractmethod
from typing import Any, Callable, TypeVar

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.ChunkMetadata import ChunkMetadata
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.VectorFilter import VectorFilter
from shared.errors import BridgeError, StoreError, ValidationError
from shared.helper.HelperConfig import HelperConfig

T = TypeVar("T")


class RAGClientInterface(ClientInterface):
    """Wire client to an external vector database holding one collection.

    Subclasses implement the engine-specific request/response shapes; the
    public do_* operations below are the contract the RAG engine consumes.
    Metadata crosses this boundary only as ChunkMetadata / VectorFilter.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "rag"

    def _get_error_class(self) -> type[BridgeError]:
        return StoreError

    @abstractmethod
    def get_collection_name(self) -> str:
        """Returns the configured collection name."""
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def parse_response(self, response: httpx.Response, extract: Callable[[Any], T]) -> T:
        """Decode a successful response body and run an extractor over it.

        Raises:
            StoreError: If the body is not JSON or lacks the expected fields (e.g. a proxy error page).
        """
        try:
            return extract(response.json())
        except (ValueError, KeyError, TypeError, AttributeError, IndexError) as exc:
            self.logging.error(
                "Unexpected response from %s (status %d): %s", response.url, response.status_code, response.text[:200],
            )
            raise StoreError(
                f"Unexpected response from {self.get_engine_name()} at {response.url}: {exc}",
                status_code=response.status_code,
                retryable=False,
            ) from exc

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_ensure_collection(self) -> None:
        """Create the target collection if it does not exist yet. Idempotent.

        Raises:
            StoreError: On transport failure or an unexpected status. "Already exists" is not an error.
        """
        pass

    @abstractmethod
    async def _do_upsert(self, ids: list[str], vectors: list[list[float]], texts: list[str], metadatas: list[ChunkMetadata]) -> None:
        """Upsert equally-sized record batches in a single request.

        Raises:
            StoreError: On any non-success response.
        """
        pass

    @abstractmethod
    async def do_query(self, query_vector: list[float], top_k: int, metadata_filter: VectorFilter) -> list[QueryMatch]:
        """Similarity query restricted by a metadata filter.

        Args:
            query_vector (list[float]): The embedded query.
            top_k (int): Maximum number of matches.
            metadata_filter (VectorFilter): Equality filter every match must satisfy.

        Returns:
            list[QueryMatch]: At most top_k matches, ascending distance. May be empty.

        Raises:
            StoreError: On transport failure or non-success response.
        """
        pass

    @abstractmethod
    async def do_get_ids_by_metadata(self, metadata_filter: VectorFilter) -> list[str]:
        """Enumerate the ids of all records matching the filter.

        Raises:
            StoreError: On transport failure or non-success response.
        """
        pass

    @abstractmethod
    async def _do_delete_ids(self, ids: list[str]) -> None:
        """Delete a non-empty list of record ids in one request.

        Raises:
            StoreError: On transport failure or non-success response.
        """
        pass

    async def do_add(self, ids: list[str], vectors: list[list[float]], texts: list[str], metadatas: list[ChunkMetadata]) -> None:
        """Upsert records into the collection in one call.

        Records whose id already exists are overwritten.

        Args:
            ids (list[str]): Record ids.
            vectors (list[list[float]]): One embedding per record.
            texts (list[str]): Raw chunk text per record.
            metadatas (list[ChunkMetadata]): Metadata per record.

        Raises:
            ValidationError: If the four lists differ in length.
            StoreError: On any non-success response.
        """
        if not (len(ids) == len(vectors) == len(texts) == len(metadatas)):
            raise ValidationError(
                "ids, vectors, texts and metadatas must have the same length "
                f"(got {len(ids)}, {len(vectors)}, {len(texts)}, {len(metadatas)})"
            )
        if not ids:
            return
        await self._do_upsert(ids, vectors, texts, metadatas)
        self.logging.debug(
            "Upserted %d record(s) into %s collection '%s'.",
            len(ids), self.get_engine_name(), self.get_collection_name(),
        )

    async def do_delete(self, ids: list[str]) -> None:
        """Delete records by id. An empty list is a no-op and sends no request.

        Raises:
            StoreError: On transport failure or non-success response.
        """
        if not ids:
            return
        await self._do_delete_ids(ids)
        self.logging.debug(
            "Deleted %d record(s) from %s collection '%s'.",
            len(ids), self.get_engine_name(), self.get_collection_name(),
        )
