from typing import Any

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.ChunkMetadata import ChunkMetadata
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.VectorFilter import VectorFilter
from shared.errors import StoreError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class RAGClientChroma(RAGClientInterface):
    """Chroma REST (v1) implementation.

    Record operations address the collection by its id, which is resolved from
    the configured name on the first call (see do_ensure_collection).
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="http://localhost:8000", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="medical_documents", val_type="string")
        self._collection_id: str | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Chroma"

    def get_collection_name(self) -> str:
        return self._collection_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:8000"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="medical_documents"),
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
        return "/api/v1/heartbeat"

    def _get_endpoint_collections(self) -> str:
        return "/api/v1/collections"

    def _get_endpoint_collection_by_name(self) -> str:
        return f"/api/v1/collections/{self._collection_name}"

    def _get_endpoint_records(self, collection_id: str, action: str) -> str:
        # action: upsert | query | get | delete
        return f"/api/v1/collections/{collection_id}/{action}"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_where_payload(self, metadata_filter: VectorFilter) -> dict[str, Any]:
        """Render a VectorFilter as a Chroma `where` clause.

        A single condition is a plain equality map; several are combined with $and.
        """
        conditions = [{key: value} for key, value in metadata_filter.conditions()]
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_query_matches(self, raw_response: dict, top_k: int) -> list[QueryMatch]:
        """Parse the first row of a Chroma query response.

        Chroma returns one row per query embedding; exactly one is ever sent.
        """
        ids = (raw_response.get("ids") or [[]])[0] or []
        documents = (raw_response.get("documents") or [[]])[0] or []
        metadatas = (raw_response.get("metadatas") or [[]])[0] or []
        distances = (raw_response.get("distances") or [[]])[0] or []

        matches: list[QueryMatch] = []
        for position, record_id in enumerate(ids):
            matches.append(
                QueryMatch(
                    id=str(record_id),
                    text=documents[position] if position < len(documents) and documents[position] is not None else "",
                    metadata=ChunkMetadata.from_wire(metadatas[position]) if position < len(metadatas) else None,
                    distance=float(distances[position]) if position < len(distances) and distances[position] is not None else float("inf"),
                )
            )
        matches.sort(key=lambda match: match.distance)
        return matches[:top_k]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_ensure_collection(self) -> None:
        response = await self.do_request(method="GET", endpoint=self._get_endpoint_collection_by_name())
        if response.status_code == 200:
            self._collection_id = self.parse_response(response, lambda data: str(data["id"]))
            self.logging.info("Chroma collection '%s' already exists.", self._collection_name)
            return

        if not self._is_missing_collection(response.status_code, response.text):
            self._raise_for_status(response, self._get_endpoint_collection_by_name(), response.text)

        response = await self.do_request(
            method="POST",
            json={
                "name": self._collection_name,
                "metadata": {"description": "Medical documents collection"},
                "get_or_create": True,
            },
            endpoint=self._get_endpoint_collections(),
        )
        if response.status_code == 409:
            # created concurrently by another worker
            response = await self.do_request(method="GET", endpoint=self._get_endpoint_collection_by_name(), raise_on_error=True)
        elif response.status_code >= 300:
            self._raise_for_status(response, self._get_endpoint_collections(), response.text)
        self._collection_id = self.parse_response(response, lambda data: str(data["id"]))
        self.logging.info("Chroma collection '%s' created.", self._collection_name)

    async def _do_upsert(self, ids: list[str], vectors: list[list[float]], texts: list[str], metadatas: list[ChunkMetadata]) -> None:
        collection_id = await self._get_collection_id()
        await self.do_request(
            method="POST",
            json={
                "ids": ids,
                "embeddings": [[float(value) for value in vector] for vector in vectors],
                "documents": texts,
                "metadatas": [metadata.to_wire() for metadata in metadatas],
            },
            endpoint=self._get_endpoint_records(collection_id, "upsert"),
            raise_on_error=True,
        )

    async def do_query(self, query_vector: list[float], top_k: int, metadata_filter: VectorFilter) -> list[QueryMatch]:
        collection_id = await self._get_collection_id()
        response = await self.do_request(
            method="POST",
            json={
                "query_embeddings": [[float(value) for value in query_vector]],
                "n_results": top_k,
                "where": self.get_where_payload(metadata_filter),
                "include": ["documents", "metadatas", "distances"],
            },
            endpoint=self._get_endpoint_records(collection_id, "query"),
            raise_on_error=True,
        )
        return self.parse_response(response, lambda data: self.extract_query_matches(data, top_k))

    async def do_get_ids_by_metadata(self, metadata_filter: VectorFilter) -> list[str]:
        collection_id = await self._get_collection_id()
        response = await self.do_request(
            method="POST",
            json={"where": self.get_where_payload(metadata_filter), "include": []},
            endpoint=self._get_endpoint_records(collection_id, "get"),
            raise_on_error=True,
        )
        return self.parse_response(response, lambda data: [str(record_id) for record_id in data.get("ids") or []])

    async def _do_delete_ids(self, ids: list[str]) -> None:
        collection_id = await self._get_collection_id()
        await self.do_request(
            method="POST",
            json={"ids": ids},
            endpoint=self._get_endpoint_records(collection_id, "delete"),
            raise_on_error=True,
        )

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _get_collection_id(self) -> str:
        if self._collection_id is None:
            await self.do_ensure_collection()
        if self._collection_id is None:
            raise StoreError(f"Chroma collection '{self._collection_name}' could not be resolved.")
        return self._collection_id

    @staticmethod
    def _is_missing_collection(status_code: int, body: str) -> bool:
        # Chroma reports a missing collection as 404 in recent releases and as a
        # 400/500 with "does not exist" in older ones.
        if status_code == 404:
            return True
        return status_code in (400, 500) and "does not exist" in body.lower()
