import uuid
from typing import Any

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.ChunkMetadata import ChunkMetadata
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.rag.models.VectorFilter import VectorFilter
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

# Fixed namespace for deterministic UUIDv5 point IDs.
# Changing this value would invalidate all existing point IDs in Qdrant.
_POINT_ID_NAMESPACE = uuid.UUID("6f4d3c2b-1a09-4e5f-8b7c-6d5e4f3a2b1c")

SCROLL_PAGE_SIZE = 1000


class RAGClientQdrant(RAGClientInterface):
    """Qdrant REST implementation.

    Qdrant only accepts UUIDs or integers as point ids, so each record id is
    mapped to a UUIDv5 and the original record id is kept in the payload.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="http://localhost:6333", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="medical_documents", val_type="string")
        self._vector_size = int(self.get_config_val("VECTOR_SIZE", default=1536, val_type="number"))
        self._distance = self.get_config_val("DISTANCE", default="Cosine", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_collection_name(self) -> str:
        return self._collection_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:6333"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="medical_documents"),
            EnvConfig(env_key="VECTOR_SIZE", val_type="number", default=1536),
            EnvConfig(env_key="DISTANCE", val_type="string", default="Cosine"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_create_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_scroll(self) -> str:
        return f"/collections/{self._collection_name}/points/scroll"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    @staticmethod
    def make_point_id(record_id: str) -> str:
        """Map a record id to the deterministic UUIDv5 Qdrant stores it under."""
        return str(uuid.uuid5(_POINT_ID_NAMESPACE, record_id))

    def get_filter_payload(self, metadata_filter: VectorFilter) -> dict:
        return {
            "must": [
                {"key": key, "match": {"value": value}}
                for key, value in metadata_filter.conditions()
            ]
        }

    def get_scroll_payload(self, metadata_filter: VectorFilter, limit: int, offset: str | int | None = None) -> dict:
        payload: dict[str, Any] = {
            "filter": self.get_filter_payload(metadata_filter),
            "limit": limit,
            "with_payload": ["record_id"],
            "with_vector": False,
        }
        if offset is not None:
            payload["offset"] = offset
        return payload

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def score_to_distance(self, score: float) -> float:
        """Qdrant reports similarity for Cosine/Dot (higher is closer) and a
        distance for Euclid/Manhattan (lower is closer)."""
        if self._distance.lower() in ("cosine", "dot"):
            return 1.0 - score
        return score

    def extract_query_matches(self, raw_response: dict, top_k: int) -> list[QueryMatch]:
        matches: list[QueryMatch] = []
        for point in raw_response.get("result") or []:
            payload = point.get("payload") or {}
            matches.append(
                QueryMatch(
                    id=str(payload.get("record_id") or point.get("id")),
                    text=payload.get("chunk_text") or "",
                    metadata=ChunkMetadata.from_wire(payload),
                    distance=self.score_to_distance(float(point.get("score", 0.0))),
                )
            )
        matches.sort(key=lambda match: match.distance)
        return matches[:top_k]

    def extract_scroll_page(self, raw_response: dict) -> ScrollResult:
        result = raw_response.get("result") or {}
        return ScrollResult(
            result=result.get("points") or [],
            next_page_offset=result.get("next_page_offset"),
        )

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_ensure_collection(self) -> None:
        response = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_check_collection_existence(),
            raise_on_error=True,
        )
        if self.parse_response(response, lambda data: bool((data.get("result") or {}).get("exists"))):
            self.logging.info("Qdrant collection '%s' already exists.", self._collection_name)
            return

        response = await self.do_request(
            method="PUT",
            json={"vectors": {"size": self._vector_size, "distance": self._distance}},
            endpoint=self._get_endpoint_create_collection(),
        )
        # 409: created concurrently by another worker
        if response.status_code >= 300 and response.status_code != 409:
            self._raise_for_status(response, self._get_endpoint_create_collection(), response.text)
        self.logging.info(
            "Qdrant collection '%s' created (size=%d, distance=%s).",
            self._collection_name, self._vector_size, self._distance,
        )

    async def _do_upsert(self, ids: list[str], vectors: list[list[float]], texts: list[str], metadatas: list[ChunkMetadata]) -> None:
        points = [
            {
                "id": self.make_point_id(record_id),
                "vector": vector,
                "payload": {**metadata.to_wire(), "record_id": record_id, "chunk_text": text},
            }
            for record_id, vector, text, metadata in zip(ids, vectors, texts, metadatas)
        ]
        await self.do_request(
            method="PUT",
            json={"points": points},
            params={"wait": "true"},
            endpoint=self._get_endpoint_points(),
            raise_on_error=True,
        )

    async def do_query(self, query_vector: list[float], top_k: int, metadata_filter: VectorFilter) -> list[QueryMatch]:
        response = await self.do_request(
            method="POST",
            json={
                "vector": query_vector,
                "limit": top_k,
                "filter": self.get_filter_payload(metadata_filter),
                "with_payload": True,
                "with_vector": False,
            },
            endpoint=self._get_endpoint_search(),
            raise_on_error=True,
        )
        return self.parse_response(response, lambda data: self.extract_query_matches(data, top_k))

    async def do_get_ids_by_metadata(self, metadata_filter: VectorFilter) -> list[str]:
        record_ids: list[str] = []
        offset: str | int | None = None
        page = 1
        while True:
            response = await self.do_request(
                method="POST",
                json=self.get_scroll_payload(metadata_filter, SCROLL_PAGE_SIZE, offset),
                endpoint=self._get_endpoint_scroll(),
                raise_on_error=True,
            )
            scroll_page = self.parse_response(response, self.extract_scroll_page)
            for point in scroll_page.result:
                payload = point.get("payload") or {}
                record_ids.append(str(payload.get("record_id") or point.get("id")))
            self.logging.debug(
                "Fetched Qdrant scroll page %d, total ids so far: %d", page, len(record_ids),
            )
            offset = scroll_page.next_page_offset
            if offset is None:
                break
            page += 1
        return record_ids

    async def _do_delete_ids(self, ids: list[str]) -> None:
        await self.do_request(
            method="POST",
            json={"points": [self.make_point_id(record_id) for record_id in ids]},
            params={"wait": "true"},
            endpoint=self._get_endpoint_delete_points(),
            raise_on_error=True,
        )
