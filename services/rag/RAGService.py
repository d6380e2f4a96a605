"""RAG engine.

Indexes documents into the vector store (chunk -> embed -> add), retrieves the
chunks of one user that are closest to a question, and removes all vectors of a
document. Every read and delete is filtered by the owning user id.
"""

from dataclasses import dataclass

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.ChunkMetadata import ChunkMetadata
from shared.clients.rag.models.VectorFilter import VectorFilter
from shared.errors import InvalidInputError, ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Chunk, Document
from services.rag.chunking import DEFAULT_CHUNK_SIZE, chunk_text, make_record_id

DEFAULT_TOP_K = 5


@dataclass(frozen=True)
class RAGEnabled:
    embed_client: EmbedClientInterface
    rag_client: RAGClientInterface


@dataclass(frozen=True)
class RAGDisabled:
    reason: str


RAGMode = RAGEnabled | RAGDisabled


class RAGService:
    """Indexer, retriever and deleter over one embedding client and one vector store.

    Without an embedding credential the service is in the disabled mode: every
    operation succeeds without touching a provider, and retrieval returns nothing.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        embed_client: EmbedClientInterface | None,
        rag_client: RAGClientInterface | None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self.chunk_size = int(helper_config.get_number_val("RAG_CHUNK_SIZE", default=DEFAULT_CHUNK_SIZE))
        self.default_top_k = int(helper_config.get_number_val("RAG_TOP_K", default=DEFAULT_TOP_K))
        self.mode = self._resolve_mode(embed_client, rag_client)
        if isinstance(self.mode, RAGDisabled):
            self.logging.warning("RAG is disabled: %s", self.mode.reason)

    @staticmethod
    def _resolve_mode(embed_client: EmbedClientInterface | None, rag_client: RAGClientInterface | None) -> RAGMode:
        if embed_client is None or rag_client is None:
            return RAGDisabled(reason="no embedding or vector store client configured")
        if not embed_client.has_credentials():
            return RAGDisabled(reason=f"no API key configured for embedding engine '{embed_client.get_engine_name()}'")
        return RAGEnabled(embed_client=embed_client, rag_client=rag_client)

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def is_enabled(self) -> bool:
        return isinstance(self.mode, RAGEnabled)

    ##########################################
    ################ SETUP ###################
    ##########################################

    async def do_prepare_store(self) -> None:
        """Make sure the target collection exists. No-op when RAG is disabled.

        Raises:
            StoreError: If the vector store cannot be reached or rejects the request.
        """
        match self.mode:
            case RAGDisabled():
                return
            case RAGEnabled(rag_client=rag_client):
                await rag_client.do_ensure_collection()

    ##########################################
    ############### INDEXING #################
    ##########################################

    async def index_document(self, document: Document) -> None:
        """Chunk, embed and store a document's text.

        Does not change the document's status; the caller records the outcome.

        Args:
            document (Document): The persisted document to index.

        Raises:
            InvalidInputError: If the document id or owner id is zero.
            ProviderError: If embedding fails or returns the wrong number of vectors.
            StoreError: If the vector store rejects the records.
        """
        match self.mode:
            case RAGDisabled():
                return
            case RAGEnabled(embed_client=embed_client, rag_client=rag_client):
                pass

        if not document.id:
            raise InvalidInputError("document id is required for indexing")
        if not document.user_id:
            raise InvalidInputError("document owner id is required for indexing")

        chunks = chunk_text(document.content, self.chunk_size)
        if not chunks:
            self.logging.info("Document %d (user_id=%d) has no text to index.", document.id, document.user_id)
            return

        vectors = await embed_client.do_embed(chunks)
        if len(vectors) != len(chunks):
            raise ProviderError(
                f"Embedding returned {len(vectors)} vector(s) for {len(chunks)} chunk(s)",
                retryable=False,
            )

        ids = [make_record_id(document.id, index, document.user_id) for index in range(len(chunks))]
        metadatas = [
            ChunkMetadata(document_id=document.id, user_id=document.user_id, chunk_index=index, title=document.title)
            for index in range(len(chunks))
        ]
        await rag_client.do_add(ids, vectors, chunks, metadatas)
        self.logging.info(
            "Indexed document %d (user_id=%d): %d chunk(s) into '%s'.",
            document.id, document.user_id, len(chunks), rag_client.get_collection_name(),
        )

    ##########################################
    ############### RETRIEVAL ################
    ##########################################

    async def retrieve_relevant_chunks(self, user_id: int, question: str, top_k: int = 0) -> list[Chunk]:
        """Return the user's chunks closest to the question, best match first.

        Args:
            user_id (int): The asking user. Only their chunks are considered.
            question (str): The question text.
            top_k (int): Maximum number of chunks; values <= 0 use RAG_TOP_K.

        Returns:
            list[Chunk]: Up to top_k chunks. Matches without usable metadata are skipped.

        Raises:
            InvalidInputError: If user_id is zero or the question is blank.
            ProviderError: If embedding the question fails.
            StoreError: If the vector store query fails.
        """
        if not user_id:
            raise InvalidInputError("user id is required")
        question = question.strip()
        if not question:
            raise InvalidInputError("question must not be empty")

        match self.mode:
            case RAGDisabled():
                return []
            case RAGEnabled(embed_client=embed_client, rag_client=rag_client):
                pass

        if top_k <= 0:
            top_k = self.default_top_k

        vectors = await embed_client.do_embed([question])
        if len(vectors) != 1:
            raise ProviderError(f"Embedding returned {len(vectors)} vector(s) for 1 question", retryable=False)

        matches = await rag_client.do_query(vectors[0], top_k, VectorFilter(user_id=user_id))

        chunks: list[Chunk] = []
        for match in matches:
            if match.metadata is None:
                self.logging.warning("Skipping record '%s' without usable metadata (user_id=%d).", match.id, user_id)
                continue
            if match.metadata.user_id != user_id:
                self.logging.error(
                    "Vector store returned record '%s' owned by user_id=%d for user_id=%d; dropping it.",
                    match.id, match.metadata.user_id, user_id,
                )
                continue
            chunks.append(
                Chunk(
                    document_id=match.metadata.document_id,
                    user_id=match.metadata.user_id,
                    index=match.metadata.chunk_index,
                    content=match.text,
                    title=match.metadata.title,
                )
            )
        self.logging.debug("Retrieved %d chunk(s) for user_id=%d.", len(chunks), user_id)
        return chunks

    ##########################################
    ############### DELETION #################
    ##########################################

    async def delete_document(self, document_id: int, user_id: int) -> None:
        """Remove every vector of a document owned by the user. Idempotent.

        Raises:
            InvalidInputError: If document_id or user_id is zero.
            StoreError: If enumerating or deleting the records fails.
        """
        match self.mode:
            case RAGDisabled():
                return
            case RAGEnabled(rag_client=rag_client):
                pass

        if not document_id or not user_id:
            raise InvalidInputError("document id and user id are required for deletion")

        ids = await rag_client.do_get_ids_by_metadata(VectorFilter(document_id=document_id, user_id=user_id))
        if not ids:
            self.logging.debug("No vectors stored for document %d (user_id=%d).", document_id, user_id)
            return
        await rag_client.do_delete(ids)
        self.logging.info("Deleted %d vector(s) of document %d (user_id=%d).", len(ids), document_id, user_id)
