"""Document service.

Owns the document lifecycle: a document is persisted first, then indexed into
the vector store; the indexing outcome is recorded as its status. Deletion
removes the vectors before the row so a store failure never orphans vectors.
"""

from shared.db.DocumentRepository import DocumentRepository
from shared.errors import BridgeError, InvalidInputError, NotFoundError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document, DocumentStatus
from services.rag.RAGService import RAGService

MAX_TITLE_LENGTH = 255


class DocumentService:
    def __init__(
        self,
        helper_config: HelperConfig,
        repository: DocumentRepository,
        rag_service: RAGService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._repository = repository
        self._rag_service = rag_service

    ##########################################
    ################ CORE ####################
    ##########################################

    async def create(self, user_id: int, title: str, content: str) -> Document:
        """Persist a document and index it.

        Indexing failures do not fail the call: the document is kept with status
        INDEXING_FAILED and can be reindexed later.

        Raises:
            InvalidInputError: If user_id is zero, the title is blank or too long, or the content is blank.
        """
        title = self._validate(user_id, title, content)
        document = await self._repository.create(user_id=user_id, title=title, content=content)
        self.logging.info("Created document %d for user_id=%d ('%s').", document.id, user_id, title)
        return await self._index_and_record(document)

    async def create_from_upload(self, user_id: int, filename: str | None, title: str | None, raw_bytes: bytes) -> Document:
        """Create a document from an uploaded plain-text file.

        Args:
            filename (str | None): Uploaded file name; used as title when none is given.
            title (str | None): Explicit title.
            raw_bytes (bytes): File body, must be UTF-8 text.

        Raises:
            InvalidInputError: If the file is not valid UTF-8 or any create() precondition fails.
        """
        try:
            content = raw_bytes.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidInputError(f"uploaded file '{filename}' is not valid UTF-8 text") from exc
        return await self.create(user_id, (title or "").strip() or (filename or ""), content)

    async def list_documents(self, user_id: int) -> list[Document]:
        if not user_id:
            raise InvalidInputError("user id is required")
        return await self._repository.list_by_user(user_id)

    async def get(self, document_id: int, user_id: int) -> Document:
        """Return one of the user's documents.

        Raises:
            NotFoundError: If the document does not exist or belongs to another user.
        """
        if not user_id:
            raise InvalidInputError("user id is required")
        document = await self._repository.get_by_id_and_user(document_id, user_id)
        if document is None:
            raise NotFoundError(f"document {document_id} not found")
        return document

    async def delete(self, document_id: int, user_id: int) -> None:
        """Delete a document's vectors, then its row.

        Raises:
            NotFoundError: If the document does not exist or belongs to another user.
            StoreError: If the vectors cannot be removed; the row is kept.
        """
        document = await self.get(document_id, user_id)
        await self._rag_service.delete_document(document.id, user_id)
        await self._repository.delete_by_id_and_user(document.id, user_id)
        self.logging.info("Deleted document %d for user_id=%d.", document.id, user_id)

    async def reindex(self, document_id: int, user_id: int) -> Document:
        """Re-run indexing for an existing document and record the outcome."""
        document = await self.get(document_id, user_id)
        document = await self._repository.update_status(document.id, user_id, DocumentStatus.INDEXING) or document
        return await self._index_and_record(document)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    @staticmethod
    def _validate(user_id: int, title: str, content: str) -> str:
        if not user_id:
            raise InvalidInputError("user id is required")
        title = (title or "").strip()
        if not title:
            raise InvalidInputError("title must not be empty")
        if len(title) > MAX_TITLE_LENGTH:
            raise InvalidInputError(f"title must be at most {MAX_TITLE_LENGTH} characters")
        if not (content or "").strip():
            raise InvalidInputError("content must not be empty")
        return title

    async def _index_and_record(self, document: Document) -> Document:
        """Index a document and store the outcome as its status.

        Domain errors are recorded and swallowed. Anything else is recorded as
        INDEXING_FAILED and re-raised, so the row never stays in INDEXING.
        """
        status = DocumentStatus.INDEXING_FAILED
        try:
            await self._rag_service.index_document(document)
            status = DocumentStatus.READY
        except BridgeError as exc:
            self.logging.error(
                "Indexing failed for document %d (user_id=%d): %s",
                document.id, document.user_id, exc,
            )
        finally:
            updated = await self._repository.update_status(document.id, document.user_id, status)
        return updated or document.model_copy(update={"status": status})
