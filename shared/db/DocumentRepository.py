"""Document repository. Every read and write is scoped to the owning user."""

from sqlalchemy import delete, select, update

from shared.db.Database import Database
from shared.db.base import DocumentRecord, utc_now
from shared.models.document import Document, DocumentStatus


class DocumentRepository:
    def __init__(self, database: Database) -> None:
        self._database = database

    async def create(self, user_id: int, title: str, content: str) -> Document:
        """Persist a new document in the INDEXING state."""
        async with self._database.session_scope() as session:
            record = DocumentRecord(
                user_id=user_id,
                title=title,
                content=content,
                status=DocumentStatus.INDEXING.value,
            )
            session.add(record)
            await session.flush()
            await session.refresh(record)
            return Document.model_validate(record)

    async def list_by_user(self, user_id: int) -> list[Document]:
        """Return the user's documents, newest first."""
        async with self._database.session_scope() as session:
            rows = await session.scalars(
                select(DocumentRecord)
                .where(DocumentRecord.user_id == user_id)
                .order_by(DocumentRecord.created_at.desc(), DocumentRecord.id.desc())
            )
            return [Document.model_validate(row) for row in rows]

    async def get_by_id_and_user(self, document_id: int, user_id: int) -> Document | None:
        async with self._database.session_scope() as session:
            record = await session.scalar(
                select(DocumentRecord).where(
                    DocumentRecord.id == document_id,
                    DocumentRecord.user_id == user_id,
                )
            )
            return Document.model_validate(record) if record is not None else None

    async def update_status(self, document_id: int, user_id: int, status: DocumentStatus) -> Document | None:
        """Set a document's status. Returns the updated document, or None if it does not exist."""
        async with self._database.session_scope() as session:
            result = await session.execute(
                update(DocumentRecord)
                .where(DocumentRecord.id == document_id, DocumentRecord.user_id == user_id)
                .values(status=status.value, updated_at=utc_now())
            )
            if result.rowcount == 0:
                return None
        return await self.get_by_id_and_user(document_id, user_id)

    async def delete_by_id_and_user(self, document_id: int, user_id: int) -> bool:
        """Delete a document row. Returns False if nothing matched."""
        async with self._database.session_scope() as session:
            result = await session.execute(
                delete(DocumentRecord).where(
                    DocumentRecord.id == document_id,
                    DocumentRecord.user_id == user_id,
                )
            )
            return result.rowcount > 0
