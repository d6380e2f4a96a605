"""Repository and DocumentService tests against a temporary SQLite database."""
import json
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from services.documents.DocumentService import DocumentService
from shared.db.Database import Database
from shared.db.DocumentRepository import DocumentRepository
from shared.errors import InvalidInputError, NotFoundError, ProviderError, StoreError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import DocumentStatus


def make_database(helper_config: HelperConfig, tmp_path: Path) -> Database:
    return Database(helper_config=helper_config, db_url=f"sqlite+aiosqlite:///{tmp_path / 'data' / 'medqa.db'}")


@pytest.fixture
def rag_service() -> Mock:
    service = Mock()
    service.index_document = AsyncMock(return_value=None)
    service.delete_document = AsyncMock(return_value=None)
    return service


##########################################
############## REPOSITORY ################
##########################################

@pytest.mark.asyncio
async def test_repository_is_owner_scoped(helper_config: HelperConfig, tmp_path: Path) -> None:
    database = make_database(helper_config, tmp_path)
    await database.init_schema()
    repository = DocumentRepository(database)

    first = await repository.create(user_id=3, title="ECG", content="sinus rhythm")
    second = await repository.create(user_id=3, title="Labs", content="Hb 13.5")
    await repository.create(user_id=4, title="Other", content="not yours")

    assert first.status == DocumentStatus.INDEXING
    assert first.created_at is not None
    assert [document.id for document in await repository.list_by_user(3)] == [second.id, first.id]
    assert await repository.get_by_id_and_user(first.id, 4) is None
    assert await repository.update_status(first.id, 4, DocumentStatus.READY) is None
    assert await repository.delete_by_id_and_user(first.id, 4) is False

    updated = await repository.update_status(first.id, 3, DocumentStatus.READY)
    assert updated.status == DocumentStatus.READY
    assert await repository.delete_by_id_and_user(first.id, 3) is True
    assert await repository.get_by_id_and_user(first.id, 3) is None
    await database.close()


##########################################
################ SERVICE #################
##########################################

async def make_service(helper_config: HelperConfig, tmp_path: Path, rag_service: Mock) -> tuple[DocumentService, Database]:
    database = make_database(helper_config, tmp_path)
    await database.init_schema()
    service = DocumentService(helper_config=helper_config, repository=DocumentRepository(database), rag_service=rag_service)
    return service, database


@pytest.mark.asyncio
async def test_create_indexes_and_marks_ready(helper_config: HelperConfig, tmp_path: Path, rag_service: Mock) -> None:
    service, database = await make_service(helper_config, tmp_path, rag_service)
    document = await service.create(3, "  ECG  ", "sinus rhythm")

    assert document.title == "ECG"
    assert document.status == DocumentStatus.READY
    indexed = rag_service.index_document.await_args.args[0]
    assert indexed.id == document.id
    assert indexed.status == DocumentStatus.INDEXING
    await database.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [ProviderError("embedding down"), StoreError("store down")])
async def test_create_keeps_document_when_indexing_fails(helper_config: HelperConfig, tmp_path: Path, rag_service: Mock, error: Exception) -> None:
    rag_service.index_document.side_effect = error
    service, database = await make_service(helper_config, tmp_path, rag_service)
    document = await service.create(3, "ECG", "sinus rhythm")

    assert document.status == DocumentStatus.INDEXING_FAILED
    assert (await service.get(document.id, 3)).status == DocumentStatus.INDEXING_FAILED
    await database.close()


@pytest.mark.asyncio
async def test_create_records_failure_on_unexpected_error(helper_config: HelperConfig, tmp_path: Path, rag_service: Mock) -> None:
    rag_service.index_document.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)
    service, database = await make_service(helper_config, tmp_path, rag_service)

    with pytest.raises(json.JSONDecodeError):
        await service.create(3, "ECG", "sinus rhythm")
    documents = await service.list_documents(3)
    assert [document.status for document in documents] == [DocumentStatus.INDEXING_FAILED]
    await database.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id, title, content", [
    (0, "ECG", "text"),
    (3, "  ", "text"),
    (3, "x" * 256, "text"),
    (3, "ECG", "   "),
])
async def test_create_validates_input(helper_config: HelperConfig, tmp_path: Path, rag_service: Mock, user_id: int, title: str, content: str) -> None:
    service, database = await make_service(helper_config, tmp_path, rag_service)
    with pytest.raises(InvalidInputError):
        await service.create(user_id, title, content)
    rag_service.index_document.assert_not_called()
    await database.close()


@pytest.mark.asyncio
async def test_get_other_users_document_is_not_found(helper_config: HelperConfig, tmp_path: Path, rag_service: Mock) -> None:
    service, database = await make_service(helper_config, tmp_path, rag_service)
    document = await service.create(3, "ECG", "sinus rhythm")
    with pytest.raises(NotFoundError):
        await service.get(document.id, 4)
    with pytest.raises(NotFoundError):
        await service.delete(document.id, 4)
    rag_service.delete_document.assert_not_called()
    await database.close()


@pytest.mark.asyncio
async def test_delete_removes_vectors_then_row(helper_config: HelperConfig, tmp_path: Path, rag_service: Mock) -> None:
    service, database = await make_service(helper_config, tmp_path, rag_service)
    document = await service.create(3, "ECG", "sinus rhythm")
    await service.delete(document.id, 3)

    rag_service.delete_document.assert_awaited_once_with(document.id, 3)
    assert await service.list_documents(3) == []
    await database.close()


@pytest.mark.asyncio
async def test_delete_keeps_row_when_store_fails(helper_config: HelperConfig, tmp_path: Path, rag_service: Mock) -> None:
    rag_service.delete_document.side_effect = StoreError("store down")
    service, database = await make_service(helper_config, tmp_path, rag_service)
    document = await service.create(3, "ECG", "sinus rhythm")

    with pytest.raises(StoreError):
        await service.delete(document.id, 3)
    assert (await service.get(document.id, 3)).id == document.id
    await database.close()


@pytest.mark.asyncio
async def test_reindex_recovers_failed_document(helper_config: HelperConfig, tmp_path: Path, rag_service: Mock) -> None:
    rag_service.index_document.side_effect = ProviderError("embedding down")
    service, database = await make_service(helper_config, tmp_path, rag_service)
    document = await service.create(3, "ECG", "sinus rhythm")

    rag_service.index_document.side_effect = None
    reindexed = await service.reindex(document.id, 3)
    assert reindexed.status == DocumentStatus.READY
    await database.close()


@pytest.mark.asyncio
async def test_create_from_upload(helper_config: HelperConfig, tmp_path: Path, rag_service: Mock) -> None:
    service, database = await make_service(helper_config, tmp_path, rag_service)

    from_name = await service.create_from_upload(3, "discharge.txt", None, "Entlassbrief: stabil".encode("utf-8"))
    assert from_name.title == "discharge.txt"
    assert from_name.content == "Entlassbrief: stabil"

    titled = await service.create_from_upload(3, "discharge.txt", "Discharge letter", b"stable")
    assert titled.title == "Discharge letter"

    with pytest.raises(InvalidInputError):
        await service.create_from_upload(3, "scan.pdf", None, b"\xff\xfe\x00binary")
    await database.close()
