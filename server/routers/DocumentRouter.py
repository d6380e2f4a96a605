from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile

from server.dependencies.auth import get_user_id, verify_api_key
from server.models.requests import CreateDocumentRequest
from server.models.responses import DocumentListResponse, DocumentResponse

router = APIRouter(prefix="/api/v1/documents", tags=["documents"], dependencies=[Depends(verify_api_key)])


@router.post("", status_code=201)
async def create_document(
    request: Request,
    body: CreateDocumentRequest,
    user_id: int = Depends(get_user_id),
) -> DocumentResponse:
    """Store a document and index it for question answering.

    The document is returned even if indexing failed; its status then reads
    "indexing_failed" and it can be reindexed.
    """
    document_service = request.app.state.document_service
    document = await document_service.create(user_id, body.title, body.content)
    return DocumentResponse.model_validate(document.model_dump())


@router.post("/upload", status_code=201)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    title: str | None = Form(None),
    user_id: int = Depends(get_user_id),
) -> DocumentResponse:
    """Create a document from an uploaded UTF-8 text file."""
    document_service = request.app.state.document_service
    raw_bytes = await file.read()
    document = await document_service.create_from_upload(user_id, file.filename, title, raw_bytes)
    return DocumentResponse.model_validate(document.model_dump())


@router.get("")
async def list_documents(request: Request, user_id: int = Depends(get_user_id)) -> DocumentListResponse:
    document_service = request.app.state.document_service
    documents = await document_service.list_documents(user_id)
    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(document.model_dump()) for document in documents],
        total=len(documents),
    )


@router.get("/{document_id}")
async def get_document(request: Request, document_id: int, user_id: int = Depends(get_user_id)) -> DocumentResponse:
    document_service = request.app.state.document_service
    document = await document_service.get(document_id, user_id)
    return DocumentResponse.model_validate(document.model_dump())


@router.delete("/{document_id}", status_code=204)
async def delete_document(request: Request, document_id: int, user_id: int = Depends(get_user_id)) -> Response:
    """Delete a document together with all of its indexed vectors."""
    document_service = request.app.state.document_service
    await document_service.delete(document_id, user_id)
    return Response(status_code=204)


@router.post("/{document_id}/reindex")
async def reindex_document(request: Request, document_id: int, user_id: int = Depends(get_user_id)) -> DocumentResponse:
    document_service = request.app.state.document_service
    document = await document_service.reindex(document_id, user_id)
    return DocumentResponse.model_validate(document.model_dump())
