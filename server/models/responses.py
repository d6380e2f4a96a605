from pydantic import BaseModel

from shared.models.document import Document


class DocumentResponse(Document):
    pass


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total: int


class AskResponse(BaseModel):
    answer: str


class ErrorResponse(BaseModel):
    error: str
    retryable: bool = False
