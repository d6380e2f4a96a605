"""FastAPI application entry point for medqa_bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.db.Database import Database
from shared.db.DocumentRepository import DocumentRepository
from shared.errors import BridgeError
from services.rag.RAGService import RAGService
from services.qa.QAService import QAService
from services.documents.DocumentService import DocumentService
from server.handlers.error_handlers import register_exception_handlers
from server.routers.DocumentRouter import router as document_router
from server.routers.QARouter import router as qa_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    embed_client = EmbedClientManager(helper_config=app.state.helper_config).get_client()
    rag_client = RAGClientManager(helper_config=app.state.helper_config).get_client()
    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()
    clients: list[ClientInterface] = [embed_client, rag_client, llm_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    database = Database(helper_config=app.state.helper_config)
    await database.init_schema()

    rag_service = RAGService(
        helper_config=app.state.helper_config,
        embed_client=embed_client,
        rag_client=rag_client,
    )
    await prepare_vector_store(rag_service)

    app.state.database = database
    app.state.rag_service = rag_service
    app.state.document_service = DocumentService(
        helper_config=app.state.helper_config,
        repository=DocumentRepository(database),
        rag_service=rag_service,
    )
    app.state.qa_service = QAService(
        helper_config=app.state.helper_config,
        llm_client=llm_client,
        rag_service=rag_service,
    )

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients:
        await client.close()
    await database.close()
    logging.info("All clients closed.")


async def prepare_vector_store(rag_service: RAGService) -> None:
    """Ensure the vector collection exists when RAG is enabled.

    Failures are non-fatal: the server stays up and indexing will report them per document.
    """
    if not rag_service.is_enabled():
        return
    try:
        await rag_service.do_prepare_store()
    except BridgeError as exc:
        logging.warning("Vector store is not ready: %s. Indexing and retrieval may fail.", exc)


app = FastAPI(
    title="medqa_bridge",
    description=(
        "Retrieval-augmented question answering over users' medical documents. "
        "Documents are chunked, embedded and indexed into a vector store; questions are "
        "answered from the asking user's own excerpts via POST /api/v1/qa/ask "
        "or streamed as server-sent events via POST /api/v1/qa/ask/stream."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(document_router)
app.include_router(qa_router)


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting medqa_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
