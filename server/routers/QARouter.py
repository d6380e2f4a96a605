import asyncio
import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from server.dependencies.auth import get_user_id, verify_api_key
from server.models.requests import AskRequest
from server.models.responses import AskResponse
from services.qa.QAService import QAService
from shared.errors import BridgeError, StreamCancelledError

router = APIRouter(prefix="/api/v1/qa", tags=["qa"], dependencies=[Depends(verify_api_key)])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(payload: dict) -> str:
    """Frame one payload as a server-sent event."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@router.post("/ask")
async def ask(request: Request, body: AskRequest, user_id: int = Depends(get_user_id)) -> AskResponse:
    """Answer a question from the user's documents in one response."""
    qa_service: QAService = request.app.state.qa_service
    answer = await qa_service.ask(user_id, body.question)
    return AskResponse(answer=answer)


@router.post("/ask/stream")
async def ask_stream(request: Request, body: AskRequest, user_id: int = Depends(get_user_id)) -> StreamingResponse:
    """Answer a question as a text/event-stream of {"chunk": ...} events.

    The stream ends with {"done": "true"} on success or {"error": ...} on failure.
    Precondition failures are reported as plain HTTP errors before the stream opens.
    """
    qa_service: QAService = request.app.state.qa_service
    question = qa_service.validate_request(user_id, body.question)
    return StreamingResponse(
        stream_answer(qa_service, request.app.state.logging, user_id, question),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


async def stream_answer(qa_service: QAService, logger, user_id: int, question: str) -> AsyncIterator[str]:
    """Run ask_stream in a producer task and yield its SSE frames.

    Closing this generator (client disconnect) sets the cancel event and cancels
    the producer, which releases the provider stream.
    """
    queue: asyncio.Queue[str | None] = asyncio.Queue()
    cancel_event = asyncio.Event()

    async def on_chunk(delta: str) -> None:
        await queue.put(format_sse({"chunk": delta}))

    async def produce() -> None:
        try:
            await qa_service.ask_stream(user_id, question, on_chunk, cancel_event)
            await queue.put(format_sse({"done": "true"}))
        except StreamCancelledError:
            logger.info("Answer stream cancelled by client (user_id=%d).", user_id)
        except BridgeError as exc:
            logger.error("Answer stream failed (user_id=%d): %s", user_id, exc)
            await queue.put(format_sse({"error": exc.message}))
        except Exception as exc:
            logger.exception("Unexpected error in answer stream (user_id=%d): %s", user_id, exc)
            await queue.put(format_sse({"error": "internal error"}))
        finally:
            await queue.put(None)

    producer = asyncio.create_task(produce())
    try:
        while True:
            frame = await queue.get()
            if frame is None:
                break
            yield frame
    finally:
        cancel_event.set()
        if not producer.done():
            producer.cancel()
            # asyncio.wait does not re-raise the producer's cancellation, but a
            # cancellation of this task still propagates
            await asyncio.wait([producer])
