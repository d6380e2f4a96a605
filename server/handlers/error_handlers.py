"""Map domain errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.errors import (
    BridgeError,
    ConfigurationError,
    InvalidInputError,
    NotFoundError,
    ProviderError,
    StoreError,
    ValidationError,
)

# most specific first: NotFoundError is an InvalidInputError
_STATUS_CODES: list[tuple[type[BridgeError], int]] = [
    (NotFoundError, 404),
    (InvalidInputError, 400),
    (ConfigurationError, 503),
    (ProviderError, 502),
    (StoreError, 502),
    (ValidationError, 500),
]


def status_code_for(exc: BridgeError) -> int:
    for error_class, status_code in _STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return 500


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BridgeError)
    async def handle_bridge_error(request: Request, exc: BridgeError) -> JSONResponse:
        status_code = status_code_for(exc)
        logger: logging.Logger = request.app.state.logging
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.message, "retryable": exc.retryable},
        )
