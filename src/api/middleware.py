"""API middleware: CORS, request logging, and error handling.

Starlette runs middleware last-added-first, so with the order used in
:func:`src.main.create_app` a request passes

    RequestLogging -> ErrorHandling -> route handler

and the request log records the final status, including errors that
:class:`ErrorHandlingMiddleware` turned into JSON bodies.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import InputValidationError, RagStreamError, StoreError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware.  Defaults to ``["*"]`` when no origins are given."""
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request and tag its log lines with a request id.

    The id comes from the ``X-Request-ID`` header when the caller sends
    one and is otherwise generated.  It is bound into structlog's context
    for the duration of the request, so QA and coordinator events logged
    while handling it carry the same ``request_id``, and it is echoed on
    the response.  For streamed chat answers ``duration_ms`` is the time
    to the first byte.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        start = time.perf_counter()
        status_code = 500

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
                status_code = response.status_code
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                _logger.info(
                    "http_request",
                    method=request.method,
                    path=request.url.path,
                    status=status_code,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


def status_for(exc: RagStreamError) -> int:
    if isinstance(exc, InputValidationError):
        return 422
    if isinstance(exc, StoreError):
        return 503
    return 500


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn ``RagStreamError`` subclasses into sanitized JSON errors.

    The client gets the exception class name and its ``public_message``;
    the detailed message and provider go to the server log only.  Other
    exceptions fall through to Starlette's default 500 handler.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except RagStreamError as exc:
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.public_message,
            )
            return JSONResponse(
                status_code=status_for(exc),
                content=body.model_dump(),
            )
