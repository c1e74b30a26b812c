"""ragstream API layer: routes, schemas, SSE transport, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    ChatRequest,
    ErrorResponse,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    JobStatusResponse,
)
from src.api.streaming import format_sse, sse_frames, sse_response

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "format_sse",
    "sse_frames",
    "sse_response",
    "ChatRequest",
    "ErrorResponse",
    "HealthResponse",
    "IngestRequest",
    "IngestResponse",
    "JobStatusResponse",
]
