"""Error taxonomy shared by the chat core and the routes.

Tool failures never leave the tool registry; everything else propagates to
the request boundary, where the handlers below turn it into one JSON body.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DostifyError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DostifyError):
    """Malformed caller input."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(DostifyError):
    """Missing resource, or one that belongs to another user."""

    status_code = 404


class ToolExecutionError(DostifyError):
    """A tool's side effect failed. Converted to a failed ToolResult by the registry."""

    status_code = 500


class UpstreamServiceError(DostifyError):
    """The language model call failed (timeout, bad status, malformed body)."""

    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        tool_results: list[dict[str, Any]] | None = None,
        partial: bool = False,
    ):
        super().__init__(message)
        self.tool_results = tool_results or []
        self.partial = partial


class PersistenceError(DostifyError):
    """A write against the database failed."""

    status_code = 500


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


async def _handle_dostify_error(request: Request, exc: DostifyError) -> JSONResponse:
    body: dict[str, Any] = {"message": exc.message, "requestId": _request_id(request)}

    if isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    elif isinstance(exc, UpstreamServiceError):
        logger.error(f"Upstream model error: {exc.message} [id={body['requestId']}]")
        if exc.tool_results:
            body["toolResults"] = exc.tool_results
        body["partial"] = exc.partial
    elif isinstance(exc, PersistenceError):
        logger.error(f"Persistence error: {exc.message} [id={body['requestId']}]")
        body["message"] = "Server error"

    return JSONResponse(status_code=exc.status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DostifyError, _handle_dostify_error)  # type: ignore[arg-type]
