"""Exception handler middleware.

Exceptions escaping a route become JSON error bodies ``{"error", "message"}``.
The first matching entry of `ERROR_STATUSES` decides the status code:
Kubernetes API failures are a gateway problem (502), other operator
failures are internal (500). Messages of unexpected exceptions are not
returned to the caller.
"""

import logging
from collections.abc import Awaitable, Callable

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from arcane_operator.core.exceptions import OperatorError
from arcane_operator.foundation.exceptions import UpstreamError

logger = logging.getLogger("uvicorn.error")

ERROR_STATUSES: tuple[tuple[type[Exception], int, str], ...] = (
    (UpstreamError, 502, "Bad Gateway"),
    (OperatorError, 500, "Internal Server Error"),
)

UNEXPECTED_MESSAGE = "An unexpected error occurred."


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def _classify(exc: Exception) -> tuple[int, str, str]:
    if isinstance(exc, HTTPException):
        return exc.status_code, "Client Error", str(exc.detail)
    for error_type, status_code, title in ERROR_STATUSES:
        if isinstance(exc, error_type):
            return status_code, title, str(exc)
    return 500, "Internal Server Error", UNEXPECTED_MESSAGE


async def route_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler registered on the app for errors FastAPI catches itself."""
    status_code, title, message = _classify(exc)
    logger.exception(
        "Request %s %s failed",
        request.method,
        request.url.path,
        extra={"error": {"statuscode": status_code, "type": type(exc).__name__, "message": str(exc)}},
    )
    return error_response(status_code, title, message)


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Turn exceptions raised by routes into JSON error responses."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        try:
            return await call_next(request)
        except Exception as e:  # noqa: BLE001 - every failure gets a response
            return await route_error_handler(request, e)
