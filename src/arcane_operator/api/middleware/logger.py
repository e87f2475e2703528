"""Access log middleware.

One record per request on the ``arcane_operator.access`` logger, written when
the response is ready. Server errors are logged as warnings. Probe requests
are not logged.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from arcane_operator.api.middleware.healthz_filter import PROBE_PATHS

logger = logging.getLogger("arcane_operator.access")


def describe_request(request: Request) -> dict[str, Any]:
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return {
        "method": request.method,
        "path": target,
        "remoteAddr": request.client.host if request.client else None,
    }


class LoggerMiddleware(BaseHTTPMiddleware):
    """Write an access log record for every non-probe request."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path in PROBE_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 3)

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s %d",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "request": describe_request(request),
                "response": {"statuscode": response.status_code, "duration_ms": elapsed_ms},
            },
        )
        return response
