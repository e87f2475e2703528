"""Silence uvicorn's access log for Kubernetes probes.

The kubelet calls `/healthz` and `/readyz` every few seconds. While a probe
is served the ``uvicorn.access`` logger is muted, and its level is restored
afterwards even when the probe fails.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import Request, Response

PROBE_PATHS = frozenset({"/healthz", "/readyz"})

MUTED = logging.CRITICAL + 1


@contextmanager
def muted(logger: logging.Logger) -> Iterator[None]:
    previous = logger.level
    logger.setLevel(MUTED)
    try:
        yield
    finally:
        logger.setLevel(previous)


class HealthzFilterMiddleware(BaseHTTPMiddleware):
    """Mute uvicorn's access log while a probe path is served."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path in PROBE_PATHS:
            with muted(logging.getLogger("uvicorn.access")):
                return await call_next(request)
        return await call_next(request)
