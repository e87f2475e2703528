"""FastAPI application factory for the operator.

The HTTP server exists for Kubernetes probes, Prometheus scraping and a
read-only view of the attached stream kinds. The reconciliation engine
(`OperatorHost`) runs inside the application's lifespan: it is started
before the first request is served and stopped, with in-flight commands
drained, on shutdown.

## App Structure

- **Routes**: `/healthz`, `/readyz`, `/stream-classes`
- **Middleware**: request logger, probe log filter, exception handler
- **Metrics**: Prometheus instrumentation via prometheus-fastapi-instrumentator,
  exposed at `/metrics` together with the operator's own metrics

## Usage

```python
from arcane_operator.api.app import create_app

app = create_app()
# Use with uvicorn: uvicorn arcane_operator.main:app
```

Tests inject a host factory and a private metrics registry:

```python
app = create_app(host_factory=lambda: fake_host, registry=CollectorRegistry())
```
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from logging.config import dictConfig

from fastapi import FastAPI, HTTPException
from prometheus_client import REGISTRY, CollectorRegistry
from prometheus_fastapi_instrumentator import Instrumentator

from arcane_operator.api.middleware import ExceptionHandlerMiddleware, HealthzFilterMiddleware, LoggerMiddleware
from arcane_operator.api.middleware.exception_handler import route_error_handler
from arcane_operator.api.routes import router
from arcane_operator.config import get_settings
from arcane_operator.core.exceptions import OperatorError
from arcane_operator.core.services.operator import OperatorHost
from arcane_operator.foundation.exceptions import UpstreamError
from arcane_operator.foundation.logger import LOGGING_CONFIG


def _default_host() -> OperatorHost:
    return OperatorHost.from_settings(get_settings())


def create_app(
    host_factory: Callable[[], OperatorHost] | None = None,
    registry: CollectorRegistry = REGISTRY,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        host_factory: Builds the operator host when the app starts. Defaults
            to a host configured from environment variables.
        registry: Prometheus registry exposed at `/metrics`.

    Returns:
        A configured `FastAPI` instance ready to use with uvicorn.

    Note:
        Middleware order matters: the logger runs first, then the probe
        filter, then the exception handler.
    """
    #             ╭─────────────────────────────────────────────────────────╮
    #             │                        Logging                          │
    #             ╰─────────────────────────────────────────────────────────╯

    dictConfig(config=LOGGING_CONFIG)

    #             ╭─────────────────────────────────────────────────────────╮
    #             │                        Lifespan                         │
    #             ╰─────────────────────────────────────────────────────────╯

    build_host = host_factory or _default_host

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        host = build_host()
        app.state.host = host
        await host.start()
        try:
            yield
        finally:
            await host.stop()

    app = FastAPI(
        title="Arcane Stream Operator",
        description=(
            "Kubernetes operator reconciling Arcane stream definitions into streaming jobs. "
            "Exposes health probes, Prometheus metrics and the attached stream kinds."
        ),
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "health",
                "description": "Health check endpoints for Kubernetes liveness and readiness probes",
            },
            {
                "name": "stream-classes",
                "description": "Stream kinds registered by StreamClass resources",
            },
        ],
    )

    #             ╭─────────────────────────────────────────────────────────╮
    #             │                        Middleware                       │
    #             ╰─────────────────────────────────────────────────────────╯

    # The last one added is the outermost.
    app.add_middleware(ExceptionHandlerMiddleware)
    app.add_middleware(HealthzFilterMiddleware)
    app.add_middleware(LoggerMiddleware)

    #             ╭─────────────────────────────────────────────────────────╮
    #             │                   Exception Handlers                    │
    #             ╰─────────────────────────────────────────────────────────╯

    for error_type in (HTTPException, UpstreamError, OperatorError):
        app.add_exception_handler(error_type, route_error_handler)

    #             ╭─────────────────────────────────────────────────────────╮
    #             │                        Routers                          │
    #             ╰─────────────────────────────────────────────────────────╯

    app.include_router(router)

    #             ╭─────────────────────────────────────────────────────────╮
    #             │                        Metrics                          │
    #             ╰─────────────────────────────────────────────────────────╯

    Instrumentator(registry=registry, excluded_handlers=["/healthz", "/readyz", "/metrics"]).instrument(
        app=app
    ).expose(app=app)

    return app
