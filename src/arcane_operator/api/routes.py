"""FastAPI HTTP routes of the operator.

## Endpoints

- `GET /healthz`: Liveness probe (no dependency checks)
- `GET /readyz`: Readiness probe, 503 until both top-level pipelines run
- `GET /stream-classes`: Stream kinds currently attached
- `GET /metrics`: Prometheus metrics (mounted by the app factory)

The running `OperatorHost` is read from `request.app.state.host`.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from arcane_operator.api import models
from arcane_operator.core.services.operator import OperatorHost

router = APIRouter()


def _host(request: Request) -> OperatorHost:
    return request.app.state.host


@router.get("/healthz", response_model=models.HealthResponse, tags=["health"])
def healthz() -> models.HealthResponse:
    """Liveness probe endpoint.

    Returns:
        `{"status": "ok"}` while the process serves requests.

    Note:
        Cluster connectivity is not checked here; a temporarily unreachable
        API server must not restart the operator.
    """
    return models.HealthResponse(status="ok")


@router.get(
    "/readyz",
    response_model=models.ReadinessResponse,
    responses={503: {"model": models.ReadinessResponse}},
    tags=["health"],
)
def readyz(request: Request) -> JSONResponse:
    """Readiness probe endpoint.

    The operator is ready while the StreamClass and job pipelines are both
    running. A pipeline that terminated on a fatal error makes the operator
    permanently not ready.
    """
    host = _host(request)
    pipelines = {task.get_name(): not task.done() for task in host.tasks}
    ready = host.is_ready
    body = models.ReadinessResponse(status="ready" if ready else "not ready", pipelines=pipelines)
    return JSONResponse(status_code=200 if ready else 503, content=body.model_dump())


@router.get("/stream-classes", response_model=models.StreamClassListResponse, tags=["stream-classes"])
def list_stream_classes(request: Request) -> models.StreamClassListResponse:
    """List attached stream kinds.

    Returns:
        One item per attached StreamClass, sorted by id, with whether its
        stream pipeline is running.
    """
    handles = _host(request).supervisor.handles
    items = []
    for stream_class_id in sorted(handles):
        handle = handles[stream_class_id]
        stream_class = handle.stream_class
        items.append(
            models.StreamClassResponse(
                stream_class_id=stream_class_id,
                name=stream_class.name,
                namespace=stream_class.namespace,
                kind_ref=stream_class.kind_ref,
                api_group=stream_class.api_group_ref,
                api_version=stream_class.api_version_ref,
                plural=stream_class.plural_name,
                running=handle.is_running,
            )
        )
    return models.StreamClassListResponse(items=items, total=len(items))
