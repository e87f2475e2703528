"""Pydantic response models for the operator's HTTP API.

## Response Models

- `HealthResponse`: Liveness probe result.
- `ReadinessResponse`: Readiness probe result with the state of every
  top-level pipeline.
- `StreamClassResponse`: One attached stream kind.
- `StreamClassListResponse`: All attached stream kinds.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness probe response.

    Example:
        ```json
        {"status": "ok"}
        ```
    """

    status: str = Field(description="Always 'ok' while the process serves requests")


class ReadinessResponse(BaseModel):
    """Readiness probe response.

    Attributes:
        status: "ready" or "not ready".
        pipelines: Top-level pipeline name mapped to whether it is running.
    """

    status: str
    pipelines: dict[str, bool] = Field(default_factory=dict)


class StreamClassResponse(BaseModel):
    """A stream kind attached to the operator.

    Example:
        ```json
        {
            "stream_class_id": "arcane.SqlServerStream",
            "name": "arcane-stream-sql-server",
            "namespace": "arcane",
            "kind_ref": "SqlServerStream",
            "api_group": "streaming.sneaksanddata.com",
            "api_version": "v1beta1",
            "plural": "sql-server-streams",
            "running": true
        }
        ```
    """

    stream_class_id: str
    name: str
    namespace: str
    kind_ref: str
    api_group: str
    api_version: str
    plural: str
    running: bool


class StreamClassListResponse(BaseModel):
    items: list[StreamClassResponse]
    total: int
