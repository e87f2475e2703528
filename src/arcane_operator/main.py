"""Process entrypoint of the Arcane stream operator.

- Uvicorn: `uvicorn arcane_operator.main:app`
- Console script: `arcane-operator` (calls `run()`)
- K8s probes: `GET /healthz` (liveness), `GET /readyz` (readiness)

## High-level architecture

- **StreamClass pipeline**: watches StreamClass resources and attaches one
  stream pipeline per registered kind
- **Stream pipelines**: watch the stream definitions of one kind and
  create, stop or annotate their jobs
- **Job pipeline**: watches streaming jobs and completes restarts, reloads
  and crash-loop detection

Configuration is read from environment variables, see `arcane_operator.config`.
"""

import uvicorn

from arcane_operator.api.app import create_app
from arcane_operator.config import get_settings
from arcane_operator.foundation.logger import LOGGING_CONFIG

app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(app, host=settings.api.host, port=settings.api.port, log_config=LOGGING_CONFIG)


if __name__ == "__main__":
    run()
