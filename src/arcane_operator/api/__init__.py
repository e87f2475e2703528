"""HTTP surface of the operator.

- FastAPI application factory with the operator lifespan
- Probe, metrics and StreamClass routes
- Pydantic response models
"""

from arcane_operator.api import models
from arcane_operator.api.app import create_app

__all__ = ["create_app", "models"]
