"""Middleware for the operator's HTTP server.

This module provides FastAPI middleware for request logging, probe log
filtering and exception handling.
"""

from arcane_operator.api.middleware.exception_handler import ExceptionHandlerMiddleware
from arcane_operator.api.middleware.healthz_filter import PROBE_PATHS, HealthzFilterMiddleware
from arcane_operator.api.middleware.logger import LoggerMiddleware

__all__ = [
    "PROBE_PATHS",
    "ExceptionHandlerMiddleware",
    "HealthzFilterMiddleware",
    "LoggerMiddleware",
]
