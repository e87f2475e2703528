"""Logging fixtures for middleware tests."""

import logging

import pytest

MIDDLEWARE_LOGGERS = ("arcane_operator.access", "uvicorn.access", "uvicorn.error")


@pytest.fixture(autouse=True)
def capture_middleware_logs(caplog):
    """Route middleware loggers to caplog, once per record.

    Whether these loggers propagate depends on whether LOGGING_CONFIG was
    applied by an earlier test. Propagation is turned off while the test
    runs, so records reach caplog only through the handler attached here.
    """
    loggers = [logging.getLogger(name) for name in MIDDLEWARE_LOGGERS]
    saved = [(logger, logger.propagate, caplog.handler in logger.handlers) for logger in loggers]
    for logger in loggers:
        logger.propagate = False
        if caplog.handler not in logger.handlers:
            logger.addHandler(caplog.handler)
    yield
    for logger, propagate, had_handler in saved:
        logger.propagate = propagate
        if not had_handler:
            logger.removeHandler(caplog.handler)
