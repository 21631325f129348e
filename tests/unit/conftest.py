"""Shared fixtures for unit tests."""

import logging

import pytest

from webserver.domain.correlation_id import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    old_propagate, old_level = logger.propagate, logger.level
    logger.propagate = True
    logger.setLevel(logging.DEBUG)
    yield
    logger.propagate = old_propagate
    logger.setLevel(old_level)
