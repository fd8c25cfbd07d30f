"""Shared test plumbing."""

from __future__ import annotations

import logging

import pytest


@pytest.fixture(autouse=True)
def _reset_logging_handlers():
    """Drop file handlers installed by a test so they don't outlive its temp dir."""
    yield
    for name in [None, "mcp_watchtower", "httpx", "httpcore"]:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
