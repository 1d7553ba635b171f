"""
Shared test fixtures for polling-manager tests.

This module provides:
- A manager factory with a tiny polling interval
- Mock stage functions (trigger/complete) built on AsyncMock
- Mock success/error callbacks
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from polling_manager import PollingConfig, PollingServiceManager
from tests._polling_testkit import INTERVAL


@pytest.fixture
def make_manager():
    """Fixture providing a factory for fast-polling managers."""

    def _factory(**overrides: Any) -> PollingServiceManager:
        overrides.setdefault("polling_interval", INTERVAL)
        overrides.setdefault("log_level", "DEBUG")
        return PollingServiceManager(PollingConfig(**overrides))

    return _factory


@pytest.fixture
def trigger():
    """Fixture providing a trigger that resolves to a tracking id."""
    return AsyncMock(return_value="trk-1")


@pytest.fixture
def complete():
    """Fixture providing a complete function mapping 42 -> 'ok:42'."""
    return AsyncMock(side_effect=lambda value: f"ok:{value}")


@pytest.fixture
def callbacks():
    """Fixture providing (on_success, on_error) mocks."""
    return MagicMock(name="on_success"), MagicMock(name="on_error")
