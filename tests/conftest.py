"""Shared pytest fixtures for the memocache test suite."""

from __future__ import annotations

from typing import Iterator
from unittest.mock import MagicMock

import pytest

from memocache.engine import MemoizationEngine
from memocache.interfaces.durable_cache import IDurableCache
from memocache.interfaces.error_reporter import IErrorReporter


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def reporter() -> MagicMock:
    """Spy implementing IErrorReporter."""
    return MagicMock(spec=IErrorReporter)


@pytest.fixture
def durable() -> MagicMock:
    """Spy implementing IDurableCache."""
    mock = MagicMock(spec=IDurableCache)
    mock.get_provider_name.return_value = "mock"
    return mock


@pytest.fixture(autouse=True)
def _reset_process_engine() -> Iterator[None]:
    """Keep the process-wide engine from leaking between tests."""
    MemoizationEngine.reset_instance()
    yield
    MemoizationEngine.reset_instance()
