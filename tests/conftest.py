"""Pytest configuration and shared fixtures for Stage Cache.

Ensures the project root and src/ are importable and provides the loggers,
fakes and services most tests need.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

PROJECT_ROOT = Path(__file__).resolve().parents[1]
for path in (PROJECT_ROOT, PROJECT_ROOT / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from services.cache.cache_store import CacheStore  # noqa: E402
from services.cache.handle_registry import HandleRegistry  # noqa: E402
from tests.factories import create_caching_config  # noqa: E402
from tests.mocks.protocol_mocks import InMemoryPositionStore, MockContentService  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from core.models.app_config import CachingConfig


@pytest.fixture
def mock_console_logger() -> MagicMock:
    """Mock console logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def mock_error_logger() -> MagicMock:
    """Mock error logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def caching_config(tmp_path: Path) -> CachingConfig:
    """Caching configuration under a temporary directory."""
    return create_caching_config(tmp_path)


@pytest.fixture
def content_service() -> MockContentService:
    """Fake content service with no files."""
    return MockContentService()


@pytest.fixture
def position_store() -> InMemoryPositionStore:
    """Empty in-memory position store."""
    return InMemoryPositionStore()


@pytest_asyncio.fixture
async def cache_store(caching_config: CachingConfig) -> AsyncIterator[CacheStore]:
    """Initialized cache store, closed after the test."""
    store = CacheStore(caching_config, logging.getLogger("test.cache_store"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def handle_registry(tmp_path: Path) -> HandleRegistry:
    """Handle registry writing into a temporary directory."""
    return HandleRegistry(tmp_path / "handles", logging.getLogger("test.handles"))
