"""Common fixtures for services tests."""

import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest

from packwatch.config import NetworkConfig
from packwatch.services.fetcher import HttpFetcher


@pytest.fixture
def mock_session():
    """Create a mock aiohttp session."""
    return AsyncMock(spec=aiohttp.ClientSession)


@pytest.fixture
def sleep_calls(monkeypatch) -> list[float]:
    """Replace asyncio.sleep with an instant, recording version."""
    calls: list[float] = []

    async def instant_sleep(seconds):
        calls.append(seconds)

    monkeypatch.setattr(asyncio, "sleep", instant_sleep)
    return calls


@pytest.fixture
def network_config() -> NetworkConfig:
    return NetworkConfig(
        retry_attempts=3,
        retry_delay_seconds=1,
        connect_timeout_seconds=5,
        max_time_seconds=30,
    )


@pytest.fixture
def fetcher(mock_session, tmp_path, network_config) -> HttpFetcher:
    """Create an HttpFetcher writing side-files to tmp_path/cache."""
    return HttpFetcher(mock_session, tmp_path / "cache", network_config)
