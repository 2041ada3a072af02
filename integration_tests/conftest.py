"""Fixtures for integration tests that reach real endpoints (and proxies)."""

import os

import pytest

from finnet.config import FinnetConfig, load_config
from finnet.registry import ClientRegistry, build_registry


@pytest.fixture(scope="session")
def live_config() -> FinnetConfig:
    if os.environ.get("FINNET_INTEGRATION") != "1":
        pytest.skip("Set FINNET_INTEGRATION=1 to run tests against live endpoints.")
    return load_config()


@pytest.fixture(scope="session")
def live_registry(live_config: FinnetConfig):
    registry: ClientRegistry = build_registry(live_config)
    yield registry
    registry.close()
