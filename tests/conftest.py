"""Test fixtures for roomctrl tests."""

import os
from collections.abc import Generator

import pytest

from roomctrl.core.config import ConfigManager
from roomctrl.core.settings import AppSettings, NetworkConfigStore

# Headless test runs
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture
def config() -> Generator[ConfigManager, None, None]:
    """Return a fresh ConfigManager for each test."""
    # Use unique organization/app to avoid test interference
    config = ConfigManager("RoomCTRLTest", "TestConfig")
    config.clear()
    yield config
    config.clear()


@pytest.fixture
def configs(config: ConfigManager) -> NetworkConfigStore:
    """Return an empty network config store."""
    return NetworkConfigStore(config)


@pytest.fixture
def settings(config: ConfigManager) -> AppSettings:
    """Return global settings with nothing configured."""
    return AppSettings(config)
