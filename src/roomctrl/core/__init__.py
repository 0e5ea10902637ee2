"""Core business logic layer.

This module contains the station aggregation, topology normalization and
live update logic that bridges the async API clients with the Qt layer.

Classes:
    ViewModelStore: Per-network view state with Qt signals.
    NetworkWorker: QThread worker running one network's controller.
    LiveUpdateController: Event stream, debounced refresh and poll fallback.
    StationAggregator: Builds deduplicated station catalogs.
    ConfigManager: QSettings wrapper for configuration.
"""

from roomctrl.core.aggregator import StationAggregator
from roomctrl.core.config import ConfigManager
from roomctrl.core.controller import ConnectionState, LiveUpdateController
from roomctrl.core.lifecycle import AppLifecycle
from roomctrl.core.settings import AppSettings, NetworkConfigStore
from roomctrl.core.state import ViewModelStore
from roomctrl.core.worker import NetworkWorker

__all__ = [
    "AppLifecycle",
    "AppSettings",
    "ConfigManager",
    "ConnectionState",
    "LiveUpdateController",
    "NetworkConfigStore",
    "NetworkWorker",
    "StationAggregator",
    "ViewModelStore",
]
