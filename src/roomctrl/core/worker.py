"""QThread worker running one network's LiveUpdateController.

Qt objects live in the main thread, but the controller is asyncio code.
This worker runs an asyncio event loop in a background thread, owns the
controller inside it and bridges results to the main thread via Qt signals.
"""

import asyncio
import logging

from PySide6.QtCore import QThread, Signal

from roomctrl.api.client import HttpApiClient
from roomctrl.api.stations import RemoteStationFetcher
from roomctrl.core.aggregator import StationAggregator
from roomctrl.core.config import ConfigManager
from roomctrl.core.controller import ConnectionState, LiveUpdateController
from roomctrl.core.lifecycle import AppLifecycle
from roomctrl.core.settings import AppSettings, NetworkConfigStore
from roomctrl.models.snapshot import RoomSnapshot
from roomctrl.models.station import Station

logger = logging.getLogger(__name__)


class NetworkWorker(QThread):
    """Background thread worker for one network.

    Example:
        worker = NetworkWorker(network_id, configs, settings, lifecycle)
        worker.snapshot_ready.connect(store.publish_snapshot)
        worker.catalog_ready.connect(store.publish_stations)
        worker.start()
    """

    # Data signals
    snapshot_ready = Signal(object)  # RoomSnapshot
    catalog_ready = Signal(object)  # list[Station]

    # Connection state signal
    state_changed = Signal(str)  # ConnectionState value

    # Error signal
    error_occurred = Signal(object)  # Exception

    def __init__(
        self,
        network_id: str,
        configs: NetworkConfigStore,
        settings: AppSettings,
        lifecycle: AppLifecycle | None = None,
    ) -> None:
        """Initialize the worker.

        Timing values (poll interval, debounce, follow-up delay and read
        timeout) are read from the settings' ConfigManager.

        Args:
            network_id: ID of the network to follow.
            configs: Network config store.
            settings: Global settings.
            lifecycle: Foreground/background source.
        """
        super().__init__()
        self._network_id = network_id
        self._configs = configs
        self._settings = settings
        self._lifecycle = lifecycle
        self._loop: asyncio.AbstractEventLoop | None = None
        self._controller: LiveUpdateController | None = None
        self._stop_event: asyncio.Event | None = None
        self._should_run = True

    @property
    def network_id(self) -> str:
        """Return the followed network ID."""
        return self._network_id

    @property
    def controller(self) -> LiveUpdateController | None:
        """Return the controller while the worker runs."""
        return self._controller

    def _build_controller(self) -> LiveUpdateController:
        config: ConfigManager = self._settings.config
        aggregator = StationAggregator(RemoteStationFetcher().fetch)
        return LiveUpdateController(
            self._network_id,
            HttpApiClient,
            self._configs,
            self._settings,
            aggregator,
            on_snapshot=self._emit_snapshot,
            on_catalog=self._emit_catalog,
            on_state_change=self._emit_state,
            poll_interval=float(config.get_poll_interval()),
            debounce_delay=config.get_debounce_ms() / 1000.0,
            followup_delay=float(config.get_followup_delay()),
            read_timeout=float(config.get_read_timeout()),
            lifecycle=self._lifecycle,
        )

    def _emit_snapshot(self, snapshot: RoomSnapshot) -> None:
        self.snapshot_ready.emit(snapshot)

    def _emit_catalog(self, catalog: list[Station]) -> None:
        self.catalog_ready.emit(catalog)

    def _emit_state(self, state: ConnectionState) -> None:
        self.state_changed.emit(state.value)

    def _call_in_loop(self, method_name: str) -> None:
        """Invoke a controller method on the worker loop (thread-safe)."""
        if self._loop and self._loop.is_running() and self._controller:
            self._loop.call_soon_threadsafe(getattr(self._controller, method_name))

    def request_refresh(self) -> None:
        """Request an immediate refresh.

        Thread-safe call from main thread.
        """
        if self._loop and self._loop.is_running() and self._controller:
            asyncio.run_coroutine_threadsafe(self._safe_refresh(), self._loop)

    def rebuild_catalog(self) -> None:
        """Request a catalog rebuild (e.g. after a settings change).

        Thread-safe call from main thread.
        """
        if self._loop and self._loop.is_running() and self._controller:
            asyncio.run_coroutine_threadsafe(self._safe_rebuild_catalog(), self._loop)

    def enter_foreground(self) -> None:
        """Thread-safe call from main thread."""
        self._call_in_loop("enter_foreground")

    def enter_background(self) -> None:
        """Thread-safe call from main thread."""
        self._call_in_loop("enter_background")

    def stop(self) -> None:
        """Signal the worker to stop (called from main thread)."""
        self._should_run = False
        if self._loop and self._loop.is_running() and self._stop_event:
            self._loop.call_soon_threadsafe(self._stop_event.set)

    async def _safe_refresh(self) -> None:
        if not self._controller:
            return
        try:
            await self._controller.refresh()
        except Exception as e:
            self.error_occurred.emit(e)

    async def _safe_rebuild_catalog(self) -> None:
        if not self._controller:
            return
        try:
            await self._controller.rebuild_catalog()
        except Exception as e:
            self.error_occurred.emit(e)

    def run(self) -> None:
        """Run the worker thread (entry point)."""
        # Create new event loop for this thread
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        try:
            self._loop.run_until_complete(self._main())
        except Exception as e:
            self.error_occurred.emit(e)
        finally:
            self._loop.close()
            self._loop = None
            self._controller = None

    async def _main(self) -> None:
        """Run the controller until stop() is called."""
        self._stop_event = asyncio.Event()
        if not self._should_run:
            return
        self._controller = self._build_controller()
        self._controller.start()
        logger.info("Worker started for network %s", self._network_id)
        try:
            await self._stop_event.wait()
        finally:
            await self._controller.stop()
            logger.info("Worker stopped for network %s", self._network_id)
