"""Tests for NetworkWorker."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pytestqt.qtbot import QtBot

from roomctrl.core.controller import ConnectionState
from roomctrl.core.lifecycle import AppLifecycle
from roomctrl.core.settings import AppSettings, NetworkConfigStore
from roomctrl.core.worker import NetworkWorker
from roomctrl.models.network import NetworkConfig
from roomctrl.models.snapshot import RoomSnapshot
from roomctrl.models.station import Station


@pytest.fixture
def worker(configs: NetworkConfigStore, settings: AppSettings) -> NetworkWorker:
    """Return a worker for an unreachable network."""
    configs.add(NetworkConfig("n1", "Home", ""))
    return NetworkWorker("n1", configs, settings)


class TestWorkerInit:
    """Test worker construction."""

    def test_initial_state(self, worker: NetworkWorker) -> None:
        """Test a new worker has no controller yet."""
        assert worker.network_id == "n1"
        assert worker.controller is None
        assert worker._should_run is True

    def test_stop_before_start(self, worker: NetworkWorker) -> None:
        """Test stop before run marks the worker as stopped."""
        worker.stop()
        assert worker._should_run is False

    def test_controller_uses_configured_timings(
        self, configs: NetworkConfigStore, settings: AppSettings
    ) -> None:
        """Test controller timings come from the config manager."""
        settings.config.set_poll_interval(30)
        settings.config.set_debounce_ms(250)
        worker = NetworkWorker("n1", configs, settings)

        controller = worker._build_controller()

        assert controller.network_id == "n1"
        assert controller._poll_interval == 30.0
        assert controller._debounce_delay == 0.25


class TestWorkerMethodsWithoutLoop:
    """Test thread-safe entry points before the loop runs."""

    def test_request_refresh_no_loop(self, worker: NetworkWorker) -> None:
        """Test request_refresh is safe without loop."""
        worker.request_refresh()  # Should not crash

    def test_rebuild_catalog_no_loop(self, worker: NetworkWorker) -> None:
        """Test rebuild_catalog is safe without loop."""
        worker.rebuild_catalog()  # Should not crash

    def test_lifecycle_no_loop(self, worker: NetworkWorker) -> None:
        """Test lifecycle transitions are safe without loop."""
        worker.enter_background()
        worker.enter_foreground()


class TestWorkerSignals:
    """Test controller callbacks are bridged to signals."""

    def test_emit_snapshot(self, worker: NetworkWorker) -> None:
        """Test snapshots are emitted as-is."""
        received: list[RoomSnapshot] = []
        worker.snapshot_ready.connect(received.append)
        snapshot = RoomSnapshot(volume={"Kitchen": 10})

        worker._emit_snapshot(snapshot)

        assert received == [snapshot]

    def test_emit_catalog(self, worker: NetworkWorker) -> None:
        """Test catalogs are emitted as-is."""
        received: list[list[Station]] = []
        worker.catalog_ready.connect(received.append)

        worker._emit_catalog([Station("KEXP", "http://kexp")])

        assert received == [[Station("KEXP", "http://kexp")]]

    def test_emit_state(self, worker: NetworkWorker) -> None:
        """Test states are emitted as their string value."""
        received: list[str] = []
        worker.state_changed.connect(received.append)

        worker._emit_state(ConnectionState.BACKOFF)

        assert received == ["backoff"]


class TestWorkerAsyncMethods:
    """Test async helpers with a mocked controller."""

    @pytest.mark.asyncio
    async def test_safe_refresh_no_controller(self, worker: NetworkWorker) -> None:
        """Test _safe_refresh returns early without controller."""
        await worker._safe_refresh()  # Should not crash

    @pytest.mark.asyncio
    async def test_safe_refresh_error_emits(self, worker: NetworkWorker) -> None:
        """Test unexpected refresh errors are reported via signal."""
        error = RuntimeError("boom")
        worker._controller = MagicMock()
        worker._controller.refresh = AsyncMock(side_effect=error)
        errors: list[Exception] = []
        worker.error_occurred.connect(errors.append)

        await worker._safe_refresh()

        assert errors == [error]

    @pytest.mark.asyncio
    async def test_safe_rebuild_calls_controller(self, worker: NetworkWorker) -> None:
        """Test _safe_rebuild_catalog delegates to the controller."""
        worker._controller = MagicMock()
        worker._controller.rebuild_catalog = AsyncMock(return_value=[])

        await worker._safe_rebuild_catalog()

        worker._controller.rebuild_catalog.assert_awaited_once()


class TestWorkerThread:
    """Test the worker thread lifecycle."""

    def test_run_and_stop(self, qtbot: QtBot, worker: NetworkWorker) -> None:
        """Test the worker starts a controller and stops cleanly."""
        worker.start()
        qtbot.waitUntil(lambda: worker.controller is not None, timeout=5000)

        worker.request_refresh()
        worker.stop()

        assert worker.wait(5000)
        assert worker.controller is None

    def test_lifecycle_registered(
        self, qtbot: QtBot, configs: NetworkConfigStore, settings: AppSettings
    ) -> None:
        """Test the controller subscribes to the lifecycle once started."""
        configs.add(NetworkConfig("n1", "Home", ""))
        lifecycle = AppLifecycle()
        worker = NetworkWorker("n1", configs, settings, lifecycle)
        worker.start()
        qtbot.waitUntil(lambda: worker.controller is not None, timeout=5000)
        qtbot.waitUntil(lambda: worker.controller is not None and worker.controller._lifecycle_registered)

        lifecycle.set_foreground(False)
        lifecycle.set_foreground(True)
        worker.stop()

        assert worker.wait(5000)
