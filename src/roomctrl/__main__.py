"""Main entry point for the RoomCTRL command line tool."""

import argparse
import logging
import signal
import sys
from collections.abc import Sequence

from PySide6.QtCore import QCoreApplication, QTimer

from roomctrl.core.config import ConfigManager
from roomctrl.core.lifecycle import AppLifecycle
from roomctrl.core.settings import AppSettings, NetworkConfigStore
from roomctrl.core.state import ViewModelStore
from roomctrl.core.worker import NetworkWorker
from roomctrl.models.network import NetworkConfig, create_network
from roomctrl.models.snapshot import RoomSnapshot

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Lets the Python interpreter run signal handlers while Qt's loop is idle
_SIGNAL_POLL_MS = 250


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="roomctrl",
        description="RoomCTRL - multi-room audio station and live state engine",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="list configured networks")

    add = commands.add_parser("add", help="add a network")
    add.add_argument("name", help="display name")
    add.add_argument("url", help="control API base address, e.g. http://192.168.1.20:5005")

    remove = commands.add_parser("remove", help="remove a network by name")
    remove.add_argument("name", help="display name")

    watch = commands.add_parser("watch", help="follow live state of enabled networks")
    watch.add_argument("names", nargs="*", help="networks to follow (default: all enabled)")
    return parser


def _log_snapshot(network: str, store: ViewModelStore, config: NetworkConfig | None) -> None:
    snapshot: RoomSnapshot = store.snapshot
    for group in snapshot.groups:
        rooms = ", ".join(
            f"{room} {snapshot.volume.get(room, 0)}%{' (muted)' if snapshot.muted.get(room) else ''}"
            for room in group.rooms
        )
        logger.info(
            "[%s] %s: %s | %s", network, group.coordinator, rooms, store.station_display(group.coordinator, config)
        )


def _watch(
    app: QCoreApplication,
    configs: NetworkConfigStore,
    settings: AppSettings,
    names: Sequence[str],
) -> int:
    """Run one worker per selected network until interrupted."""
    if names:
        selected: list[NetworkConfig] = []
        for name in names:
            config = configs.find_by_name(name)
            if config is None:
                logger.error("Unknown network: %s", name)
                return 1
            selected.append(config)
    else:
        selected = configs.enabled_configs

    if not selected:
        logger.error("No networks to watch; add one with 'roomctrl add NAME URL'")
        return 1

    lifecycle = AppLifecycle()
    workers: list[NetworkWorker] = []

    for network in selected:
        store = ViewModelStore(network.id, settings)
        worker = NetworkWorker(network.id, configs, settings, lifecycle)

        def on_snapshot(snapshot: object, store: ViewModelStore = store, name: str = network.display_name) -> None:
            if store.publish_snapshot(snapshot):  # type: ignore[arg-type]
                _log_snapshot(name, store, configs.get(store.network_id))

        def on_catalog(catalog: object, store: ViewModelStore = store, name: str = network.display_name) -> None:
            if store.publish_stations(catalog):  # type: ignore[arg-type]
                logger.info("[%s] Catalog: %d station(s)", name, len(store.stations))

        def on_state(state: str, name: str = network.display_name) -> None:
            logger.info("[%s] Event stream %s", name, state)

        worker.snapshot_ready.connect(on_snapshot)
        worker.catalog_ready.connect(on_catalog)
        worker.state_changed.connect(on_state)
        worker.error_occurred.connect(lambda e: logger.error("Worker error: %s", e))  # pyright: ignore[reportUnknownArgumentType,reportUnknownLambdaType]

        # Global settings and config edits rebuild the catalog
        settings.manual_stations_changed.connect(lambda _s, w=worker: w.rebuild_catalog())
        settings.remote_csv_url_changed.connect(lambda _u, w=worker: w.rebuild_catalog())
        configs.configs_changed.connect(lambda _c, w=worker: w.rebuild_catalog())

        workers.append(worker)

    settings.csv_load_error_changed.connect(
        lambda failed: logger.warning("Custom station list failed to load") if failed else None  # pyright: ignore[reportUnknownLambdaType]
    )

    signal.signal(signal.SIGINT, lambda *_: app.quit())
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, lambda *_: lifecycle.set_foreground(False))
        signal.signal(signal.SIGUSR2, lambda *_: lifecycle.set_foreground(True))

    signal_timer = QTimer()
    signal_timer.timeout.connect(lambda: None)
    signal_timer.start(_SIGNAL_POLL_MS)

    for worker in workers:
        worker.start()
    logger.info("Watching %d network(s); Ctrl+C to quit", len(workers))

    exit_code = app.exec()

    # Cleanup
    signal_timer.stop()
    for worker in workers:
        worker.stop()
    for worker in workers:
        worker.wait()
    return exit_code


def main(argv: Sequence[str] | None = None) -> int:
    """Run the RoomCTRL command line tool.

    Returns:
        Exit code (0 for success).
    """
    parsed = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if parsed.verbose else logging.INFO, format=LOG_FORMAT)

    # Set app metadata before creating the application (QSettings location)
    QCoreApplication.setApplicationName("RoomCTRL")
    QCoreApplication.setOrganizationName("RoomCTRL")
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])

    config = ConfigManager()
    configs = NetworkConfigStore(config)
    settings = AppSettings(config)

    if parsed.command == "list":
        for network in configs.configs:
            state = "enabled" if network.enabled else "disabled"
            print(f"{network.display_name}\t{network.api_url}\t{state}")
        return 0

    if parsed.command == "add":
        network = create_network(parsed.name, parsed.url)
        if not network.has_base_url:
            logger.error("Base address must start with http:// or https://: %s", parsed.url)
            return 1
        if configs.find_by_name(parsed.name) is not None:
            logger.error("A network named %s already exists", parsed.name)
            return 1
        configs.add(network)
        config.sync()
        logger.info("Added network %s (%s)", network.display_name, network.api_url)
        return 0

    if parsed.command == "remove":
        existing = configs.find_by_name(parsed.name)
        if existing is None or not configs.remove(existing.id):
            logger.error("Unknown network: %s", parsed.name)
            return 1
        config.sync()
        logger.info("Removed network %s", existing.display_name)
        return 0

    return _watch(app, configs, settings, parsed.names)  # type: ignore[arg-type]


if __name__ == "__main__":
    sys.exit(main())
