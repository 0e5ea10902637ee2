"""Observable settings stores backed by ConfigManager.

NetworkConfigStore owns every per-network NetworkConfig. AppSettings holds
the global inputs shared by all networks (manual stations, custom CSV
address) plus the transient CSV load-error flag. Both publish complete
replacement values and emit Qt signals, so readers on other threads only
ever see consistent values.
"""

import logging
import threading
from dataclasses import replace

from PySide6.QtCore import QObject, Signal

from roomctrl.core.config import ConfigManager
from roomctrl.models.network import NetworkConfig
from roomctrl.models.station import Station

logger = logging.getLogger(__name__)


def _sorted_by_name(stations: list[Station]) -> list[Station]:
    return sorted(stations, key=lambda s: s.name.casefold())


class NetworkConfigStore(QObject):
    """Per-network configuration records with change notification.

    Example:
        store = NetworkConfigStore(ConfigManager())
        store.configs_changed.connect(lambda configs: print(len(configs)))
        store.add(create_network("Home", "http://192.168.1.20:5005"))
    """

    configs_changed = Signal(object)  # tuple[NetworkConfig, ...]

    def __init__(self, config: ConfigManager, parent: QObject | None = None) -> None:
        """Initialize the store and load persisted configs.

        Args:
            config: Persistent settings backend.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._config = config
        self._lock = threading.Lock()
        self._configs: tuple[NetworkConfig, ...] = tuple(config.get_networks())
        logger.info("Loaded %d network config(s)", len(self._configs))

    @property
    def configs(self) -> tuple[NetworkConfig, ...]:
        """Return all network configs."""
        return self._configs

    @property
    def enabled_configs(self) -> list[NetworkConfig]:
        """Return configs that are enabled."""
        return [c for c in self._configs if c.enabled]

    def get(self, network_id: str) -> NetworkConfig | None:
        """Get a config by ID.

        Args:
            network_id: The network ID to look up.

        Returns:
            The NetworkConfig if found, else None.
        """
        for config in self._configs:
            if config.id == network_id:
                return config
        return None

    def find_by_base_url(self, base_url: str) -> NetworkConfig | None:
        """Get the first config with the given base address."""
        wanted = base_url.strip().rstrip("/")
        for config in self._configs:
            if config.api_url == wanted:
                return config
        return None

    def find_by_name(self, name: str) -> NetworkConfig | None:
        """Get a config by display name (case-insensitive)."""
        wanted = name.casefold()
        for config in self._configs:
            if config.display_name.casefold() == wanted:
                return config
        return None

    def add(self, config: NetworkConfig) -> None:
        """Add a network config.

        Args:
            config: NetworkConfig to add.
        """
        with self._lock:
            self._configs = (*self._configs, config)
            self._persist()

    def update(self, config: NetworkConfig) -> bool:
        """Replace the config with the same ID.

        Args:
            config: Updated NetworkConfig.

        Returns:
            True if a config was replaced, False if the ID is unknown.
        """
        with self._lock:
            if self.get(config.id) is None:
                return False
            self._configs = tuple(config if c.id == config.id else c for c in self._configs)
            self._persist()
        return True

    def remove(self, network_id: str) -> bool:
        """Remove a config by ID.

        Args:
            network_id: ID of the config to remove.

        Returns:
            True if a config was removed, False if not found.
        """
        with self._lock:
            remaining = tuple(c for c in self._configs if c.id != network_id)
            if len(remaining) == len(self._configs):
                return False
            self._configs = remaining
            self._persist()
        return True

    def merge_favorites(self, network_id: str, favorites: list[Station]) -> bool:
        """Update a network's cached server favorites.

        Only the cached favorites change; visibility and disable settings
        are left alone. Nothing is written when the name-sorted favorites
        equal the cached ones.

        Args:
            network_id: ID of the network.
            favorites: Favorites just fetched from the server.

        Returns:
            True if the cached favorites changed.
        """
        sorted_favorites = tuple(_sorted_by_name(favorites))
        with self._lock:
            current = self.get(network_id)
            if current is None:
                return False
            if current.last_known_favorites == sorted_favorites:
                return False
            updated = replace(current, last_known_favorites=sorted_favorites)
            self._configs = tuple(updated if c.id == network_id else c for c in self._configs)
            self._persist()
        logger.debug("Updated cached favorites for %s: %d", updated.display_name, len(sorted_favorites))
        return True

    def _persist(self) -> None:
        """Save and notify; called with the lock held."""
        self._config.save_networks(list(self._configs))
        self.configs_changed.emit(self._configs)


class AppSettings(QObject):
    """Global settings shared by every network.

    Passed explicitly to every component that needs it.

    Example:
        settings = AppSettings(ConfigManager())
        settings.remote_csv_url_changed.connect(rebuild)
        settings.set_remote_csv_url("https://example.com/stations.csv")
    """

    manual_stations_changed = Signal(object)  # list[Station]
    remote_csv_url_changed = Signal(str)
    csv_load_error_changed = Signal(bool)
    accordion_changed = Signal(str, bool)

    def __init__(self, config: ConfigManager, parent: QObject | None = None) -> None:
        """Initialize from persisted settings.

        Args:
            config: Persistent settings backend.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._config = config
        self._manual_stations: tuple[Station, ...] = tuple(config.get_manual_stations())
        self._remote_csv_url = config.get_remote_csv_url()
        self._csv_load_error = False

    @property
    def config(self) -> ConfigManager:
        """Return the persistent settings backend."""
        return self._config

    @property
    def manual_stations(self) -> list[Station]:
        """Return the manually entered stations."""
        return list(self._manual_stations)

    @property
    def remote_csv_url(self) -> str:
        """Return the custom CSV address, or empty string if unset."""
        return self._remote_csv_url

    @property
    def csv_load_error(self) -> bool:
        """Return True if the custom CSV produced no stations (not persisted)."""
        return self._csv_load_error

    def set_manual_stations(self, stations: list[Station]) -> None:
        """Replace the manually entered stations.

        Args:
            stations: New station list.
        """
        new_stations = tuple(stations)
        if new_stations == self._manual_stations:
            return
        self._manual_stations = new_stations
        self._config.set_manual_stations(list(new_stations))
        self.manual_stations_changed.emit(list(new_stations))

    def add_manual_station(self, station: Station) -> None:
        """Append a manually entered station (replacing one with the same URL)."""
        stations = [s for s in self._manual_stations if s.url != station.url]
        stations.append(station)
        self.set_manual_stations(stations)

    def remove_manual_station(self, url: str) -> bool:
        """Remove a manually entered station by URL.

        Returns:
            True if a station was removed.
        """
        stations = [s for s in self._manual_stations if s.url != url]
        if len(stations) == len(self._manual_stations):
            return False
        self.set_manual_stations(stations)
        return True

    def set_remote_csv_url(self, url: str) -> None:
        """Set the custom CSV address.

        Args:
            url: CSV address, or empty string to unset.
        """
        url = url.strip()
        if url == self._remote_csv_url:
            return
        self._remote_csv_url = url
        self._config.set_remote_csv_url(url)
        self.remote_csv_url_changed.emit(url)

    def set_csv_load_error(self, failed: bool) -> None:
        """Set the transient CSV load-error flag.

        Args:
            failed: True if the custom CSV yielded no stations.
        """
        if failed == self._csv_load_error:
            return
        self._csv_load_error = failed
        if failed:
            logger.warning("Custom station CSV %s produced no stations", self._remote_csv_url)
        self.csv_load_error_changed.emit(failed)

    def accordion_state(self, room: str) -> bool:
        """Return the persisted expansion flag for a room (default False)."""
        return bool(self._config.get_accordion_state(room))

    def set_accordion_state(self, room: str, expanded: bool) -> None:
        """Persist the expansion flag for a room.

        Args:
            room: Room name.
            expanded: Whether the room's panel is expanded.
        """
        self._config.set_accordion_state(room, expanded)
        self.accordion_changed.emit(room, expanded)
