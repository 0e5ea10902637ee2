"""Configuration manager using QSettings for persistent storage."""

import json
import logging
import threading
from typing import Any, cast

from PySide6.QtCore import QSettings

from roomctrl.models.network import NetworkConfig
from roomctrl.models.station import Station

logger = logging.getLogger(__name__)

# Settings keys
_KEY_NETWORKS = "networks"

# Stations
_KEY_MANUAL_STATIONS = "stations/manual"
_KEY_REMOTE_CSV_URL = "stations/remote_csv_url"

# Accordion expansion (one key per room)
_GROUP_ACCORDION = "accordion"

# Live updates
_KEY_POLL_INTERVAL = "live/poll_interval"
_KEY_DEBOUNCE_MS = "live/debounce_ms"
_KEY_FOLLOWUP_DELAY = "live/followup_delay"
_KEY_READ_TIMEOUT = "live/read_timeout"


def _load_json_list(raw: object, key: str) -> list[dict[str, Any]]:
    """Decode a JSON list of objects stored as text.

    Returns an empty list (and logs) if the value is missing or corrupt.
    """
    if not raw:
        return []
    try:
        data = json.loads(str(raw))
    except json.JSONDecodeError as e:
        logger.warning("Discarding undecodable settings value %s: %s", key, e)
        return []
    if not isinstance(data, list):
        logger.warning("Discarding settings value %s: expected a list", key)
        return []
    return [cast(dict[str, Any], item) for item in cast(list[object], data) if isinstance(item, dict)]


class ConfigManager:
    """Wrapper around QSettings for type-safe config access.

    QSettings stores config in platform-specific locations:
    - Windows: HKEY_CURRENT_USER\\Software\\RoomCTRL\\RoomCTRL
    - macOS: ~/Library/Preferences/com.RoomCTRL.RoomCTRL.plist
    - Linux: ~/.config/RoomCTRL/RoomCTRL.conf

    Structured values (network configs, manual stations) are stored as JSON
    text so they round-trip identically on every backend.

    One instance is shared by the main thread and every network worker, so
    all QSettings access goes through a single lock.

    Example:
        config = ConfigManager()
        networks = config.get_networks()
        config.save_networks(networks)
    """

    def __init__(self, organization: str = "RoomCTRL", application: str = "RoomCTRL") -> None:
        """Initialize the config manager.

        Args:
            organization: Organization name for QSettings.
            application: Application name for QSettings.
        """
        self._settings = QSettings(organization, application)
        self._lock = threading.Lock()

    @property
    def settings(self) -> QSettings:
        """Return the underlying QSettings instance (access is not locked)."""
        return self._settings

    def _value(self, key: str, default: object, value_type: type | None = None) -> object:
        with self._lock:
            if value_type is None:
                return self._settings.value(key, default)
            return self._settings.value(key, default, value_type)

    def _set_value(self, key: str, value: object) -> None:
        with self._lock:
            self._settings.setValue(key, value)

    def _contains(self, key: str) -> bool:
        with self._lock:
            return self._settings.contains(key)

    # -- Networks --------------------------------------------------------------

    def get_networks(self) -> list[NetworkConfig]:
        """Load saved network configs.

        Entries missing a required field are skipped; missing optional
        fields fall back to their defaults.

        Returns:
            List of NetworkConfig objects, or empty list if none saved.
        """
        networks: list[NetworkConfig] = []
        for item in _load_json_list(self._value(_KEY_NETWORKS, ""), _KEY_NETWORKS):
            try:
                networks.append(NetworkConfig.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid network config entry: %s", e)
        return networks

    def save_networks(self, networks: list[NetworkConfig]) -> None:
        """Persist network configs.

        Args:
            networks: List of NetworkConfig objects to save.
        """
        self._set_value(_KEY_NETWORKS, json.dumps([n.to_dict() for n in networks]))

    # -- Stations --------------------------------------------------------------

    def get_manual_stations(self) -> list[Station]:
        """Return the manually entered stations."""
        raw = self._value(_KEY_MANUAL_STATIONS, "")
        return [Station.from_dict(item) for item in _load_json_list(raw, _KEY_MANUAL_STATIONS)]

    def set_manual_stations(self, stations: list[Station]) -> None:
        """Persist the manually entered stations.

        Args:
            stations: Stations in display order.
        """
        self._set_value(_KEY_MANUAL_STATIONS, json.dumps([s.to_dict() for s in stations]))

    def get_remote_csv_url(self) -> str:
        """Return the custom station CSV address.

        Returns:
            URL string, or empty string if unset.
        """
        value = self._value(_KEY_REMOTE_CSV_URL, "", str)
        return str(value) if value else ""

    def set_remote_csv_url(self, url: str) -> None:
        """Set the custom station CSV address.

        Args:
            url: CSV address, or empty string to unset.
        """
        self._set_value(_KEY_REMOTE_CSV_URL, url)

    # -- Accordion state -------------------------------------------------------

    def get_accordion_state(self, room: str) -> bool | None:
        """Return the persisted expansion flag for a room.

        Returns:
            The saved flag, or None if never saved.
        """
        key = f"{_GROUP_ACCORDION}/{room}"
        if not self._contains(key):
            return None
        return bool(self._value(key, False, bool))

    def set_accordion_state(self, room: str, expanded: bool) -> None:
        """Persist the expansion flag for a room.

        Args:
            room: Room name.
            expanded: Whether the room's panel is expanded.
        """
        self._set_value(f"{_GROUP_ACCORDION}/{room}", expanded)

    # -- Live update settings --------------------------------------------------

    def get_poll_interval(self) -> int:
        """Return the fallback poll interval in seconds.

        Returns:
            Interval in seconds (default 60).
        """
        value = self._value(_KEY_POLL_INTERVAL, 60, int)
        return max(10, min(600, int(value)))  # type: ignore[arg-type]

    def set_poll_interval(self, seconds: int) -> None:
        """Set the fallback poll interval.

        Args:
            seconds: Interval in seconds (10-600).
        """
        self._set_value(_KEY_POLL_INTERVAL, max(10, min(600, seconds)))

    def get_debounce_ms(self) -> int:
        """Return the quiet period before an event-triggered refresh.

        Returns:
            Delay in milliseconds (default 500).
        """
        value = self._value(_KEY_DEBOUNCE_MS, 500, int)
        return max(50, min(5000, int(value)))  # type: ignore[arg-type]

    def set_debounce_ms(self, ms: int) -> None:
        """Set the quiet period before an event-triggered refresh.

        Args:
            ms: Delay in milliseconds (50-5000).
        """
        self._set_value(_KEY_DEBOUNCE_MS, max(50, min(5000, ms)))

    def get_followup_delay(self) -> int:
        """Return the delay before the follow-up refresh in seconds.

        Returns:
            Delay in seconds (default 2).
        """
        value = self._value(_KEY_FOLLOWUP_DELAY, 2, int)
        return max(0, min(30, int(value)))  # type: ignore[arg-type]

    def set_followup_delay(self, seconds: int) -> None:
        """Set the delay before the follow-up refresh.

        Args:
            seconds: Delay in seconds (0-30).
        """
        self._set_value(_KEY_FOLLOWUP_DELAY, max(0, min(30, seconds)))

    def get_read_timeout(self) -> int:
        """Return the event stream read timeout in seconds.

        Returns:
            Timeout in seconds (default 300).
        """
        value = self._value(_KEY_READ_TIMEOUT, 300, int)
        return max(30, min(3600, int(value)))  # type: ignore[arg-type]

    def set_read_timeout(self, seconds: int) -> None:
        """Set the event stream read timeout.

        Args:
            seconds: Timeout in seconds (30-3600).
        """
        self._set_value(_KEY_READ_TIMEOUT, max(30, min(3600, seconds)))

    # -- General settings ------------------------------------------------------

    def clear(self) -> None:
        """Clear all settings (useful for testing or reset)."""
        with self._lock:
            self._settings.clear()

    def sync(self) -> None:
        """Force settings to be written to disk."""
        with self._lock:
            self._settings.sync()
