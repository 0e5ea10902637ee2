"""Per-network view model store with Qt signals for reactive UI updates.

The ViewModelStore holds the current RoomSnapshot and station catalog of one
network and emits Qt signals when either changes. Writers always publish
complete replacement values, so a slot reading the store never sees a mix of
old and new maps.
"""

import logging
from dataclasses import replace

from PySide6.QtCore import QObject, Signal

from roomctrl.core.aggregator import filtered_stations
from roomctrl.core.normalizer import match_stations
from roomctrl.core.settings import AppSettings
from roomctrl.models.network import NetworkConfig
from roomctrl.models.snapshot import RoomSnapshot
from roomctrl.models.station import Station, is_line_in_uri, line_in_device_id
from roomctrl.models.zone import Track

logger = logging.getLogger(__name__)

NOTHING_QUEUED = "Nothing queued"
QUEUED_SUFFIX = " (Queued)"
LINE_IN_LABEL = "Line In"
DEFAULT_PAGE_SIZE = 12


class ViewModelStore(QObject):
    """View state of one network: room snapshot plus station catalog.

    Example:
        store = ViewModelStore("home", settings)
        store.snapshot_changed.connect(lambda snap: print(snap.rooms))
        store.publish_snapshot(snapshot)
    """

    # Note: Using object for complex types (PySide6 limitation)
    snapshot_changed = Signal(object)  # RoomSnapshot
    stations_changed = Signal(object)  # list[Station]
    accordion_changed = Signal(str, bool)

    def __init__(
        self,
        network_id: str,
        settings: AppSettings | None = None,
        parent: QObject | None = None,
    ) -> None:
        """Initialize with an empty snapshot and catalog.

        Args:
            network_id: ID of the network this store belongs to.
            settings: Global settings used to persist accordion state.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._network_id = network_id
        self._settings = settings
        self._snapshot = RoomSnapshot()
        self._stations: tuple[Station, ...] = ()

    @property
    def network_id(self) -> str:
        """Return the network ID."""
        return self._network_id

    @property
    def snapshot(self) -> RoomSnapshot:
        """Return the current snapshot."""
        return self._snapshot

    @property
    def stations(self) -> list[Station]:
        """Return the current catalog."""
        return list(self._stations)

    @property
    def rooms(self) -> list[str]:
        """Return every room name in group order."""
        return self._snapshot.rooms

    # -- Publishing ------------------------------------------------------------

    def publish_snapshot(self, snapshot: RoomSnapshot) -> bool:
        """Replace the snapshot.

        Args:
            snapshot: Complete new snapshot.

        Returns:
            True if the snapshot differed and ``snapshot_changed`` was emitted.
        """
        if snapshot == self._snapshot:
            return False
        self._snapshot = snapshot
        self.snapshot_changed.emit(snapshot)
        return True

    def publish_stations(self, stations: list[Station]) -> bool:
        """Replace the catalog and re-resolve selected stations.

        Args:
            stations: Complete new catalog.

        Returns:
            True if the catalog differed and ``stations_changed`` was emitted.
        """
        new_stations = tuple(stations)
        if new_stations == self._stations:
            return False
        self._stations = new_stations
        self.stations_changed.emit(list(new_stations))

        selected = match_stations(self._snapshot.tracks, new_stations)
        if selected != self._snapshot.selected_stations:
            self.publish_snapshot(replace(self._snapshot, selected_stations=selected))
        return True

    def filtered_stations(self, config: NetworkConfig) -> list[Station]:
        """Return the catalog entries visible on the network."""
        return filtered_stations(self._stations, config)

    def paged_stations(
        self,
        size: int = DEFAULT_PAGE_SIZE,
        config: NetworkConfig | None = None,
    ) -> list[list[Station]]:
        """Split the catalog into pages for a pager view.

        Args:
            size: Stations per page.
            config: If given, page the filtered catalog instead.

        Returns:
            List of pages; empty if the catalog is empty.
        """
        if size < 1:
            raise ValueError(f"Page size must be positive, got {size}")
        stations = self.filtered_stations(config) if config is not None else list(self._stations)
        return [stations[i : i + size] for i in range(0, len(stations), size)]

    # -- Room helpers ----------------------------------------------------------

    def matched_station(self, room: str) -> Station | None:
        """Return the catalog station matching the room's current track, if any.

        Always matched live against the catalog, so a user pick made with
        ``select_station`` never shows up here.
        """
        track = self._snapshot.tracks.get(room)
        if track is None:
            return None
        return match_stations({room: track}, self._stations).get(room)

    def current_track(self, room: str) -> Track | None:
        """Return a title-only track for a known room.

        Returns:
            Track carrying the room's display title, or None if the room is
            not part of the snapshot.
        """
        if not self._snapshot.has_room(room):
            return None
        return Track(title=self._snapshot.track_titles.get(room, ""))

    def select_station(self, station: Station, room: str) -> None:
        """Mark a station as selected for a room until the next refresh.

        Args:
            station: Station the user picked.
            room: Room name.
        """
        selected = dict(self._snapshot.selected_stations)
        selected[room] = station
        self.publish_snapshot(replace(self._snapshot, selected_stations=selected))

    def station_display(self, room: str, config: NetworkConfig | None = None) -> str:
        """Return the "what's on" text for a room.

        Anything not currently playing carries a ``(Queued)`` suffix.

        Args:
            room: Room name.
            config: Network config, used for custom line-in names.
        """
        snapshot = self._snapshot
        suffix = "" if snapshot.is_playing(room) else QUEUED_SUFFIX
        track = snapshot.tracks.get(room)

        if track is None:
            selected = snapshot.selected_stations.get(room)
            return f"{selected.name}{QUEUED_SUFFIX}" if selected else NOTHING_QUEUED
        matched = self.matched_station(room)
        if matched is not None:
            return f"{matched.name}{suffix}"

        uri = track.playing_uri
        if is_line_in_uri(uri):
            device_id = line_in_device_id(uri)
            custom = config.line_in_name(device_id) if config is not None else ""
            if custom:
                return f"{custom}{suffix}"
            source_room = snapshot.room_by_device.get(device_id)
            label = f"{LINE_IN_LABEL} ({source_room})" if source_room else LINE_IN_LABEL
            return f"{label}{suffix}"

        for text in (track.station_name, track.artist, track.title):
            if text:
                return f"{text}{suffix}"
        return NOTHING_QUEUED

    # -- Accordion state -------------------------------------------------------

    def is_accordion_expanded(self, room: str) -> bool:
        """Return True if the room's panel should be expanded.

        Playing rooms are always expanded; otherwise the persisted flag wins.
        """
        if self._snapshot.is_playing(room):
            return True
        if room in self._snapshot.accordion:
            return self._snapshot.accordion[room]
        return self._settings.accordion_state(room) if self._settings is not None else False

    def set_accordion_state(self, room: str, expanded: bool) -> None:
        """Persist and publish a room's expansion flag.

        Args:
            room: Room name.
            expanded: Whether the panel is expanded.
        """
        if self._settings is not None:
            self._settings.set_accordion_state(room, expanded)
        accordion = dict(self._snapshot.accordion)
        accordion[room] = expanded
        self._snapshot = replace(self._snapshot, accordion=accordion)
        self.accordion_changed.emit(room, expanded)
