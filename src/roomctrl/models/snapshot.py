"""RoomSnapshot model: the complete view state of one network."""

from dataclasses import dataclass, field

from roomctrl.models.station import Station
from roomctrl.models.zone import PLAYING, Track


@dataclass(frozen=True, slots=True)
class RoomGroup:
    """A group of rooms playing together.

    Attributes:
        coordinator: Room name of the coordinator.
        joiners: Other room names, sorted case-insensitively.
    """

    coordinator: str
    joiners: list[str] = field(default_factory=list)

    @property
    def rooms(self) -> list[str]:
        """Return coordinator followed by joiners."""
        return [self.coordinator, *self.joiners]

    @property
    def is_grouped(self) -> bool:
        """Return True if the group has more than one room."""
        return bool(self.joiners)


@dataclass(frozen=True, slots=True)
class RoomSnapshot:
    """Complete view state for one network at a point in time.

    Every map is keyed by room name. A snapshot is never modified after it
    is built; refreshes publish a new one.

    Attributes:
        groups: Groups sorted by coordinator name.
        volume: Volume per room.
        muted: Mute flag per room.
        playback_state: Transport state per room.
        hosts: Device address per room.
        track_titles: Current track display title per room.
        tracks: Full current track per room.
        volume_disabled: Whether volume control is disabled per room.
        room_by_device: Device identifier to room name.
        selected_stations: Catalog station matching each room's track.
        accordion: Persisted expansion flag per group coordinator.
    """

    groups: list[RoomGroup] = field(default_factory=list)
    volume: dict[str, int] = field(default_factory=dict)
    muted: dict[str, bool] = field(default_factory=dict)
    playback_state: dict[str, str] = field(default_factory=dict)
    hosts: dict[str, str] = field(default_factory=dict)
    track_titles: dict[str, str] = field(default_factory=dict)
    tracks: dict[str, Track] = field(default_factory=dict)
    volume_disabled: dict[str, bool] = field(default_factory=dict)
    room_by_device: dict[str, str] = field(default_factory=dict)
    selected_stations: dict[str, Station] = field(default_factory=dict)
    accordion: dict[str, bool] = field(default_factory=dict)

    @property
    def rooms(self) -> list[str]:
        """Return every room name in group order."""
        return [room for group in self.groups for room in group.rooms]

    @property
    def room_count(self) -> int:
        """Return number of rooms."""
        return len(self.rooms)

    def has_room(self, room: str) -> bool:
        """Return True if the room belongs to any group."""
        return any(room in group.rooms for group in self.groups)

    def group_for_room(self, room: str) -> RoomGroup | None:
        """Return the group containing the room, or None."""
        for group in self.groups:
            if room in group.rooms:
                return group
        return None

    def is_playing(self, room: str) -> bool:
        """Return True if the room's transport is playing."""
        return self.playback_state.get(room) == PLAYING
