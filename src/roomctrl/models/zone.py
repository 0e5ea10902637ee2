"""Zone topology models: zones, members, player state and tracks.

These are transient snapshots of the control API's ``/zones`` payload,
rebuilt in full on every refresh.
"""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

PLAYING = "PLAYING"


@dataclass(frozen=True, slots=True)
class Track:
    """Currently loaded track on a player.

    Every field is optional; the API omits what the source does not provide.
    """

    title: str | None = None
    artist: str | None = None
    station_name: str | None = None
    uri: str | None = None
    track_uri: str | None = None
    type: str | None = None
    album_art_uri: str | None = None
    absolute_album_art_uri: str | None = None

    @property
    def display_title(self) -> str:
        """Return the first non-empty of title and station name."""
        return self.title or self.station_name or ""

    @property
    def playing_uri(self) -> str:
        """Return the track URI, falling back to the transport URI."""
        return self.track_uri or self.uri or ""


@dataclass(frozen=True, slots=True)
class PlayerState:
    """Player state for one room.

    Attributes:
        volume: Volume level 0-100.
        mute: Whether the room is muted.
        playback_state: Transport state, e.g. ``PLAYING`` or ``STOPPED``.
        current_track: Loaded track, if any.
    """

    volume: int = 0
    mute: bool = False
    playback_state: str = "STOPPED"
    current_track: Track | None = None

    def __post_init__(self) -> None:
        """Clamp volume to 0-100 range."""
        if self.volume < 0 or self.volume > 100:  # noqa: PLR2004
            clamped = max(0, min(100, self.volume))
            logger.warning("Volume %d out of range, clamped to %d", self.volume, clamped)
            object.__setattr__(self, "volume", clamped)

    @property
    def is_playing(self) -> bool:
        """Return True if the transport is playing."""
        return self.playback_state == PLAYING


@dataclass(frozen=True, slots=True)
class Member:
    """A single player (room) inside a zone.

    Attributes:
        room_name: Human-readable room name.
        uuid: Device identifier.
        state: Player state.
        host: Device address, if reported.
    """

    room_name: str
    uuid: str
    state: PlayerState = field(default_factory=PlayerState)
    host: str | None = None


@dataclass(frozen=True, slots=True)
class Zone:
    """A playback group: one coordinator plus its members.

    The coordinator usually also appears in ``members``.
    """

    coordinator: Member
    members: list[Member] = field(default_factory=list)

    @property
    def room_names(self) -> list[str]:
        """Return all room names in this zone, coordinator first."""
        names = [self.coordinator.room_name]
        names.extend(m.room_name for m in self.members if m.room_name not in names)
        return names
