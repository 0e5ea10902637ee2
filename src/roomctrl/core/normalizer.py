"""Topology normalization: raw zones to a room-indexed RoomSnapshot.

Every derived map is built into fresh dicts and wrapped in one frozen
RoomSnapshot, so callers publish the whole view state with a single
reference swap.
"""

import logging
from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass

from roomctrl.models.snapshot import RoomGroup, RoomSnapshot
from roomctrl.models.station import Station
from roomctrl.models.zone import Member, Track, Zone

logger = logging.getLogger(__name__)

# Devices whose volume is fixed by an external amplifier
CONNECT_DEVICE_IDS: frozenset[str] = frozenset({"RINCON_B8000000000000000"})

_ID_SUFFIX_LENGTH = 6


@dataclass(frozen=True, slots=True)
class LineInSource:
    """A device that can be offered as a line-in source.

    Attributes:
        device_id: Device identifier.
        room_name: Room the device belongs to.
        display_name: Room name, disambiguated when shared by several devices.
    """

    device_id: str
    room_name: str
    display_name: str


def _zone_members(zone: Zone) -> list[Member]:
    """Return coordinator followed by members."""
    return [zone.coordinator, *zone.members]


def match_stations(tracks: Mapping[str, Track], catalog: Sequence[Station]) -> dict[str, Station]:
    """Match each room's current track against the catalog.

    Args:
        tracks: Current track per room.
        catalog: Aggregated catalog, in catalog order.

    Returns:
        First matching station per room; rooms without a match are absent.
    """
    selected: dict[str, Station] = {}
    for room, track in tracks.items():
        for station in catalog:
            if station.matches(track):
                selected[room] = station
                break
    return selected


def normalize(
    zones: Sequence[Zone],
    manually_disabled_ids: Iterable[str] = (),
    connect_ids: Iterable[str] = CONNECT_DEVICE_IDS,
    catalog: Sequence[Station] = (),
    accordion_state: Callable[[str], bool] | None = None,
) -> RoomSnapshot:
    """Convert zones into a complete room-indexed snapshot.

    Args:
        zones: Full current topology.
        manually_disabled_ids: Device identifiers with volume control
            disabled for this network.
        connect_ids: Device identifiers that never expose volume control.
        catalog: Aggregated catalog used to resolve selected stations.
        accordion_state: Returns the persisted expansion flag for a room.

    Returns:
        A new RoomSnapshot; every room in ``groups`` has an entry in every
        per-room state map.
    """
    disabled = frozenset(manually_disabled_ids) | frozenset(connect_ids)

    groups: list[RoomGroup] = []
    volume: dict[str, int] = {}
    muted: dict[str, bool] = {}
    playback_state: dict[str, str] = {}
    hosts: dict[str, str] = {}
    track_titles: dict[str, str] = {}
    tracks: dict[str, Track] = {}
    volume_disabled: dict[str, bool] = {}
    room_by_device: dict[str, str] = {}

    for zone in zones:
        coordinator = zone.coordinator.room_name
        joiners = {m.room_name for m in zone.members if m.room_name != coordinator}
        groups.append(RoomGroup(coordinator=coordinator, joiners=sorted(joiners, key=str.casefold)))

        for member in _zone_members(zone):
            room = member.room_name
            state = member.state
            volume[room] = state.volume
            muted[room] = state.mute
            playback_state[room] = state.playback_state
            volume_disabled[room] = member.uuid in disabled
            if member.host:
                hosts[room] = member.host
            if state.current_track is not None:
                tracks[room] = state.current_track
                title = state.current_track.display_title
                if title:
                    track_titles[room] = title
            # First writer wins
            room_by_device.setdefault(member.uuid, room)

    groups.sort(key=lambda g: g.coordinator.casefold())

    accordion: dict[str, bool] = {}
    if accordion_state is not None:
        accordion = {group.coordinator: accordion_state(group.coordinator) for group in groups}

    snapshot = RoomSnapshot(
        groups=groups,
        volume=volume,
        muted=muted,
        playback_state=playback_state,
        hosts=hosts,
        track_titles=track_titles,
        tracks=tracks,
        volume_disabled=volume_disabled,
        room_by_device=room_by_device,
        selected_stations=match_stations(tracks, catalog),
        accordion=accordion,
    )
    logger.debug("Normalized %d zone(s) into %d room(s)", len(zones), len(volume))
    return snapshot


def line_in_sources(zones: Sequence[Zone]) -> list[LineInSource]:
    """List every distinct device that can serve as a line-in source.

    Rooms whose name is shared by several devices are shown as
    ``"<name> (<last 6 characters of the id>)"``.

    Args:
        zones: Full current topology.

    Returns:
        Sources sorted case-insensitively by display name.
    """
    devices: dict[str, str] = {}
    for zone in zones:
        for member in _zone_members(zone):
            devices.setdefault(member.uuid, member.room_name)

    name_counts = Counter(devices.values())
    sources = [
        LineInSource(
            device_id=device_id,
            room_name=room,
            display_name=(
                f"{room} ({device_id[-_ID_SUFFIX_LENGTH:]})" if name_counts[room] > 1 else room
            ),
        )
        for device_id, room in devices.items()
    ]
    return sorted(sources, key=lambda s: s.display_name.casefold())
