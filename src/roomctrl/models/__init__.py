"""Data models for stations, networks, zone topology and view snapshots."""

from roomctrl.models.network import NetworkConfig, create_network
from roomctrl.models.snapshot import RoomGroup, RoomSnapshot
from roomctrl.models.station import Station, StationType
from roomctrl.models.zone import Member, PlayerState, Track, Zone

__all__ = [
    "Member",
    "NetworkConfig",
    "PlayerState",
    "RoomGroup",
    "RoomSnapshot",
    "Station",
    "StationType",
    "Track",
    "Zone",
    "create_network",
]
