"""Tests for topology normalization."""

from roomctrl.core.normalizer import (
    CONNECT_DEVICE_IDS,
    LineInSource,
    line_in_sources,
    match_stations,
    normalize,
)
from roomctrl.models.snapshot import RoomGroup
from roomctrl.models.station import Station
from roomctrl.models.zone import Member, PlayerState, Track, Zone


def _member(
    room: str,
    uuid: str,
    volume: int = 20,
    mute: bool = False,
    playback_state: str = "STOPPED",
    track: Track | None = None,
    host: str | None = None,
) -> Member:
    return Member(
        room_name=room,
        uuid=uuid,
        state=PlayerState(volume, mute, playback_state, track),
        host=host,
    )


def _zone(coordinator: Member, *others: Member) -> Zone:
    return Zone(coordinator=coordinator, members=[coordinator, *others])


class TestNormalize:
    """Tests for normalize."""

    def test_single_room(self) -> None:
        """Test a lone coordinator without members."""
        kitchen = _member("Kitchen", "RINCON_K", volume=30)
        snapshot = normalize([Zone(coordinator=kitchen, members=[])])

        assert snapshot.groups == [RoomGroup("Kitchen", [])]
        assert snapshot.volume == {"Kitchen": 30}
        assert snapshot.muted == {"Kitchen": False}
        assert snapshot.playback_state == {"Kitchen": "STOPPED"}

    def test_joiners_sorted_without_coordinator(self) -> None:
        """Test joiners exclude the coordinator and sort case-insensitively."""
        zone = _zone(
            _member("Living Room", "RINCON_L"),
            _member("kitchen", "RINCON_K"),
            _member("Bath", "RINCON_B"),
        )
        snapshot = normalize([zone])
        assert snapshot.groups == [RoomGroup("Living Room", ["Bath", "kitchen"])]

    def test_groups_sorted_by_coordinator(self) -> None:
        """Test groups are ordered by coordinator name ignoring case."""
        zones = [
            _zone(_member("office", "RINCON_O")),
            _zone(_member("Bedroom", "RINCON_BR")),
            _zone(_member("Patio", "RINCON_P")),
        ]
        snapshot = normalize(zones)
        assert [g.coordinator for g in snapshot.groups] == ["Bedroom", "office", "Patio"]

    def test_every_room_in_every_map(self) -> None:
        """Test each grouped room has volume, mute and playback entries."""
        zones = [
            _zone(_member("Kitchen", "RINCON_K"), _member("Bath", "RINCON_B")),
            Zone(coordinator=_member("Office", "RINCON_O"), members=[_member("Den", "RINCON_D")]),
        ]
        snapshot = normalize(zones)
        rooms = set(snapshot.rooms)
        assert rooms == {"Kitchen", "Bath", "Office", "Den"}
        for mapping in (snapshot.volume, snapshot.muted, snapshot.playback_state, snapshot.volume_disabled):
            assert set(mapping) == rooms
        assert len(snapshot.rooms) == len(rooms)

    def test_per_room_state(self) -> None:
        """Test per-room values come from each member's own state."""
        zone = _zone(
            _member("Kitchen", "RINCON_K", volume=30, playback_state="PLAYING", host="10.0.0.2"),
            _member("Bath", "RINCON_B", volume=55, mute=True),
        )
        snapshot = normalize([zone])
        assert snapshot.volume == {"Kitchen": 30, "Bath": 55}
        assert snapshot.muted == {"Kitchen": False, "Bath": True}
        assert snapshot.playback_state["Kitchen"] == "PLAYING"
        assert snapshot.hosts == {"Kitchen": "10.0.0.2"}

    def test_volume_disabled_per_room(self) -> None:
        """Test connect-class and manually disabled devices."""
        connect_id = next(iter(CONNECT_DEVICE_IDS))
        zone = _zone(
            _member("Kitchen", "RINCON_K"),
            _member("Amp", connect_id),
            _member("Bath", "RINCON_B"),
        )
        snapshot = normalize([zone], manually_disabled_ids={"RINCON_B"})
        assert snapshot.volume_disabled == {"Kitchen": False, "Amp": True, "Bath": True}

    def test_custom_connect_ids(self) -> None:
        """Test the connect-class set can be replaced."""
        zone = _zone(_member("Kitchen", "RINCON_K"))
        snapshot = normalize([zone], connect_ids={"RINCON_K"})
        assert snapshot.volume_disabled == {"Kitchen": True}

    def test_track_titles(self) -> None:
        """Test titles prefer track title then station name."""
        zone = _zone(
            _member("Kitchen", "RINCON_K", track=Track(title="Song", station_name="KEXP")),
            _member("Bath", "RINCON_B", track=Track(title="", station_name="FIP")),
            _member("Den", "RINCON_D", track=Track()),
            _member("Office", "RINCON_O"),
        )
        snapshot = normalize([zone])
        assert snapshot.track_titles == {"Kitchen": "Song", "Bath": "FIP"}
        assert set(snapshot.tracks) == {"Kitchen", "Bath", "Den"}

    def test_room_by_device_first_writer_wins(self) -> None:
        """Test a device reported twice keeps its first room."""
        zones = [
            _zone(_member("Kitchen", "RINCON_K")),
            _zone(_member("Bath", "RINCON_B"), _member("Stale", "RINCON_K")),
        ]
        snapshot = normalize(zones)
        assert snapshot.room_by_device == {"RINCON_K": "Kitchen", "RINCON_B": "Bath"}

    def test_selected_stations(self) -> None:
        """Test matched stations are resolved per room."""
        catalog = [Station("KEXP", "kexp.org/live"), Station.line_in("RINCON_T", "Turntable")]
        zone = _zone(
            _member("Kitchen", "RINCON_K", track=Track(uri="http://kexp.org/live/128")),
            _member("Den", "RINCON_D", track=Track(uri="x-rincon-stream:RINCON_T")),
            _member("Bath", "RINCON_B", track=Track(uri="x-file-cifs://nas/a.flac")),
        )
        snapshot = normalize([zone], catalog=catalog)
        assert snapshot.selected_stations == {"Kitchen": catalog[0], "Den": catalog[1]}

    def test_accordion_loaded_per_coordinator(self) -> None:
        """Test persisted expansion flags are read for coordinators."""
        zones = [_zone(_member("Kitchen", "RINCON_K"), _member("Bath", "RINCON_B")), _zone(_member("Den", "RINCON_D"))]
        snapshot = normalize(zones, accordion_state=lambda room: room == "Den")
        assert snapshot.accordion == {"Den": True, "Kitchen": False}

    def test_empty(self) -> None:
        """Test no zones gives an empty snapshot."""
        snapshot = normalize([])
        assert snapshot.groups == []
        assert snapshot.volume == {}


class TestMatchStations:
    """Tests for match_stations."""

    def test_first_catalog_match_wins(self) -> None:
        """Test catalog order decides between several matches."""
        catalog = [Station("KEXP", "kexp.org"), Station("KEXP Live", "kexp.org/live")]
        selected = match_stations({"Kitchen": Track(uri="http://kexp.org/live")}, catalog)
        assert selected == {"Kitchen": catalog[0]}

    def test_no_match_no_entry(self) -> None:
        """Test unmatched rooms are absent."""
        assert match_stations({"Kitchen": Track(title="Song")}, [Station("FIP", "fip")]) == {}


class TestLineInSources:
    """Tests for line_in_sources."""

    def test_distinct_devices_sorted(self) -> None:
        """Test every device is listed once, sorted by name."""
        kitchen = _member("kitchen", "RINCON_K")
        zones = [Zone(kitchen, [kitchen, _member("Bath", "RINCON_B")]), _zone(_member("Den", "RINCON_D"))]
        assert line_in_sources(zones) == [
            LineInSource("RINCON_B", "Bath", "Bath"),
            LineInSource("RINCON_D", "Den", "Den"),
            LineInSource("RINCON_K", "kitchen", "kitchen"),
        ]

    def test_duplicate_room_names_disambiguated(self) -> None:
        """Test rooms sharing a name get an ID suffix."""
        zones = [
            _zone(_member("Living Room", "RINCON_000E58AAAAAA"), _member("Living Room", "RINCON_000E58BBBBBB")),
        ]
        names = [s.display_name for s in line_in_sources(zones)]
        assert names == ["Living Room (AAAAAA)", "Living Room (BBBBBB)"]
