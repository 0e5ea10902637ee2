"""Station model representing one playable catalog entry."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from roomctrl.models.zone import Track

# URI scheme for analog inputs: x-rincon-stream:<device id>[:<instance>]
LINE_IN_SCHEME = "x-rincon-stream:"

# URI scheme used by streaming-service radio (station name is meaningful)
STREAMING_SERVICE_SCHEME = "x-sonosapi-stream:"


class StationType(StrEnum):
    """Kind of playable entry."""

    STREAM = "stream"
    FAVORITE = "favorite"
    LINE_IN = "linein"

    @classmethod
    def from_string(cls, value: str | None) -> "StationType":
        """Parse a type string, defaulting to STREAM for unknown values."""
        normalized = (value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.STREAM


def is_line_in_uri(uri: str) -> bool:
    """Return True if the URI addresses a device line-in."""
    return uri.lower().startswith(LINE_IN_SCHEME)


def line_in_device_id(uri: str) -> str:
    """Extract the bare device identifier from a line-in URI.

    Strips the line-in scheme, then keeps everything before the first ``:``.

    Args:
        uri: A line-in URI such as ``x-rincon-stream:RINCON_XXX:1``.

    Returns:
        The device identifier, or empty string if the URI is not line-in.
    """
    if not is_line_in_uri(uri):
        return ""
    return uri[len(LINE_IN_SCHEME) :].split(":", 1)[0]


def _normalize(value: str) -> str:
    return value.strip().lower()


@dataclass(frozen=True, slots=True)
class Station:
    """A playable entry: internet stream, server favorite or line-in.

    Identity within a catalog is the exact (case-sensitive) ``url``.

    Attributes:
        name: Display name.
        url: Stream URL, favorite name, or line-in URI.
        type: Kind of entry.
    """

    name: str
    url: str
    type: StationType = StationType.STREAM

    @classmethod
    def favorite(cls, name: str) -> "Station":
        """Create a server favorite (favorites are addressed by name)."""
        return cls(name=name, url=name, type=StationType.FAVORITE)

    @classmethod
    def line_in(cls, device_id: str, name: str) -> "Station":
        """Create a line-in entry for a device."""
        return cls(name=name, url=f"{LINE_IN_SCHEME}{device_id}", type=StationType.LINE_IN)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Station":
        """Create a station from its persisted form."""
        return cls(
            name=str(data.get("name", "")),
            url=str(data.get("url", "")),
            type=StationType.from_string(data.get("type")),
        )

    def to_dict(self) -> dict[str, str]:
        """Convert to a JSON-serializable dict."""
        return {"name": self.name, "url": self.url, "type": self.type.value}

    @property
    def is_favorite(self) -> bool:
        """Return True for server favorites."""
        return self.type is StationType.FAVORITE

    @property
    def is_line_in(self) -> bool:
        """Return True for line-in entries (by type or by URI)."""
        return self.type is StationType.LINE_IN or is_line_in_uri(self.url)

    @property
    def device_id(self) -> str:
        """Return the embedded line-in device identifier, or empty string."""
        return line_in_device_id(self.url)

    def matches(self, track: Track) -> bool:
        """Return True if the track appears to be playing this station.

        Used for display correlation only, never for identity. Matches when
        the streaming-service station name overlaps this station's name, when
        either track URI contains this station's URL, or when both address the
        same line-in device.

        Args:
            track: The currently playing track.
        """
        name = _normalize(self.name)
        url = _normalize(self.url)

        if track.station_name and (track.uri or "").startswith(STREAMING_SERVICE_SCHEME):
            station_name = _normalize(track.station_name)
            if name and station_name and (station_name in name or name in station_name):
                return True

        candidates = [_normalize(uri) for uri in (track.uri, track.track_uri) if uri is not None]
        if url and any(url in candidate for candidate in candidates):
            return True

        if self.is_line_in:
            own_id = line_in_device_id(url)
            for candidate in candidates:
                playing_id = line_in_device_id(candidate)
                if playing_id and playing_id == own_id:
                    return True

        return False
