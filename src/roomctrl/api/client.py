"""HTTP client for the multi-room audio control API.

The control API exposes plain JSON resources over HTTP:

- ``GET /zones``     full zone topology (coordinator, members, player state)
- ``GET /favorites`` list of favorite names stored on the server

Requests are blocking ``urllib`` calls run in the event loop's default
executor so the calling task suspends without blocking the loop.
"""

import asyncio
import json
import logging
import urllib.error
import urllib.request
from typing import Any, cast

from roomctrl.models.zone import Member, PlayerState, Track, Zone

logger = logging.getLogger(__name__)

USER_AGENT = "RoomCTRL/1.0"


class ApiError(Exception):
    """Fetching or decoding a control API resource failed."""


class HttpApiClient:
    """Async client for one control API base address.

    Example:
        client = HttpApiClient("http://192.168.1.20:5005")
        zones = await client.fetch_zones()
        names = await client.fetch_favorite_names()
    """

    _DEFAULT_TIMEOUT: float = 10.0

    def __init__(self, base_url: str, timeout: float = _DEFAULT_TIMEOUT) -> None:
        """Initialize the client.

        Args:
            base_url: Base address, e.g. ``http://host:5005``.
            timeout: Per-request timeout in seconds.
        """
        self._base_url = base_url.strip().rstrip("/")
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        """Return the base address without trailing slash."""
        return self._base_url

    def url_for(self, path: str) -> str:
        """Return the absolute URL for an API path."""
        return f"{self._base_url}/{path.lstrip('/')}"

    async def fetch_zones(self) -> list[Zone]:
        """Fetch the full zone topology.

        Returns:
            All zones currently reported by the server.

        Raises:
            ApiError: If the request fails or any zone fails to decode.
        """
        data = await self._get_json("zones")
        return parse_zones(data)

    async def fetch_favorite_names(self) -> list[str]:
        """Fetch the names of the server's favorites.

        Raises:
            ApiError: If the request fails or the payload is not a list.
        """
        data = await self._get_json("favorites")
        if not isinstance(data, list):
            raise ApiError(f"Expected a list of favorites, got {type(data).__name__}")
        return [str(name) for name in cast(list[object], data)]

    async def _get_json(self, path: str) -> Any:
        """GET a resource and decode its JSON body.

        Raises:
            ApiError: On network, HTTP or JSON errors.
        """
        url = self.url_for(path)
        loop = asyncio.get_running_loop()
        try:
            body = await loop.run_in_executor(None, self._fetch, url)
            return json.loads(body.decode("utf-8"))
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise ApiError(f"GET {url} failed: {e}") from e
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ApiError(f"GET {url} returned invalid JSON: {e}") from e

    def _fetch(self, url: str) -> bytes:
        """Fetch a URL (blocking)."""
        req = urllib.request.Request(
            url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )
        with urllib.request.urlopen(req, timeout=self._timeout) as response:
            return response.read()


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return None if value is None else str(value)


def _parse_track(data: object) -> Track | None:
    if not isinstance(data, dict):
        return None
    track = cast(dict[str, Any], data)
    return Track(
        title=_optional_str(track, "title"),
        artist=_optional_str(track, "artist"),
        station_name=_optional_str(track, "stationName"),
        uri=_optional_str(track, "uri"),
        track_uri=_optional_str(track, "trackUri"),
        type=_optional_str(track, "type"),
        album_art_uri=_optional_str(track, "albumArtUri"),
        absolute_album_art_uri=_optional_str(track, "absoluteAlbumArtUri"),
    )


def _parse_member(data: dict[str, Any]) -> Member:
    """Parse one player entry.

    ``roomName``, ``uuid`` and ``state`` with ``volume``, ``mute`` and
    ``playbackState`` are required; a missing key is a decode failure.
    """
    state = data["state"]
    host = data.get("host")
    return Member(
        room_name=str(data["roomName"]),
        uuid=str(data["uuid"]),
        state=PlayerState(
            volume=int(state["volume"]),
            mute=bool(state["mute"]),
            playback_state=str(state["playbackState"]),
            current_track=_parse_track(state.get("currentTrack")),
        ),
        host=None if host is None else str(host),
    )


def parse_zones(data: Any) -> list[Zone]:
    """Parse a ``/zones`` response.

    Response structure (abridged):
    [
      {
        "coordinator": {"roomName": "...", "uuid": "...", "state": {...}},
        "members": [{"roomName": "...", "uuid": "...", "state": {...}}]
      }
    ]

    Args:
        data: Decoded JSON payload.

    Returns:
        Parsed zones.

    Raises:
        ApiError: If any part of the payload is malformed. Partial results
            are never returned.
    """
    if not isinstance(data, list):
        raise ApiError(f"Expected a list of zones, got {type(data).__name__}")

    zones: list[Zone] = []
    try:
        for raw in cast(list[dict[str, Any]], data):
            zones.append(
                Zone(
                    coordinator=_parse_member(raw["coordinator"]),
                    members=[_parse_member(m) for m in raw.get("members", [])],
                )
            )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ApiError(f"Malformed zone payload: {e!r}") from e
    return zones
