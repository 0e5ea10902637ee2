"""Server-sent event stream from the control API's ``/events`` endpoint.

The server pushes line-based text. Lines starting with ``data:`` carry a
JSON object with at least a ``type`` field; lines starting with ``:`` are
comments (keep-alives) and empty lines separate events.

The stream is a long-lived streaming GET made with httpx.
"""

import json
import logging
import urllib.parse
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Self, cast

import httpx

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
COMMENT_PREFIX = ":"

TOPOLOGY_CHANGE = "topology-change"
TRANSPORT_STATE = "transport-state"

# Event types that invalidate the zone topology or transport state
RELEVANT_EVENT_TYPES = frozenset({TOPOLOGY_CHANGE, TRANSPORT_STATE})


class EventStreamError(Exception):
    """The event stream could not be opened or broke while reading."""


@dataclass(frozen=True)
class ServerEvent:
    """A decoded server event.

    Attributes:
        type: Event type, e.g. ``topology-change``.
        data: Full decoded payload.
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_relevant(self) -> bool:
        """Return True if the event invalidates topology or transport state."""
        return self.type in RELEVANT_EVENT_TYPES


def parse_event_line(line: str) -> ServerEvent | None:
    """Decode one line of the event stream.

    Args:
        line: A single line without its terminator.

    Returns:
        The event for a well-formed ``data:`` line, else None. Comments,
        blank lines, other fields and malformed payloads all yield None.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith(COMMENT_PREFIX):
        return None
    if not stripped.startswith(DATA_PREFIX):
        logger.debug("Skipping non-data event line: %r", stripped)
        return None

    payload = stripped[len(DATA_PREFIX) :].strip()
    if not payload:
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.debug("Dropping malformed event payload %r: %s", payload, e)
        return None

    if not isinstance(data, dict):
        return None
    typed = cast(dict[str, Any], data)
    event_type = typed.get("type")
    if not isinstance(event_type, str):
        logger.debug("Dropping event without type: %r", payload)
        return None
    return ServerEvent(type=event_type, data=typed)


class EventStream:
    """Long-lived reader for a server-sent event endpoint.

    Example:
        async with EventStream("http://192.168.1.20:5005/events") as stream:
            async for event in stream.events():
                print(event.type)
    """

    _CONNECT_TIMEOUT: float = 10.0
    _READ_TIMEOUT: float = 300.0

    def __init__(
        self,
        url: str,
        read_timeout: float = _READ_TIMEOUT,
        connect_timeout: float = _CONNECT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the stream.

        Args:
            url: Absolute ``http``/``https`` URL of the events endpoint.
            read_timeout: Maximum silence before the stream counts as broken.
            connect_timeout: Timeout for connecting and receiving the headers.
            transport: Optional httpx transport (tests inject a mock).
        """
        self._url = url
        self._read_timeout = read_timeout
        self._connect_timeout = connect_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._response: httpx.Response | None = None

    @property
    def url(self) -> str:
        """Return the endpoint URL."""
        return self._url

    @property
    def is_open(self) -> bool:
        """Return True if the response headers have been received."""
        return self._response is not None

    async def __aenter__(self) -> Self:
        """Enter async context (connect)."""
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Exit async context (close)."""
        await self.close()

    async def connect(self) -> None:
        """Send the request and wait for the response headers.

        Redirects are followed.

        Raises:
            EventStreamError: If the URL is invalid, the request fails or
                the server does not answer 200.
        """
        parts = urllib.parse.urlsplit(self._url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise EventStreamError(f"Invalid events URL: {self._url!r}")

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._connect_timeout, read=self._read_timeout),
            follow_redirects=True,
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            transport=self._transport,
        )
        request = self._client.build_request("GET", self._url)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            await self.close()
            raise EventStreamError(f"Failed to connect to {self._url}: {e}") from e

        if response.status_code != httpx.codes.OK:
            await response.aclose()
            await self.close()
            raise EventStreamError(f"Events endpoint answered {response.status_code}")
        self._response = response

    async def close(self) -> None:
        """Close the response and client (idempotent)."""
        response, client = self._response, self._client
        self._response = None
        self._client = None
        if response is not None:
            await response.aclose()
        if client is not None:
            await client.aclose()

    async def lines(self) -> AsyncIterator[str]:
        """Yield decoded text lines until the server ends the body.

        Raises:
            EventStreamError: On timeout or transport failure.
        """
        response = self._response
        if response is None:
            raise EventStreamError("Event stream is not open")
        try:
            async for line in response.aiter_lines():
                yield line
        except httpx.TimeoutException as e:
            raise EventStreamError(f"No data for {self._read_timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise EventStreamError(f"Event stream read failed: {e}") from e

    async def events(self) -> AsyncIterator[ServerEvent]:
        """Yield decoded events, skipping comments and malformed lines.

        Raises:
            EventStreamError: On timeout or transport failure.
        """
        async for line in self.lines():
            event = parse_event_line(line)
            if event is not None:
                yield event
