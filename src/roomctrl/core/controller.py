"""Live update controller: event stream, debounced refresh and poll fallback.

One controller runs per network inside that network's asyncio loop. The
loop is the only context that mutates controller state; lifecycle callbacks
arriving from other threads are handed to it with ``call_soon_threadsafe``.

State machine::

    IDLE --start/foreground--> CONNECTING --headers--> STREAMING
    CONNECTING/STREAMING --error or end of stream--> BACKOFF
    any --background/stop--> IDLE

BACKOFF never retries on its own; the next foreground transition or an
explicit ``start`` re-arms the stream. The poll keeps refreshing while in
BACKOFF.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Coroutine, Iterable, Mapping
from dataclasses import replace
from enum import StrEnum
from typing import Any, Protocol

from roomctrl.api.client import ApiError
from roomctrl.api.events import EventStream, EventStreamError, ServerEvent
from roomctrl.core.aggregator import StationAggregator
from roomctrl.core.normalizer import CONNECT_DEVICE_IDS, match_stations, normalize
from roomctrl.core.settings import AppSettings, NetworkConfigStore
from roomctrl.models.network import NetworkConfig
from roomctrl.models.snapshot import RoomSnapshot
from roomctrl.models.station import Station
from roomctrl.models.zone import Zone

logger = logging.getLogger(__name__)

EVENTS_PATH = "events"

DEFAULT_POLL_INTERVAL = 60.0
DEFAULT_DEBOUNCE_DELAY = 0.5
DEFAULT_FOLLOWUP_DELAY = 2.0
DEFAULT_READ_TIMEOUT = 300.0


class ConnectionState(StrEnum):
    """Event stream connection state."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    BACKOFF = "backoff"


class ApiClient(Protocol):
    """Zone topology and favorites provider."""

    def url_for(self, path: str) -> str: ...

    async def fetch_zones(self) -> list[Zone]: ...

    async def fetch_favorite_names(self) -> list[str]: ...


class ServerEventStream(Protocol):
    """Event stream transport."""

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    def events(self) -> AsyncIterator[ServerEvent]: ...


class Lifecycle(Protocol):
    """Source of foreground/background transitions."""

    def subscribe(self, on_foreground: Callable[[], None], on_background: Callable[[], None]) -> None: ...


def _default_stream_factory(url: str, read_timeout: float) -> ServerEventStream:
    return EventStream(url, read_timeout=read_timeout)


class LiveUpdateController:
    """Keep one network's snapshot and catalog fresh.

    Example:
        controller = LiveUpdateController(
            network_id, HttpApiClient, configs, settings, aggregator,
            on_snapshot=store.publish_snapshot,
        )
        controller.start()  # must run inside the network's event loop
    """

    def __init__(  # noqa: PLR0913
        self,
        network_id: str,
        client_factory: Callable[[str], ApiClient],
        configs: NetworkConfigStore,
        settings: AppSettings,
        aggregator: StationAggregator,
        *,
        on_snapshot: Callable[[RoomSnapshot], Any] | None = None,
        on_catalog: Callable[[list[Station]], Any] | None = None,
        on_state_change: Callable[[ConnectionState], Any] | None = None,
        stream_factory: Callable[[str, float], ServerEventStream] = _default_stream_factory,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        followup_delay: float = DEFAULT_FOLLOWUP_DELAY,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        connect_ids: Iterable[str] = CONNECT_DEVICE_IDS,
        lifecycle: Lifecycle | None = None,
    ) -> None:
        """Initialize the controller in the IDLE state.

        Args:
            network_id: ID of the controlled network.
            client_factory: Builds an API client for a base address.
            configs: Network config store.
            settings: Global settings.
            aggregator: Catalog builder.
            on_snapshot: Called with every published snapshot.
            on_catalog: Called with every rebuilt catalog.
            on_state_change: Called on every connection state change.
            stream_factory: Builds the event stream for a URL and read timeout.
            poll_interval: Seconds between unconditional refreshes.
            debounce_delay: Quiet period before an event-triggered refresh.
            followup_delay: Seconds between a debounced refresh and its
                follow-up.
            read_timeout: Maximum event stream silence in seconds.
            connect_ids: Devices that never expose volume control.
            lifecycle: Foreground/background source, registered once.
        """
        self._network_id = network_id
        self._client_factory = client_factory
        self._configs = configs
        self._settings = settings
        self._aggregator = aggregator
        self._on_snapshot = on_snapshot
        self._on_catalog = on_catalog
        self._on_state_change = on_state_change
        self._stream_factory = stream_factory
        self._poll_interval = poll_interval
        self._debounce_delay = debounce_delay
        self._followup_delay = followup_delay
        self._read_timeout = read_timeout
        self._connect_ids = frozenset(connect_ids)
        self._lifecycle = lifecycle

        self._state = ConnectionState.IDLE
        self._snapshot = RoomSnapshot()
        self._catalog: list[Station] | None = None
        self._client: ApiClient | None = None
        self._client_url = ""

        self._loop: asyncio.AbstractEventLoop | None = None
        self._refresh_lock = asyncio.Lock()
        self._lifecycle_registered = False
        self._stream_task: asyncio.Task[None] | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    # -- Properties ------------------------------------------------------------

    @property
    def network_id(self) -> str:
        """Return the controlled network ID."""
        return self._network_id

    @property
    def state(self) -> ConnectionState:
        """Return the connection state."""
        return self._state

    @property
    def snapshot(self) -> RoomSnapshot:
        """Return the last published snapshot."""
        return self._snapshot

    @property
    def catalog(self) -> list[Station]:
        """Return the last built catalog (empty before the first build)."""
        return list(self._catalog or [])

    @property
    def refresh_pending(self) -> bool:
        """Return True while a debounced refresh waits for its quiet period."""
        return self._debounce_handle is not None

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Arm the stream and poll, then load catalog and snapshot.

        Must be called from within the network's running event loop.
        """
        self._loop = asyncio.get_running_loop()
        if self._lifecycle is not None and not self._lifecycle_registered:
            self._lifecycle.subscribe(self._foreground_threadsafe, self._background_threadsafe)
            self._lifecycle_registered = True
        self._arm()
        self._spawn(self._initial_load())

    def enter_foreground(self) -> None:
        """Re-arm and refresh immediately."""
        logger.debug("Network %s entering foreground", self._network_id)
        self._arm()
        self._spawn(self.refresh())

    def enter_background(self) -> None:
        """Cancel the stream, poll and pending debounce; keep lifecycle observers.

        In-flight refreshes are left to complete.
        """
        logger.debug("Network %s entering background", self._network_id)
        self._disarm()

    async def stop(self) -> None:
        """Stop everything, including in-flight refreshes."""
        self._disarm()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _foreground_threadsafe(self) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self.enter_foreground)

    def _background_threadsafe(self) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self.enter_background)

    def _arm(self) -> None:
        """Open the event stream (if not already open) and ensure the poll runs."""
        loop = asyncio.get_running_loop()
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = loop.create_task(self._poll_loop())

        if self._state in (ConnectionState.CONNECTING, ConnectionState.STREAMING):
            return
        config = self._usable_config()
        if config is None:
            return
        url = self._client_for(config).url_for(EVENTS_PATH)
        self._set_state(ConnectionState.CONNECTING)
        self._stream_task = loop.create_task(self._run_stream(url))

    def _disarm(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        self._set_state(ConnectionState.IDLE)
        for task in (self._stream_task, self._poll_task):
            if task is not None and not task.done():
                task.cancel()
        self._stream_task = None
        self._poll_task = None

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        logger.debug("Network %s: %s -> %s", self._network_id, self._state, state)
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -- Event stream ----------------------------------------------------------

    async def _run_stream(self, url: str) -> None:
        stream = self._stream_factory(url, self._read_timeout)
        try:
            await stream.connect()
            self._set_state(ConnectionState.STREAMING)
            logger.info("Event stream open: %s", url)
            async for event in stream.events():
                self.handle_event(event)
            logger.info("Event stream closed by server: %s", url)
        except EventStreamError as e:
            logger.warning("Event stream failed: %s", e)
        finally:
            await stream.close()
            # Only the stream that is still current may move to BACKOFF
            if asyncio.current_task() is self._stream_task and self._state in (
                ConnectionState.CONNECTING,
                ConnectionState.STREAMING,
            ):
                self._set_state(ConnectionState.BACKOFF)

    def handle_event(self, event: ServerEvent) -> None:
        """React to one decoded server event.

        Topology and transport-state events schedule a debounced refresh;
        every other type is ignored.
        """
        if not event.is_relevant:
            logger.debug("Ignoring event type %s", event.type)
            return
        self.schedule_debounced_refresh()

    def schedule_debounced_refresh(self) -> None:
        """Restart the quiet period; when it elapses refresh twice.

        Triggers arriving during the quiet period collapse into one refresh
        cycle: an immediate refresh plus one follow-up after the follow-up
        delay.
        """
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = asyncio.get_running_loop().call_later(
            self._debounce_delay, self._fire_debounced
        )

    def _fire_debounced(self) -> None:
        self._debounce_handle = None
        self._spawn(self._refresh_cycle())

    async def _refresh_cycle(self) -> None:
        await self.refresh()
        await asyncio.sleep(self._followup_delay)
        await self.refresh()

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            self._spawn(self.refresh())

    # -- Refresh ---------------------------------------------------------------

    def _usable_config(self) -> NetworkConfig | None:
        config = self._configs.get(self._network_id)
        if config is None:
            logger.debug("Network %s no longer configured", self._network_id)
            return None
        if not config.has_base_url:
            logger.debug("Network %s has no usable base address", config.display_name)
            return None
        return config

    def _client_for(self, config: NetworkConfig) -> ApiClient:
        if self._client is None or self._client_url != config.api_url:
            self._client = self._client_factory(config.api_url)
            self._client_url = config.api_url
        return self._client

    async def _initial_load(self) -> None:
        # Topology first: line-in entries are named after rooms
        if not await self.refresh():
            await self.rebuild_catalog()

    async def refresh(self) -> bool:
        """Fetch favorites and zones, normalize and publish a new snapshot.

        The catalog is rebuilt before publishing when the cached favorites
        changed, when the device-to-room map changed, or when no catalog
        exists yet. Any fetch or decode failure aborts the cycle and keeps
        the previous snapshot. Connection state is never changed.

        Returns:
            True if a snapshot was built.
        """
        async with self._refresh_lock:
            config = self._usable_config()
            if config is None:
                return False
            client = self._client_for(config)

            try:
                names = await client.fetch_favorite_names()
                zones = await client.fetch_zones()
            except ApiError as e:
                logger.warning("Refresh of %s aborted: %s", config.display_name, e)
                return False

            favorites_changed = self._configs.merge_favorites(
                self._network_id, [Station.favorite(n) for n in names]
            )
            if favorites_changed:
                config = self._configs.get(self._network_id) or config

            snapshot = normalize(
                zones,
                config.volume_disabled_ids,
                self._connect_ids,
                self._catalog or [],
                self._settings.accordion_state,
            )
            if (
                favorites_changed
                or self._catalog is None
                or snapshot.room_by_device != self._snapshot.room_by_device
            ):
                catalog = await self._build(config, snapshot.room_by_device)
                snapshot = replace(snapshot, selected_stations=match_stations(snapshot.tracks, catalog))

            self._publish_snapshot(snapshot)
            return True

    async def rebuild_catalog(self) -> list[Station]:
        """Rebuild the catalog and re-resolve selected stations.

        Returns:
            The new catalog, or the previous one if the network has no usable
            base address.
        """
        async with self._refresh_lock:
            config = self._usable_config()
            if config is None:
                return self.catalog
            catalog = await self._build(config, self._snapshot.room_by_device)
            selected = match_stations(self._snapshot.tracks, catalog)
            if selected != self._snapshot.selected_stations:
                self._publish_snapshot(replace(self._snapshot, selected_stations=selected))
            return list(catalog)

    async def _build(self, config: NetworkConfig, room_by_device: Mapping[str, str]) -> list[Station]:
        catalog = await self._aggregator.build_catalog(config, self._settings, room_by_device)
        self._catalog = catalog
        if self._on_catalog is not None:
            self._on_catalog(list(catalog))
        return catalog

    def _publish_snapshot(self, snapshot: RoomSnapshot) -> None:
        self._snapshot = snapshot
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)
