"""Station catalog aggregation.

Merges candidate stations from every source into one deduplicated catalog
per network:

    source               priority (lower wins)
    manual entries       1
    enabled line-ins     1
    custom remote CSV    2
    server favorites     3
    bundled defaults     4

Equal priorities are resolved by the order in which candidates were
collected (defaults, custom CSV, manual, favorites, line-ins).
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass

from roomctrl.api.stations import load_default_stations
from roomctrl.core.settings import AppSettings
from roomctrl.models.network import NetworkConfig
from roomctrl.models.station import Station, StationType, is_line_in_uri, line_in_device_id

logger = logging.getLogger(__name__)

PRIORITY_MANUAL = 1
PRIORITY_LINE_IN = 1
PRIORITY_CUSTOM_CSV = 2
PRIORITY_FAVORITE = 3
PRIORITY_DEFAULT = 4

# Fetches a remote CSV and returns its stations (empty list on failure)
StationFetcher = Callable[[str], Awaitable[list[Station]]]


@dataclass(frozen=True, slots=True)
class Candidate:
    """A station offered by one source.

    Attributes:
        station: The offered station.
        priority: Source priority, lower wins on URL conflicts.
        order: Collection order, breaks priority ties.
    """

    station: Station
    priority: int
    order: int

    def beats(self, other: Candidate) -> bool:
        """Return True if this candidate wins a URL conflict against other."""
        return (self.priority, self.order) < (other.priority, other.order)


def is_forced_default(
    config: NetworkConfig,
    manual_stations: Sequence[Station],
    remote_csv_url: str | None,
) -> bool:
    """Return True if the network must show the bundled default catalog.

    A network with no custom CSV, no manual stations and no effectively
    enabled favorites would otherwise have nothing to play.
    """
    return (
        not (remote_csv_url or "").strip()
        and not manual_stations
        and not config.enabled_favorites
    )


def is_line_in_candidate(station: Station) -> bool:
    """Return True if a station addresses a line-in by type or URI."""
    return station.type is StationType.LINE_IN or is_line_in_uri(station.url)


def line_in_allowed(station: Station, config: NetworkConfig) -> bool:
    """Return True if a line-in station's device is enabled on the network."""
    device_id = line_in_device_id(station.url)
    return bool(device_id) and device_id in config.enabled_line_in_ids


def deduplicate(candidates: Sequence[Candidate]) -> list[Station]:
    """Keep one station per URL and sort by name.

    Args:
        candidates: All collected candidates.

    Returns:
        Winning stations sorted case-insensitively by name.
    """
    winners: dict[str, Candidate] = {}
    for candidate in candidates:
        existing = winners.get(candidate.station.url)
        if existing is None or candidate.beats(existing):
            winners[candidate.station.url] = candidate
    return sorted((c.station for c in winners.values()), key=lambda s: s.name.casefold())


def filtered_stations(catalog: Sequence[Station], config: NetworkConfig) -> list[Station]:
    """Return the catalog entries visible on a network.

    Non-favorite stations are always kept; favorites are kept unless their
    URL is explicitly disabled for the network.

    Args:
        catalog: The network's aggregated catalog.
        config: The network's config.
    """
    return [s for s in catalog if not s.is_favorite or s.url not in config.disabled_favorite_urls]


class StationAggregator:
    """Build per-network station catalogs.

    Example:
        aggregator = StationAggregator(RemoteStationFetcher().fetch)
        catalog = await aggregator.build_catalog(config, settings)
    """

    def __init__(
        self,
        fetch_stations: StationFetcher,
        default_stations: Sequence[Station] | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            fetch_stations: Coroutine function fetching a remote CSV.
            default_stations: Bundled default catalog (loaded from the
                package data if omitted).
        """
        self._fetch_stations = fetch_stations
        self._default_stations: list[Station] = (
            list(default_stations) if default_stations is not None else load_default_stations()
        )

    @property
    def default_stations(self) -> list[Station]:
        """Return the bundled default catalog."""
        return list(self._default_stations)

    async def build_catalog(
        self,
        config: NetworkConfig,
        settings: AppSettings,
        room_by_device: Mapping[str, str] | None = None,
    ) -> list[Station]:
        """Build the deduplicated catalog for one network.

        Also sets the global CSV load-error flag when a custom CSV is
        configured but yields no stations, and clears it when none is
        configured.

        Args:
            config: The network's config.
            settings: Global settings (manual stations, custom CSV address).
            room_by_device: Device identifier to room name, used to name
                line-in entries without a custom name.

        Returns:
            Stations sorted case-insensitively by name.
        """
        manual_stations = settings.manual_stations
        remote_csv_url = settings.remote_csv_url.strip()
        room_by_device = room_by_device or {}

        candidates: list[Candidate] = []
        order = itertools.count(1)

        def collect(stations: Sequence[Station], priority: int) -> None:
            for station in stations:
                candidates.append(Candidate(station, priority, next(order)))

        forced = is_forced_default(config, manual_stations, remote_csv_url)
        if forced or config.show_default_presets:
            collect(self._default_stations, PRIORITY_DEFAULT)

        if remote_csv_url:
            custom = await self._fetch_stations(remote_csv_url)
            collect(custom, PRIORITY_CUSTOM_CSV)
            settings.set_csv_load_error(not custom)
        else:
            settings.set_csv_load_error(False)

        collect(manual_stations, PRIORITY_MANUAL)
        collect(config.favorites, PRIORITY_FAVORITE)

        candidates = [
            c
            for c in candidates
            if not is_line_in_candidate(c.station) or line_in_allowed(c.station, config)
        ]

        collect(
            [
                Station.line_in(
                    device_id,
                    config.line_in_name(device_id) or room_by_device.get(device_id, device_id),
                )
                for device_id in sorted(config.enabled_line_in_ids)
            ],
            PRIORITY_LINE_IN,
        )

        catalog = deduplicate(candidates)
        logger.debug(
            "Built catalog for %s: %d stations from %d candidates (forced default: %s)",
            config.display_name,
            len(catalog),
            len(candidates),
            forced,
        )
        return catalog
