"""Clients for the control API: HTTP resources, event stream and station lists."""

from roomctrl.api.client import ApiError, HttpApiClient, parse_zones
from roomctrl.api.events import EventStream, EventStreamError, ServerEvent, parse_event_line
from roomctrl.api.stations import RemoteStationFetcher, load_default_stations, parse_station_csv

__all__ = [
    "ApiError",
    "EventStream",
    "EventStreamError",
    "HttpApiClient",
    "RemoteStationFetcher",
    "ServerEvent",
    "load_default_stations",
    "parse_event_line",
    "parse_station_csv",
    "parse_zones",
]
