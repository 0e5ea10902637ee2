"""Station list sources: remote CSV files and the bundled default list.

CSV layout (first line is a header and is skipped)::

    name,url[,type]
    Radio Paradise,https://stream.radioparadise.com/mp3-192,stream

The third field is optional; when present it is lower-cased and selects the
station type, otherwise the station is a plain stream.
"""

from __future__ import annotations

import asyncio
import logging
import urllib.error
import urllib.request
from pathlib import Path

from roomctrl.models.station import Station, StationType

logger = logging.getLogger(__name__)

# Some CSV hosts (e.g. spreadsheet exports) reject non-browser agents
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

REQUEST_TIMEOUT = 15.0

DEFAULT_STATIONS_PATH = Path(__file__).resolve().parent.parent / "data" / "default-stations.csv"

_MIN_FIELDS = 2


def parse_station_csv(text: str) -> list[Station]:
    """Parse CSV text into stations.

    Skips the header line. Each remaining line is split on commas at most
    twice; lines with fewer than two non-empty fields are dropped.

    Args:
        text: Raw CSV text.

    Returns:
        Stations in file order.
    """
    stations: list[Station] = []
    for line in text.splitlines()[1:]:
        if not line.strip():
            continue
        parts = [p.strip() for p in line.split(",", 2)]
        if len(parts) < _MIN_FIELDS or not parts[0] or not parts[1]:
            logger.debug("Skipping CSV line with too few fields: %r", line)
            continue
        station_type = (
            StationType.from_string(parts[2]) if len(parts) > _MIN_FIELDS else StationType.STREAM
        )
        stations.append(Station(name=parts[0], url=parts[1], type=station_type))
    return stations


def load_default_stations(path: Path = DEFAULT_STATIONS_PATH) -> list[Station]:
    """Load the bundled default station list.

    Returns:
        Parsed stations, or empty list if the file cannot be read.
    """
    try:
        return parse_station_csv(path.read_text(encoding="utf-8"))
    except OSError as e:
        logger.warning("Cannot read default station list %s: %s", path, e)
        return []


class SanitizingRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Redirect handler that strips ``*/`` from redirect targets.

    Some file hosts emit redirect locations with a stray ``*/`` that
    produces a 404 when followed verbatim.
    """

    def redirect_request(  # type: ignore[override]
        self,
        req: urllib.request.Request,
        fp: object,
        code: int,
        msg: str,
        headers: object,
        newurl: str,
    ) -> urllib.request.Request | None:
        """Follow the redirect with a sanitized target URL."""
        sanitized = newurl.replace("*/", "")
        if sanitized != newurl:
            logger.debug("Redirecting to sanitized URL %s", sanitized)
        return super().redirect_request(req, fp, code, msg, headers, sanitized)  # type: ignore[arg-type]


class RemoteStationFetcher:
    """Fetch station lists from remote CSV files.

    Example:
        fetcher = RemoteStationFetcher()
        stations = await fetcher.fetch("https://example.com/stations.csv")
    """

    def __init__(self, timeout: float = REQUEST_TIMEOUT) -> None:
        """Initialize the fetcher.

        Args:
            timeout: Request timeout in seconds.
        """
        self._timeout = timeout
        self._opener = urllib.request.build_opener(SanitizingRedirectHandler())

    async def fetch(self, url: str) -> list[Station]:
        """Fetch and parse a remote CSV station list.

        Failures are logged and yield an empty list.

        Args:
            url: CSV address.

        Returns:
            Parsed stations, or empty list on any failure.
        """
        if not url.strip():
            return []
        try:
            loop = asyncio.get_running_loop()
            text = await loop.run_in_executor(None, self._fetch_text, url.strip())
        except (urllib.error.URLError, TimeoutError, OSError, ValueError) as e:
            logger.warning("Failed to fetch stations from %s: %s", url, e)
            return []
        return parse_station_csv(text)

    def _fetch_text(self, url: str) -> str:
        """Fetch a URL as UTF-8 text (blocking)."""
        req = urllib.request.Request(url, headers={"User-Agent": BROWSER_USER_AGENT})
        with self._opener.open(req, timeout=self._timeout) as response:
            return response.read().decode("utf-8", errors="replace")
