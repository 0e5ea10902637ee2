"""Tests for station CSV parsing and remote fetching."""

import urllib.error
import urllib.request
from pathlib import Path
from unittest.mock import patch

import pytest

from roomctrl.api.stations import (
    BROWSER_USER_AGENT,
    RemoteStationFetcher,
    SanitizingRedirectHandler,
    load_default_stations,
    parse_station_csv,
)
from roomctrl.models.station import Station, StationType


class TestParseStationCsv:
    """Tests for parse_station_csv."""

    def test_skips_header(self) -> None:
        """Test the first line is always treated as a header."""
        text = "name,url\nKEXP,http://kexp\n"
        assert parse_station_csv(text) == [Station("KEXP", "http://kexp")]

    def test_type_field(self) -> None:
        """Test the optional third field selects the type."""
        text = "name,url,type\nJazz,Jazz, Favorite \nTurntable,x-rincon-stream:RINCON_A,LINEIN\n"
        stations = parse_station_csv(text)
        assert stations[0].type is StationType.FAVORITE
        assert stations[1].type is StationType.LINE_IN

    def test_at_most_two_splits(self) -> None:
        """Test extra commas stay in the third field."""
        stations = parse_station_csv("h\nKEXP,http://kexp,stream,extra\n")
        assert stations == [Station("KEXP", "http://kexp", StationType.STREAM)]

    def test_drops_short_lines(self) -> None:
        """Test lines without a name and URL are dropped."""
        text = "name,url\nonly-a-name\n,http://no-name\nNo URL,\n\nFIP,http://fip\n"
        assert parse_station_csv(text) == [Station("FIP", "http://fip")]

    def test_windows_line_endings(self) -> None:
        """Test CRLF files parse cleanly."""
        text = "name,url\r\nKEXP,http://kexp\r\n"
        assert parse_station_csv(text) == [Station("KEXP", "http://kexp")]

    def test_header_only(self) -> None:
        """Test a header-only file yields nothing."""
        assert parse_station_csv("name,url,type\n") == []
        assert parse_station_csv("") == []


class TestDefaultStations:
    """Tests for the bundled default list."""

    def test_bundled_list_loads(self) -> None:
        """Test the bundled list is present and well-formed."""
        stations = load_default_stations()
        assert stations
        assert len({s.url for s in stations}) == len(stations)
        assert all(s.type is StationType.STREAM for s in stations)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing file yields an empty list."""
        assert load_default_stations(tmp_path / "missing.csv") == []


class TestSanitizingRedirectHandler:
    """Tests for redirect target sanitizing."""

    def test_strips_star_slash(self) -> None:
        """Test ``*/`` is removed from redirect targets."""
        handler = SanitizingRedirectHandler()
        req = urllib.request.Request("https://files.example.com/share/stations.csv")
        new_req = handler.redirect_request(
            req, None, 302, "Found", {}, "https://cdn.example.com/*/stations.csv"
        )
        assert new_req is not None
        assert new_req.full_url == "https://cdn.example.com/stations.csv"

    def test_leaves_clean_urls(self) -> None:
        """Test ordinary redirect targets are untouched."""
        handler = SanitizingRedirectHandler()
        req = urllib.request.Request("https://files.example.com/a.csv")
        new_req = handler.redirect_request(req, None, 301, "Moved", {}, "https://cdn.example.com/a.csv")
        assert new_req is not None
        assert new_req.full_url == "https://cdn.example.com/a.csv"


class TestRemoteStationFetcher:
    """Tests for RemoteStationFetcher."""

    @pytest.mark.asyncio
    async def test_fetch_parses(self) -> None:
        """Test fetched text is parsed."""
        fetcher = RemoteStationFetcher()
        with patch.object(
            RemoteStationFetcher, "_fetch_text", return_value="name,url\nKEXP,http://kexp\n"
        ) as mock_fetch:
            stations = await fetcher.fetch(" https://example.com/stations.csv ")

        mock_fetch.assert_called_once_with("https://example.com/stations.csv")
        assert stations == [Station("KEXP", "http://kexp")]

    @pytest.mark.asyncio
    async def test_fetch_failure_is_empty(self) -> None:
        """Test network failures yield an empty list."""
        fetcher = RemoteStationFetcher()
        with patch.object(
            RemoteStationFetcher, "_fetch_text", side_effect=urllib.error.URLError("timed out")
        ):
            assert await fetcher.fetch("https://example.com/stations.csv") == []

    @pytest.mark.asyncio
    async def test_blank_url(self) -> None:
        """Test a blank URL is not fetched."""
        fetcher = RemoteStationFetcher()
        with patch.object(RemoteStationFetcher, "_fetch_text") as mock_fetch:
            assert await fetcher.fetch("  ") == []
        mock_fetch.assert_not_called()

    def test_sends_browser_user_agent(self) -> None:
        """Test requests carry a browser-like User-Agent."""
        fetcher = RemoteStationFetcher(timeout=3.0)
        with patch.object(fetcher._opener, "open") as mock_open:
            mock_open.return_value.__enter__.return_value.read.return_value = b"name,url\n"
            assert fetcher._fetch_text("https://example.com/s.csv") == "name,url\n"

        request = mock_open.call_args.args[0]
        assert request.get_header("User-agent") == BROWSER_USER_AGENT
        assert mock_open.call_args.kwargs["timeout"] == 3.0
