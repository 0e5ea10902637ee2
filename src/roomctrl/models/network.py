"""Network configuration model: one record per controlled system."""

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, cast

from roomctrl.models.station import Station


def _str_set(value: object) -> frozenset[str]:
    if not isinstance(value, list | tuple | set | frozenset):
        return frozenset()
    return frozenset(str(v) for v in cast(list[object], value))


@dataclass(frozen=True, slots=True)
class NetworkConfig:
    """Per-network preferences.

    Attributes:
        id: Stable identifier.
        display_name: Human-readable name.
        base_url: Base address of the control API (e.g. ``http://host:5005``).
        enabled: Whether the network is shown/controlled.
        show_default_presets: Include the bundled default catalog.
        disabled_favorite_urls: Favorites hidden on this network.
        last_known_favorites: Favorites cached from the last successful fetch,
            or None if never fetched.
        enabled_line_in_ids: Devices whose line-in is offered as a station.
        line_in_names: Device identifier to custom line-in display name.
        volume_disabled_ids: Devices with volume control disabled by the user.
    """

    id: str
    display_name: str
    base_url: str
    enabled: bool = True
    show_default_presets: bool = False
    disabled_favorite_urls: frozenset[str] = field(default_factory=frozenset)
    last_known_favorites: tuple[Station, ...] | None = None
    enabled_line_in_ids: frozenset[str] = field(default_factory=frozenset)
    line_in_names: dict[str, str] = field(default_factory=dict)
    volume_disabled_ids: frozenset[str] = field(default_factory=frozenset)

    @property
    def has_base_url(self) -> bool:
        """Return True if a usable base address is configured."""
        return self.base_url.strip().lower().startswith(("http://", "https://"))

    @property
    def api_url(self) -> str:
        """Return the base address without a trailing slash."""
        return self.base_url.strip().rstrip("/")

    @property
    def favorites(self) -> tuple[Station, ...]:
        """Return cached server favorites (empty if never fetched)."""
        return self.last_known_favorites or ()

    @property
    def enabled_favorites(self) -> list[Station]:
        """Return cached favorites not explicitly disabled on this network."""
        return [f for f in self.favorites if f.url not in self.disabled_favorite_urls]

    def line_in_name(self, device_id: str) -> str:
        """Return the custom line-in name for a device, or empty string."""
        return self.line_in_names.get(device_id, "")

    def with_favorites(self, favorites: list[Station]) -> "NetworkConfig":
        """Return a copy with the cached favorites replaced."""
        return replace(self, last_known_favorites=tuple(favorites))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NetworkConfig":
        """Create a config from its persisted form.

        Required keys are ``id``, ``display_name``, ``base_url`` and
        ``enabled``; every other field falls back to an empty/false default
        so records written by older versions still load.

        Raises:
            KeyError: If a required key is missing.
        """
        favorites_raw = data.get("last_known_favorites")
        favorites: tuple[Station, ...] | None = None
        if isinstance(favorites_raw, list):
            favorites = tuple(
                Station.from_dict(cast(dict[str, Any], f))
                for f in cast(list[object], favorites_raw)
                if isinstance(f, dict)
            )

        names_raw = data.get("line_in_names")
        names: dict[str, str] = {}
        if isinstance(names_raw, dict):
            names = {str(k): str(v) for k, v in cast(dict[object, object], names_raw).items()}

        return cls(
            id=str(data["id"]),
            display_name=str(data["display_name"]),
            base_url=str(data["base_url"]),
            enabled=bool(data["enabled"]),
            show_default_presets=bool(data.get("show_default_presets", False)),
            disabled_favorite_urls=_str_set(data.get("disabled_favorite_urls")),
            last_known_favorites=favorites,
            enabled_line_in_ids=_str_set(data.get("enabled_line_in_ids")),
            line_in_names=names,
            volume_disabled_ids=_str_set(data.get("volume_disabled_ids")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        result: dict[str, Any] = {
            "id": self.id,
            "display_name": self.display_name,
            "base_url": self.base_url,
            "enabled": self.enabled,
            "show_default_presets": self.show_default_presets,
            "disabled_favorite_urls": sorted(self.disabled_favorite_urls),
            "enabled_line_in_ids": sorted(self.enabled_line_in_ids),
            "line_in_names": dict(self.line_in_names),
            "volume_disabled_ids": sorted(self.volume_disabled_ids),
        }
        if self.last_known_favorites is not None:
            result["last_known_favorites"] = [s.to_dict() for s in self.last_known_favorites]
        return result


def create_network(display_name: str, base_url: str, *, enabled: bool = True) -> NetworkConfig:
    """Create a new network config with a fresh identifier.

    Args:
        display_name: Human-readable name.
        base_url: Base address of the control API.
        enabled: Whether the network starts enabled.
    """
    return NetworkConfig(
        id=str(uuid.uuid4()),
        display_name=display_name,
        base_url=base_url,
        enabled=enabled,
    )
