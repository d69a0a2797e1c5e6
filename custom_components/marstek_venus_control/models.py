from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .const import DEFAULT_PORT

DASHBOARD_FIELDS = ("device", "battery", "energy", "mode", "meter", "wifi")


@dataclass(frozen=True)
class Endpoint:
    host: str
    port: int = DEFAULT_PORT

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class DiscoveredDevice:
    """A device that answered the discovery broadcast."""

    endpoint: Endpoint
    device_name: str | None = None
    version: int | None = None
    ble_mac: str | None = None
    wifi_mac: str | None = None
    wifi_name: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_result(cls, host: str, port: int, result: dict[str, Any]) -> DiscoveredDevice:
        ver = result.get("ver")
        return cls(
            endpoint=Endpoint(host, port),
            device_name=result.get("device"),
            version=ver if isinstance(ver, int) else None,
            ble_mac=result.get("ble_mac"),
            wifi_mac=result.get("wifi_mac"),
            wifi_name=result.get("wifi_name"),
            raw=result,
        )

    @property
    def label(self) -> str:
        if self.device_name:
            return f"{self.endpoint.host} - {self.device_name}"
        return self.endpoint.host

    def as_dict(self) -> dict[str, Any]:
        return {
            "host": self.endpoint.host,
            "port": self.endpoint.port,
            "device_name": self.device_name,
            "version": self.version,
            "ble_mac": self.ble_mac,
            "wifi_mac": self.wifi_mac,
            "wifi_name": self.wifi_name,
        }


@dataclass
class DashboardSnapshot:
    """Composite status of one device at one point in time.

    Every field is a dict; a sub-call that failed leaves ``{}`` behind and
    its error message in ``errors``.
    """

    device: dict[str, Any] = field(default_factory=dict)
    battery: dict[str, Any] = field(default_factory=dict)
    energy: dict[str, Any] = field(default_factory=dict)
    mode: dict[str, Any] = field(default_factory=dict)
    meter: dict[str, Any] = field(default_factory=dict)
    wifi: dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def all_failed(self) -> bool:
        return len(self.errors) == len(DASHBOARD_FIELDS)

    @property
    def device_mode(self) -> str | None:
        return self.mode.get("mode")

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {name: getattr(self, name) for name in DASHBOARD_FIELDS}
        data["timestamp"] = self.timestamp
        return data
