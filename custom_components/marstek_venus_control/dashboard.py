from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from homeassistant.util import dt as dt_util

from .const import (
    METHOD_BAT_STATUS,
    METHOD_EM_STATUS,
    METHOD_ES_MODE,
    METHOD_ES_STATUS,
    METHOD_GET_DEVICE,
    METHOD_WIFI_STATUS,
)
from .exceptions import MarstekError
from .models import DashboardSnapshot, Endpoint
from .transport import MarstekUdpClient

_LOGGER = logging.getLogger(__name__)

# Order matters: the device serves one UDP request at a time.
DASHBOARD_CALLS: tuple[tuple[str, str, dict[str, Any]], ...] = (
    ("device", METHOD_GET_DEVICE, {"ble_mac": "0"}),
    ("energy", METHOD_ES_STATUS, {"id": 0}),
    ("battery", METHOD_BAT_STATUS, {"id": 0}),
    ("wifi", METHOD_WIFI_STATUS, {"id": 0}),
    ("mode", METHOD_ES_MODE, {"id": 0}),
    ("meter", METHOD_EM_STATUS, {"id": 0}),
)


@dataclass(frozen=True)
class CallResult:
    """Outcome of one status query: a value or the error that replaced it."""

    value: dict[str, Any] | None = None
    error: MarstekError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or_empty(self) -> dict[str, Any]:
        return dict(self.value) if self.ok and self.value else {}


async def async_try_call(
    client: MarstekUdpClient,
    endpoint: Endpoint,
    method: str,
    params: dict[str, Any],
    rpc_id: int,
) -> CallResult:
    try:
        return CallResult(value=await client.async_call(endpoint, method, params, rpc_id))
    except MarstekError as err:
        return CallResult(error=err)


async def async_get_dashboard(client: MarstekUdpClient, endpoint: Endpoint) -> DashboardSnapshot:
    """Run the six status queries one after another and merge them.

    Never raises for a failing query; the field is left empty instead.
    """
    snapshot = DashboardSnapshot()

    for rpc_id, (name, method, params) in enumerate(DASHBOARD_CALLS, start=1):
        result = await async_try_call(client, endpoint, method, params, rpc_id)
        if not result.ok:
            _LOGGER.debug("%s on %s failed: %s", method, endpoint, result.error)
            snapshot.errors[name] = str(result.error)
        setattr(snapshot, name, result.value_or_empty())

    snapshot.timestamp = dt_util.now().strftime("%H:%M:%S")
    return snapshot
