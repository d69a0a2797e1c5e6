from __future__ import annotations

import asyncio
import logging
from typing import Any

import voluptuous as vol

from homeassistant.core import HomeAssistant

from .const import (
    DEFAULT_UDP_TIMEOUT,
    METHOD_ES_STATUS,
    METHOD_SET_MODE,
    MODE_AI,
    MODE_AUTO,
    MODE_MANUAL,
    MODE_PASSIVE,
)
from .dashboard import async_get_dashboard
from .exceptions import DeviceNotConfigured, InvalidModeConfig
from .helpers import is_trueish
from .models import DashboardSnapshot, Endpoint
from .transport import MarstekUdpClient

_LOGGER = logging.getLogger(__name__)

TIME_OF_DAY = vol.Match(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")

MANUAL_CFG_SCHEMA = vol.Schema(
    {
        vol.Optional("time_num", default=0): vol.All(vol.Coerce(int), vol.Range(min=0, max=9)),
        vol.Required("start_time"): TIME_OF_DAY,
        vol.Required("end_time"): TIME_OF_DAY,
        vol.Optional("week_set", default=127): vol.All(vol.Coerce(int), vol.Range(min=0, max=127)),
        vol.Required("power"): vol.Coerce(int),
        vol.Optional("enable", default=1): vol.In([0, 1]),
    }
)

PASSIVE_CFG_SCHEMA = vol.Schema(
    {
        vol.Required("power"): vol.Coerce(int),
        vol.Required("cd_time"): vol.All(vol.Coerce(int), vol.Range(min=0)),
    }
)


def build_mode_config(mode: str, config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the ``config`` object of an ES.SetMode request."""
    if mode == MODE_AUTO:
        return {"mode": MODE_AUTO, "auto_cfg": {"enable": 1}}
    if mode == MODE_AI:
        return {"mode": MODE_AI, "ai_cfg": {"enable": 1}}
    if mode == MODE_MANUAL:
        key, schema = "manual_cfg", MANUAL_CFG_SCHEMA
    elif mode == MODE_PASSIVE:
        key, schema = "passive_cfg", PASSIVE_CFG_SCHEMA
    else:
        raise InvalidModeConfig(f"Unknown mode: {mode}")

    if not config:
        raise InvalidModeConfig(f"{mode} mode requires {key}")
    try:
        cfg = schema(dict(config))
    except vol.Invalid as err:
        raise InvalidModeConfig(f"Invalid {key}: {err}") from err
    return {"mode": mode, key: cfg}


class DeviceSession:
    """Currently selected device and the calls made against it.

    The device answers one UDP request at a time, so every exchange holds
    ``_lock``. A dashboard read holds it across all six queries.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        timeout: float = DEFAULT_UDP_TIMEOUT,
        client: MarstekUdpClient | None = None,
    ) -> None:
        self.client = client or MarstekUdpClient(hass, timeout)
        self._endpoint: Endpoint | None = None
        self._lock = asyncio.Lock()

    def set_device(self, endpoint: Endpoint) -> None:
        _LOGGER.debug("Selected device %s", endpoint)
        self._endpoint = endpoint

    def get_device(self) -> Endpoint | None:
        return self._endpoint

    def _require_device(self) -> Endpoint:
        if self._endpoint is None:
            raise DeviceNotConfigured("Device not configured, select a device first")
        return self._endpoint

    async def async_get_dashboard(self) -> DashboardSnapshot:
        endpoint = self._require_device()
        async with self._lock:
            return await async_get_dashboard(self.client, endpoint)

    async def async_check_device(self, endpoint: Endpoint) -> dict[str, Any]:
        """Check that a (not yet selected) device answers ES.GetStatus."""
        async with self._lock:
            return await self.client.async_call(endpoint, METHOD_ES_STATUS, {"id": 0})

    async def async_set_mode(self, mode: str, config: dict[str, Any] | None = None) -> bool:
        """Send one ES.SetMode request; errors propagate to the caller."""
        endpoint = self._require_device()
        params = {"id": 0, "config": build_mode_config(mode, config)}

        async with self._lock:
            result = await self.client.async_call(endpoint, METHOD_SET_MODE, params, 20)

        ok = is_trueish(result.get("set_result", True))
        if ok:
            _LOGGER.info("Mode of %s set to %s", endpoint, mode)
        else:
            _LOGGER.warning("Device %s rejected mode %s: %s", endpoint, mode, result)
        return ok
