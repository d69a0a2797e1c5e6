# custom_components/marstek_venus_control/config_flow.py
from __future__ import annotations

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.const import CONF_HOST, CONF_PORT
from homeassistant.data_entry_flow import FlowResult

from .const import (
    CONF_DISCOVERY_TIMEOUT,
    CONF_SCHEDULER_INTERVAL,
    CONF_UDP_TIMEOUT,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_SCHEDULER_INTERVAL,
    DEFAULT_UDP_TIMEOUT,
    DOMAIN,
)
from .discovery import async_discover_devices
from .exceptions import TransportError
from .models import DiscoveredDevice
from .transport import async_test_udp_connection

CONF_DEVICE = "device"
DEVICE_MANUAL = "__manual__"

DEFAULT_OPTIONS = {
    CONF_UDP_TIMEOUT: DEFAULT_UDP_TIMEOUT,
    CONF_DISCOVERY_TIMEOUT: DEFAULT_DISCOVERY_TIMEOUT,
    CONF_SCHEDULER_INTERVAL: DEFAULT_SCHEDULER_INTERVAL,
}


class MarstekVenusConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    VERSION = 1

    def __init__(self) -> None:
        self._discovered: dict[str, DiscoveredDevice] = {}

    async def _async_create(self, host: str, port: int, errors: dict[str, str]) -> FlowResult | None:
        ok = await async_test_udp_connection(self.hass, host, port, DEFAULT_UDP_TIMEOUT)
        if not ok:
            errors["base"] = "cannot_connect"
            return None

        await self.async_set_unique_id(f"{host}:{port}")
        self._abort_if_unique_id_configured()

        found = self._discovered.get(host)
        name = found.device_name if found and found.device_name else "Venus"
        return self.async_create_entry(
            title=f"Marstek {name} ({host})",
            data={CONF_HOST: host, CONF_PORT: port},
            options=dict(DEFAULT_OPTIONS),
        )

    async def async_step_user(self, user_input: dict | None = None) -> FlowResult:
        """Start with discovery list, allow manual IP fallback."""
        errors: dict[str, str] = {}

        if user_input is not None:
            choice = user_input[CONF_DEVICE]
            if choice == DEVICE_MANUAL:
                return await self.async_step_manual()

            found = self._discovered.get(choice)
            port = found.endpoint.port if found else DEFAULT_PORT
            result = await self._async_create(choice, port, errors)
            if result is not None:
                return result

        try:
            devices = await async_discover_devices(self.hass, DEFAULT_PORT, DEFAULT_DISCOVERY_TIMEOUT)
        except TransportError:
            devices = []
            errors["base"] = "discovery_failed"

        self._discovered = {d.endpoint.host: d for d in devices}
        if not self._discovered and not errors:
            return await self.async_step_manual()

        choices: dict[str, str] = {host: d.label for host, d in self._discovered.items()}
        # Always include manual fallback
        choices[DEVICE_MANUAL] = "Enter IP manually"

        schema = vol.Schema({vol.Required(CONF_DEVICE): vol.In(choices)})
        return self.async_show_form(step_id="user", data_schema=schema, errors=errors)

    async def async_step_manual(self, user_input: dict | None = None) -> FlowResult:
        """Manual IP entry fallback."""
        errors: dict[str, str] = {}

        if user_input is not None:
            result = await self._async_create(user_input[CONF_HOST], user_input[CONF_PORT], errors)
            if result is not None:
                return result

        schema = vol.Schema(
            {
                vol.Required(CONF_HOST): str,
                vol.Required(CONF_PORT, default=DEFAULT_PORT): vol.Coerce(int),
            }
        )
        return self.async_show_form(step_id="manual", data_schema=schema, errors=errors)

    @staticmethod
    def async_get_options_flow(config_entry: config_entries.ConfigEntry) -> config_entries.OptionsFlow:
        return MarstekVenusOptionsFlowHandler(config_entry)


class MarstekVenusOptionsFlowHandler(config_entries.OptionsFlow):
    def __init__(self, entry: config_entries.ConfigEntry) -> None:
        self.entry = entry

    async def async_step_init(self, user_input: dict | None = None) -> FlowResult:
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        opts = self.entry.options

        schema = vol.Schema(
            {
                vol.Required(
                    CONF_UDP_TIMEOUT,
                    default=opts.get(CONF_UDP_TIMEOUT, DEFAULT_UDP_TIMEOUT),
                ): vol.All(vol.Coerce(float), vol.Range(min=0.5, max=30)),
                vol.Required(
                    CONF_DISCOVERY_TIMEOUT,
                    default=opts.get(CONF_DISCOVERY_TIMEOUT, DEFAULT_DISCOVERY_TIMEOUT),
                ): vol.All(vol.Coerce(float), vol.Range(min=0.5, max=30)),
                vol.Required(
                    CONF_SCHEDULER_INTERVAL,
                    default=opts.get(CONF_SCHEDULER_INTERVAL, DEFAULT_SCHEDULER_INTERVAL),
                ): vol.All(vol.Coerce(int), vol.Range(min=10, max=3600)),
            }
        )

        return self.async_show_form(step_id="init", data_schema=schema)
