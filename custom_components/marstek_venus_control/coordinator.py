from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_HOST, CONF_PORT
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import ConfigEntryNotReady
from homeassistant.helpers.storage import Store
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .const import (
    CONF_DISCOVERY_TIMEOUT,
    CONF_SCHEDULER_INTERVAL,
    CONF_UDP_TIMEOUT,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_SCHEDULER_INTERVAL,
    DEFAULT_UDP_TIMEOUT,
    DOMAIN,
    STORAGE_VERSION,
)
from .discovery import async_discover_devices
from .exceptions import MarstekError
from .helpers import format_hour
from .models import DashboardSnapshot, DiscoveredDevice, Endpoint
from .poller import AdaptivePoller
from .scheduler import ModeScheduler
from .session import DeviceSession

_LOGGER = logging.getLogger(__name__)


class MarstekVenusCoordinator(DataUpdateCoordinator[DashboardSnapshot]):
    """Owns the device session, the adaptive poller and the mode scheduler.

    Data is pushed by the poller; the coordinator has no timer of its own.
    """

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        self.entry = entry
        opts = entry.options

        self.discovery_timeout = float(opts.get(CONF_DISCOVERY_TIMEOUT, DEFAULT_DISCOVERY_TIMEOUT))

        self.session = DeviceSession(hass, timeout=float(opts.get(CONF_UDP_TIMEOUT, DEFAULT_UDP_TIMEOUT)))
        self.session.set_device(Endpoint(entry.data[CONF_HOST], int(entry.data.get(CONF_PORT, DEFAULT_PORT))))

        self.poller = AdaptivePoller(hass, self.session.async_get_dashboard, self._handle_poll_result)

        store: Store[dict[str, Any]] = Store(hass, STORAGE_VERSION, f"{DOMAIN}.{entry.entry_id}")
        self.scheduler = ModeScheduler(
            hass,
            self.session,
            store,
            timedelta(seconds=int(opts.get(CONF_SCHEDULER_INTERVAL, DEFAULT_SCHEDULER_INTERVAL))),
        )

        super().__init__(
            hass=hass,
            logger=_LOGGER,
            config_entry=entry,
            name=f"{DOMAIN} {self.session.get_device()}",
            update_interval=None,
        )

    @property
    def endpoint(self) -> Endpoint | None:
        return self.session.get_device()

    @property
    def device_mode(self) -> str | None:
        return self.data.device_mode if self.data is not None else None

    @callback
    def _handle_poll_result(self, snapshot: DashboardSnapshot | None, error: MarstekError | None) -> None:
        if error is not None:
            self.async_set_update_error(error)
        elif snapshot is None or snapshot.all_failed:
            self.async_set_update_error(UpdateFailed("No status query answered"))
        else:
            self.async_set_updated_data(snapshot)

    async def _async_update_data(self) -> DashboardSnapshot:
        # Manual refresh goes through the poller so requests never overlap.
        await self.poller.async_tick()
        if self.poller.last_error or self.data is None:
            raise UpdateFailed(self.poller.last_error or "No data")
        return self.data

    async def async_start(self) -> None:
        await self.scheduler.async_load()

        await self.poller.async_tick()
        if self.data is None:
            raise ConfigEntryNotReady(f"No reply from {self.endpoint}: {self.poller.last_error}")

        self.poller.start()
        self.scheduler.start(lambda: self.device_mode)

    async def async_close(self) -> None:
        self.poller.stop()
        self.scheduler.stop()

    async def async_discover(self) -> list[DiscoveredDevice]:
        return await async_discover_devices(self.hass, timeout=self.discovery_timeout)

    async def async_select_device(self, endpoint: Endpoint) -> None:
        """Switch to another device after checking that it answers."""
        await self.session.async_check_device(endpoint)

        self.session.set_device(endpoint)
        self.scheduler.last_applied_id = None
        self.poller.restart()
        self.hass.async_create_task(self.poller.async_tick())

    async def async_set_mode(self, mode: str, config: dict[str, Any] | None = None) -> bool:
        ok = await self.session.async_set_mode(mode, config)
        await self.poller.async_tick()
        return ok

    def state_dict(self) -> dict[str, Any]:
        """Flat view of everything the entities display."""
        data: dict[str, Any] = self.data.as_dict() if self.data is not None else {}
        data["poller"] = {
            "interval": self.poller.interval.total_seconds(),
            "latency": self.poller.last_latency,
            "last_error": self.poller.last_error,
        }

        slot = self.scheduler.get_current_slot()
        data["scheduler"] = {
            "enabled": self.scheduler.enabled,
            "slot_count": len(self.scheduler.slots),
            "current_mode": slot.mode,
            "current_slot": f"{format_hour(slot.start_hour)}-{format_hour(slot.end_hour)}",
        }
        return data
