from __future__ import annotations

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import DOMAIN
from .coordinator import MarstekVenusCoordinator


async def async_get_config_entry_diagnostics(hass: HomeAssistant, entry: ConfigEntry) -> dict[str, Any]:
    coordinator: MarstekVenusCoordinator = hass.data[DOMAIN][entry.entry_id]
    endpoint = coordinator.endpoint
    snapshot = coordinator.data

    return {
        "entry": {
            "host": endpoint.host if endpoint else None,
            "port": endpoint.port if endpoint else None,
            "options": dict(entry.options),
        },
        "coordinator": {
            "last_update_success": coordinator.last_update_success,
            "poll_interval": coordinator.poller.interval.total_seconds(),
            "poll_latency": coordinator.poller.last_latency,
            "last_error": coordinator.poller.last_error,
        },
        "scheduler": {
            "enabled": coordinator.scheduler.enabled,
            "last_applied_id": coordinator.scheduler.last_applied_id,
            "slots": coordinator.scheduler.slots.as_list(),
        },
        "data": snapshot.as_dict() if snapshot is not None else None,
        "failed_queries": snapshot.errors if snapshot is not None else None,
    }
