# custom_components/marstek_venus_control/switch.py
from __future__ import annotations

from typing import Any

from homeassistant.components.switch import SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import MarstekVenusCoordinator
from .sensor import device_info_for


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities,
) -> None:
    coordinator: MarstekVenusCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([MarstekSchedulerSwitch(coordinator, device_info_for(coordinator))], True)


class MarstekSchedulerSwitch(CoordinatorEntity[MarstekVenusCoordinator], SwitchEntity):
    """Turns the day schedule on or off."""

    _attr_icon = "mdi:calendar-clock"

    def __init__(self, coordinator: MarstekVenusCoordinator, device_info: DeviceInfo) -> None:
        super().__init__(coordinator)
        self._device_info = device_info
        self._attr_unique_id = f"{coordinator.entry.entry_id}:scheduler"
        self._attr_name = "Venus scheduler"

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    @property
    def available(self) -> bool:
        return True

    @property
    def is_on(self) -> bool:
        return self.coordinator.scheduler.enabled

    async def async_turn_on(self, **kwargs: Any) -> None:
        await self.coordinator.scheduler.async_set_enabled(True)
        self.async_write_ha_state()
        await self.coordinator.scheduler.async_check(self.coordinator.device_mode)

    async def async_turn_off(self, **kwargs: Any) -> None:
        await self.coordinator.scheduler.async_set_enabled(False)
        self.async_write_ha_state()
