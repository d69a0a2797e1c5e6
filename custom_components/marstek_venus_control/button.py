# custom_components/marstek_venus_control/button.py
from __future__ import annotations

from dataclasses import dataclass

from homeassistant.components.button import ButtonEntity, ButtonEntityDescription
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN, MODE_AI, MODE_AUTO
from .coordinator import MarstekVenusCoordinator
from .exceptions import MarstekError
from .sensor import device_info_for


@dataclass(frozen=True, kw_only=True)
class VenusButtonEntityDescription(ButtonEntityDescription):
    mode: str


# Manual and Passive need a power config; they are set through the set_mode service.
BUTTONS: list[VenusButtonEntityDescription] = [
    VenusButtonEntityDescription(key="auto_mode", name="Auto mode", mode=MODE_AUTO),
    VenusButtonEntityDescription(key="ai_mode", name="AI mode", mode=MODE_AI),
]


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities,
) -> None:
    coordinator: MarstekVenusCoordinator = hass.data[DOMAIN][entry.entry_id]
    device_info = device_info_for(coordinator)

    entities: list[ButtonEntity] = [MarstekVenusModeButton(coordinator, device_info, desc) for desc in BUTTONS]
    async_add_entities(entities, True)


class MarstekVenusModeButton(CoordinatorEntity[MarstekVenusCoordinator], ButtonEntity):
    entity_description: VenusButtonEntityDescription

    def __init__(
        self,
        coordinator: MarstekVenusCoordinator,
        device_info: DeviceInfo,
        desc: VenusButtonEntityDescription,
    ) -> None:
        super().__init__(coordinator)
        self.entity_description = desc
        self._device_info = device_info

        self._attr_unique_id = f"{coordinator.entry.entry_id}:{desc.key}"
        self._attr_name = f"Venus {desc.name}"

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    async def async_press(self) -> None:
        mode = self.entity_description.mode
        ok = await self.coordinator.async_set_mode(mode)
        if not ok:
            raise MarstekError(f"Device rejected mode {mode}")
