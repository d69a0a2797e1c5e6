# custom_components/marstek_venus_control/sensor.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import (
    PERCENTAGE,
    SIGNAL_STRENGTH_DECIBELS_MILLIWATT,
    EntityCategory,
    UnitOfPower,
    UnitOfTemperature,
    UnitOfTime,
)
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import MarstekVenusCoordinator
from .helpers import dig


@dataclass(frozen=True, kw_only=True)
class VenusSensorEntityDescription(SensorEntityDescription):
    path: str
    always_available: bool = False


def _power(key: str, path: str) -> VenusSensorEntityDescription:
    return VenusSensorEntityDescription(
        key=key,
        name=key,
        path=path,
        native_unit_of_measurement=UnitOfPower.WATT,
        device_class=SensorDeviceClass.POWER,
        state_class=SensorStateClass.MEASUREMENT,
    )


def _energy_total(key: str, path: str) -> VenusSensorEntityDescription:
    return VenusSensorEntityDescription(
        key=key,
        name=key,
        path=path,
        native_unit_of_measurement="Wh",
        device_class=SensorDeviceClass.ENERGY,
        state_class=SensorStateClass.TOTAL_INCREASING,
    )


# ---- Sensors ----
SENSORS: list[VenusSensorEntityDescription] = [
    # Device (Marstek.GetDevice)
    VenusSensorEntityDescription(key="device_model", name="device_model", path="device.device"),
    VenusSensorEntityDescription(key="firmware", name="firmware", path="device.ver", entity_category=EntityCategory.DIAGNOSTIC),

    # Battery (Bat.GetStatus)
    VenusSensorEntityDescription(
        key="bat_soc",
        name="bat_soc",
        path="battery.soc",
        native_unit_of_measurement=PERCENTAGE,
        device_class=SensorDeviceClass.BATTERY,
        state_class=SensorStateClass.MEASUREMENT,
    ),
    VenusSensorEntityDescription(
        key="bat_temp",
        name="bat_temp",
        path="battery.bat_temp",
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        device_class=SensorDeviceClass.TEMPERATURE,
        state_class=SensorStateClass.MEASUREMENT,
    ),
    VenusSensorEntityDescription(
        key="bat_capacity",
        name="bat_capacity",
        path="battery.bat_capacity",
        native_unit_of_measurement="Wh",
        device_class=SensorDeviceClass.ENERGY_STORAGE,
        state_class=SensorStateClass.MEASUREMENT,
    ),
    VenusSensorEntityDescription(
        key="rated_capacity",
        name="rated_capacity",
        path="battery.rated_capacity",
        native_unit_of_measurement="Wh",
        device_class=SensorDeviceClass.ENERGY_STORAGE,
    ),

    # ES (ES.GetStatus)
    _power("pv_power", "energy.pv_power"),
    _power("bat_power", "energy.bat_power"),
    _power("ongrid_power", "energy.ongrid_power"),
    _power("offgrid_power", "energy.offgrid_power"),
    _energy_total("total_pv_energy", "energy.total_pv_energy"),
    _energy_total("total_grid_output_energy", "energy.total_grid_output_energy"),
    _energy_total("total_grid_input_energy", "energy.total_grid_input_energy"),
    _energy_total("total_load_energy", "energy.total_load_energy"),

    # Meter (EM.GetStatus)
    _power("meter_a_power", "meter.a_power"),
    _power("meter_b_power", "meter.b_power"),
    _power("meter_c_power", "meter.c_power"),
    _power("meter_total_power", "meter.total_power"),

    # Wifi (Wifi.GetStatus)
    VenusSensorEntityDescription(key="wifi_ssid", name="wifi_ssid", path="wifi.ssid", entity_category=EntityCategory.DIAGNOSTIC),
    VenusSensorEntityDescription(
        key="wifi_rssi",
        name="wifi_rssi",
        path="wifi.rssi",
        native_unit_of_measurement=SIGNAL_STRENGTH_DECIBELS_MILLIWATT,
        device_class=SensorDeviceClass.SIGNAL_STRENGTH,
        state_class=SensorStateClass.MEASUREMENT,
        entity_category=EntityCategory.DIAGNOSTIC,
    ),

    # Mode (ES.GetMode)
    VenusSensorEntityDescription(key="mode", name="mode", path="mode.mode"),
    VenusSensorEntityDescription(key="last_update", name="last_update", path="timestamp", entity_category=EntityCategory.DIAGNOSTIC),

    # Poller diagnostics
    VenusSensorEntityDescription(
        key="poll_interval",
        name="poll_interval",
        path="poller.interval",
        native_unit_of_measurement=UnitOfTime.SECONDS,
        entity_category=EntityCategory.DIAGNOSTIC,
        always_available=True,
    ),
    VenusSensorEntityDescription(
        key="poll_latency",
        name="poll_latency",
        path="poller.latency",
        native_unit_of_measurement=UnitOfTime.SECONDS,
        suggested_display_precision=2,
        entity_category=EntityCategory.DIAGNOSTIC,
        always_available=True,
    ),
    VenusSensorEntityDescription(
        key="last_error",
        name="last_error",
        path="poller.last_error",
        entity_category=EntityCategory.DIAGNOSTIC,
        always_available=True,
    ),

    # Scheduler
    VenusSensorEntityDescription(key="schedule_mode", name="schedule_mode", path="scheduler.current_mode", always_available=True),
    VenusSensorEntityDescription(key="schedule_slot", name="schedule_slot", path="scheduler.current_slot", always_available=True),
]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry, async_add_entities) -> None:
    coordinator: MarstekVenusCoordinator = hass.data[DOMAIN][entry.entry_id]

    device_info = device_info_for(coordinator)

    entities: list[SensorEntity] = [
        MarstekVenusSensor(coordinator, device_info, desc) for desc in SENSORS
    ]
    async_add_entities(entities, True)


def device_info_for(coordinator: MarstekVenusCoordinator) -> DeviceInfo:
    model = dig(coordinator.data.device if coordinator.data else {}, "device") or "Venus"
    return DeviceInfo(
        identifiers={(DOMAIN, coordinator.entry.entry_id)},
        name=f"Marstek {model}",
        manufacturer="Marstek",
        model=model,
    )


class MarstekVenusSensor(CoordinatorEntity[MarstekVenusCoordinator], SensorEntity):
    entity_description: VenusSensorEntityDescription

    def __init__(
        self,
        coordinator: MarstekVenusCoordinator,
        device_info: DeviceInfo,
        desc: VenusSensorEntityDescription,
    ) -> None:
        super().__init__(coordinator)
        self._device_info = device_info
        self.entity_description = desc

        self._attr_unique_id = f"{coordinator.entry.entry_id}:{desc.key}"
        self._attr_name = f"Venus {desc.name}"

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    @property
    def available(self) -> bool:
        if self.entity_description.always_available:
            return True
        return self.coordinator.last_update_success

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        if self.entity_description.key != "schedule_slot":
            return None
        scheduler = self.coordinator.scheduler
        return {"enabled": scheduler.enabled, "slots": scheduler.slots.as_list()}

    @property
    def native_value(self):
        val = dig(self.coordinator.state_dict(), self.entity_description.path)
        if val is None:
            return None

        # Round power/energy readings, keep temperatures and diagnostics as reported
        if isinstance(val, (int, float)) and not isinstance(val, bool):
            if self.entity_description.device_class in (
                SensorDeviceClass.POWER,
                SensorDeviceClass.ENERGY,
                SensorDeviceClass.ENERGY_STORAGE,
            ):
                return int(round(float(val), 0))
            return val
        return val
