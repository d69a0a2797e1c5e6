# custom_components/marstek_venus_control/services.py
# -----------------------------------------------------------
# Integration services: device discovery/selection, mode
# changes and the day schedule editing operations.
# -----------------------------------------------------------

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from homeassistant.const import CONF_HOST, CONF_PORT
from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse, callback
import homeassistant.helpers.config_validation as cv

from .const import DEFAULT_DISCOVERY_TIMEOUT, DEFAULT_PORT, DOMAIN, MODES
from .coordinator import MarstekVenusCoordinator
from .discovery import async_discover_devices
from .exceptions import DeviceNotConfigured, InvalidSchedulerOperation, MarstekError
from .models import Endpoint
from .slots import SlotConfig

_LOGGER = logging.getLogger(__name__)

SERVICE_DISCOVER = "discover"
SERVICE_SELECT_DEVICE = "select_device"
SERVICE_SET_MODE = "set_mode"
SERVICE_GET_SCHEDULE = "get_schedule"
SERVICE_SPLIT_SLOT = "split_slot"
SERVICE_DELETE_SLOT = "delete_slot"
SERVICE_UPDATE_SLOT = "update_slot"
SERVICE_PREVIEW_BOUNDARY = "preview_boundary"
SERVICE_COMMIT_BOUNDARY = "commit_boundary"

ATTR_ENTRY_ID = "entry_id"
ATTR_MODE = "mode"
ATTR_CONFIG = "config"
ATTR_SLOT_ID = "slot_id"
ATTR_POWER = "power"
ATTR_IS_CHARGE = "is_charge"
ATTR_CD_TIME = "cd_time"
ATTR_INDEX = "index"
ATTR_HOUR = "hour"
ATTR_TIMEOUT = "timeout"

HOUR = vol.All(vol.Coerce(float), vol.Range(min=0, max=24))

BASE_SCHEMA = vol.Schema({vol.Optional(ATTR_ENTRY_ID): cv.string})

DISCOVER_SCHEMA = vol.Schema(
    {vol.Optional(ATTR_TIMEOUT, default=DEFAULT_DISCOVERY_TIMEOUT): vol.All(vol.Coerce(float), vol.Range(min=0.5, max=30))}
)
SELECT_DEVICE_SCHEMA = BASE_SCHEMA.extend(
    {
        vol.Required(CONF_HOST): cv.string,
        vol.Optional(CONF_PORT, default=DEFAULT_PORT): cv.port,
    }
)
SET_MODE_SCHEMA = BASE_SCHEMA.extend(
    {
        vol.Required(ATTR_MODE): vol.In(MODES),
        vol.Optional(ATTR_CONFIG): dict,
    }
)
SLOT_SCHEMA = BASE_SCHEMA.extend({vol.Required(ATTR_SLOT_ID): cv.string})
UPDATE_SLOT_SCHEMA = SLOT_SCHEMA.extend(
    {
        vol.Required(ATTR_MODE): vol.In(MODES),
        vol.Optional(ATTR_POWER): vol.All(vol.Coerce(float), vol.Range(min=0)),
        vol.Optional(ATTR_IS_CHARGE): cv.boolean,
        vol.Optional(ATTR_CD_TIME): vol.All(vol.Coerce(int), vol.Range(min=0)),
    }
)
PREVIEW_BOUNDARY_SCHEMA = BASE_SCHEMA.extend(
    {
        vol.Required(ATTR_INDEX): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Required(ATTR_HOUR): HOUR,
    }
)
COMMIT_BOUNDARY_SCHEMA = BASE_SCHEMA.extend(
    {
        vol.Required(ATTR_INDEX): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional(ATTR_HOUR): HOUR,
    }
)


def _get_coordinator(hass: HomeAssistant, call: ServiceCall) -> MarstekVenusCoordinator:
    """Resolve the coordinator a service call is aimed at."""
    coordinators: dict[str, MarstekVenusCoordinator] = hass.data.get(DOMAIN, {})
    entry_id = call.data.get(ATTR_ENTRY_ID)

    if entry_id:
        coordinator = coordinators.get(entry_id)
    elif len(coordinators) == 1:
        coordinator = next(iter(coordinators.values()))
    else:
        coordinator = None

    if coordinator is None:
        raise DeviceNotConfigured("No matching Marstek device, pass entry_id")
    return coordinator


def _schedule_response(coordinator: MarstekVenusCoordinator) -> dict[str, Any]:
    scheduler = coordinator.scheduler
    return {
        "enabled": scheduler.enabled,
        "current_slot_id": scheduler.get_current_slot().id,
        "slots": scheduler.slots.as_list(),
    }


@callback
def async_setup_services(hass: HomeAssistant) -> None:
    """Register all integration services."""

    async def handle_discover(call: ServiceCall) -> ServiceResponse:
        devices = await async_discover_devices(hass, timeout=call.data[ATTR_TIMEOUT])
        return {"devices": [d.as_dict() for d in devices]}

    async def handle_select_device(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call)
        endpoint = Endpoint(call.data[CONF_HOST], call.data[CONF_PORT])
        _LOGGER.debug("Service %s called with %s", SERVICE_SELECT_DEVICE, endpoint)
        await coordinator.async_select_device(endpoint)

    async def handle_set_mode(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call)
        mode = call.data[ATTR_MODE]
        ok = await coordinator.async_set_mode(mode, call.data.get(ATTR_CONFIG))
        if not ok:
            raise MarstekError(f"Device rejected mode {mode}")

    async def handle_get_schedule(call: ServiceCall) -> ServiceResponse:
        return _schedule_response(_get_coordinator(hass, call))

    async def handle_split_slot(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass, call)
        new_slot = await coordinator.scheduler.async_split_slot(call.data[ATTR_SLOT_ID])
        if new_slot is None:
            raise InvalidSchedulerOperation("Slot not found or too short to split")
        coordinator.async_update_listeners()
        return _schedule_response(coordinator)

    async def handle_delete_slot(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass, call)
        if not await coordinator.scheduler.async_delete_slot(call.data[ATTR_SLOT_ID]):
            raise InvalidSchedulerOperation("Slot not found or it is the last one")
        coordinator.async_update_listeners()
        return _schedule_response(coordinator)

    async def handle_update_slot(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass, call)
        config = SlotConfig(
            power=call.data.get(ATTR_POWER),
            is_charge=call.data.get(ATTR_IS_CHARGE),
            cd_time=call.data.get(ATTR_CD_TIME),
        )
        ok = await coordinator.scheduler.async_update_slot(call.data[ATTR_SLOT_ID], call.data[ATTR_MODE], config)
        if not ok:
            raise InvalidSchedulerOperation("Slot not found")
        coordinator.async_update_listeners()
        return _schedule_response(coordinator)

    async def handle_preview_boundary(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass, call)
        hour = coordinator.scheduler.preview_boundary(call.data[ATTR_INDEX], call.data[ATTR_HOUR])
        if hour is None:
            raise InvalidSchedulerOperation(f"Boundary {call.data[ATTR_INDEX]} does not exist")
        return _schedule_response(coordinator)

    async def handle_commit_boundary(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass, call)
        ok = await coordinator.scheduler.async_commit_boundary(call.data[ATTR_INDEX], call.data.get(ATTR_HOUR))
        if not ok:
            raise InvalidSchedulerOperation(f"Boundary {call.data[ATTR_INDEX]} does not exist")
        coordinator.async_update_listeners()
        return _schedule_response(coordinator)

    hass.services.async_register(
        DOMAIN, SERVICE_DISCOVER, handle_discover, schema=DISCOVER_SCHEMA, supports_response=SupportsResponse.ONLY
    )
    hass.services.async_register(DOMAIN, SERVICE_SELECT_DEVICE, handle_select_device, schema=SELECT_DEVICE_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_SET_MODE, handle_set_mode, schema=SET_MODE_SCHEMA)
    hass.services.async_register(
        DOMAIN, SERVICE_GET_SCHEDULE, handle_get_schedule, schema=BASE_SCHEMA, supports_response=SupportsResponse.ONLY
    )

    for name, handler, schema in (
        (SERVICE_SPLIT_SLOT, handle_split_slot, SLOT_SCHEMA),
        (SERVICE_DELETE_SLOT, handle_delete_slot, SLOT_SCHEMA),
        (SERVICE_UPDATE_SLOT, handle_update_slot, UPDATE_SLOT_SCHEMA),
        (SERVICE_PREVIEW_BOUNDARY, handle_preview_boundary, PREVIEW_BOUNDARY_SCHEMA),
        (SERVICE_COMMIT_BOUNDARY, handle_commit_boundary, COMMIT_BOUNDARY_SCHEMA),
    ):
        hass.services.async_register(DOMAIN, name, handler, schema=schema, supports_response=SupportsResponse.OPTIONAL)
