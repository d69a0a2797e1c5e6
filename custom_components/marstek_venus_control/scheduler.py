from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from homeassistant.core import CALLBACK_TYPE, HomeAssistant
from homeassistant.helpers.event import async_call_later, async_track_time_interval
from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from .const import (
    DEFAULT_SCHEDULER_INTERVAL,
    MODE_MANUAL,
    MODE_PASSIVE,
    SCHEDULER_STARTUP_DELAY,
)
from .exceptions import MarstekError
from .helpers import format_hour
from .session import DeviceSession
from .slots import SlotConfig, SlotList, TimeSlot

_LOGGER = logging.getLogger(__name__)


def current_hour() -> float:
    now = dt_util.now()
    return now.hour + now.minute / 60 + now.second / 3600


def slot_mode_config(slot: TimeSlot, now_hour: float) -> dict[str, Any] | None:
    """Mode-specific ES.SetMode config for a slot (None for Auto/AI)."""
    config = slot.config or SlotConfig()
    if slot.mode == MODE_MANUAL:
        return {
            "time_num": 0,
            "start_time": format_hour(slot.start_hour),
            "end_time": format_hour(slot.end_hour),
            "week_set": 127,
            "power": config.signed_power,
            "enable": 1,
        }
    if slot.mode == MODE_PASSIVE:
        if config.cd_time is not None:
            cd_time = int(config.cd_time)
        else:
            cd_time = max(int(round((slot.end_hour - now_hour) * 3600)), 0)
        return {"power": config.signed_power, "cd_time": cd_time}
    return None


class ModeScheduler:
    """Applies the mode of the current time slot to the device."""

    def __init__(
        self,
        hass: HomeAssistant,
        session: DeviceSession,
        store: Store,
        interval: timedelta = timedelta(seconds=DEFAULT_SCHEDULER_INTERVAL),
    ) -> None:
        self.hass = hass
        self.session = session
        self.store = store
        self.interval = interval

        self.slots = SlotList()
        self.enabled = False
        self.last_applied_id: str | None = None

        self._get_device_mode: Callable[[], str | None] | None = None
        self._unsub_interval: CALLBACK_TYPE | None = None
        self._unsub_startup: CALLBACK_TYPE | None = None

    # ---- persistence ----

    async def async_load(self) -> None:
        data = await self.store.async_load()
        if not isinstance(data, dict):
            return

        raw_slots = data.get("slots")
        if raw_slots:
            try:
                self.slots = SlotList.from_list(raw_slots)
            except ValueError as err:
                _LOGGER.warning("Discarding stored schedule, using default: %s", err)
                self.slots = SlotList()
        self.enabled = bool(data.get("enabled", False))

    async def async_save(self) -> None:
        await self.store.async_save({"slots": self.slots.as_list(), "enabled": self.enabled})

    async def _async_commit(self) -> None:
        self.last_applied_id = None
        await self.async_save()

    # ---- structural operations ----

    async def async_split_slot(self, slot_id: str) -> TimeSlot | None:
        new_slot = self.slots.split(slot_id)
        if new_slot is not None:
            await self._async_commit()
        return new_slot

    async def async_delete_slot(self, slot_id: str) -> bool:
        if not self.slots.delete(slot_id):
            return False
        await self._async_commit()
        return True

    async def async_update_slot(
        self, slot_id: str, mode: str, config: SlotConfig | None = None
    ) -> bool:
        if not self.slots.update(slot_id, mode, config):
            return False
        await self._async_commit()
        return True

    def preview_boundary(self, index: int, hour: float) -> float | None:
        """Move a boundary in memory only (during a drag)."""
        return self.slots.move_boundary(index, hour)

    async def async_commit_boundary(self, index: int, hour: float | None = None) -> bool:
        """Finish a drag: optionally apply a final position, then persist."""
        if hour is not None and self.slots.move_boundary(index, hour) is None:
            return False
        if not 0 <= index < len(self.slots) - 1:
            return False
        await self._async_commit()
        return True

    async def async_set_enabled(self, enabled: bool) -> None:
        self.enabled = bool(enabled)
        await self._async_commit()

    def get_current_slot(self, now_hour: float | None = None) -> TimeSlot:
        return self.slots.current(current_hour() if now_hour is None else now_hour)

    # ---- periodic check ----

    async def async_check(self, current_device_mode: str | None, now_hour: float | None = None) -> bool:
        """Align the device with the current slot; return True if a command was sent."""
        if not self.enabled or self.session.get_device() is None:
            return False

        if now_hour is None:
            now_hour = current_hour()
        slot = self.slots.current(now_hour)
        if slot.id == self.last_applied_id:
            return False

        if slot.mode == current_device_mode:
            self.last_applied_id = slot.id
            return False

        _LOGGER.info(
            "Slot %s-%s wants %s, device is in %s",
            format_hour(slot.start_hour),
            format_hour(slot.end_hour),
            slot.mode,
            current_device_mode,
        )
        try:
            ok = await self.session.async_set_mode(slot.mode, slot_mode_config(slot, now_hour))
        except MarstekError as err:
            _LOGGER.warning("Scheduler could not switch to %s: %s", slot.mode, err)
            return True

        if ok:
            self.last_applied_id = slot.id
        return True

    def start(self, get_device_mode: Callable[[], str | None]) -> None:
        self.stop()
        self._get_device_mode = get_device_mode
        self._unsub_interval = async_track_time_interval(self.hass, self._async_periodic, self.interval)
        self._unsub_startup = async_call_later(self.hass, SCHEDULER_STARTUP_DELAY, self._async_startup)

    def stop(self) -> None:
        if self._unsub_interval is not None:
            self._unsub_interval()
            self._unsub_interval = None
        if self._unsub_startup is not None:
            self._unsub_startup()
            self._unsub_startup = None

    async def _async_startup(self, now: datetime) -> None:
        self._unsub_startup = None
        await self._async_periodic(now)

    async def _async_periodic(self, _now: datetime) -> None:
        mode = self._get_device_mode() if self._get_device_mode else None
        await self.async_check(mode)
