"""Partition of the day into contiguous mode slots.

A ``SlotList`` always covers ``[0, 24)`` hours with sorted, gapless,
non-overlapping slots of at least ``MIN_SLOT_DURATION`` each and is never
empty. Every mutating method either keeps that true or leaves the list
untouched and reports the refusal through its return value.
"""
from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, replace
from typing import Any

import voluptuous as vol

from .const import (
    CONFIGURABLE_MODES,
    DAY_HOURS,
    MIN_SLOT_DURATION,
    MODE_AUTO,
    MODES,
    SLOT_ROUNDING,
)

_LOGGER = logging.getLogger(__name__)

EPSILON = 1e-6
STEP_MINUTES = round(SLOT_ROUNDING * 60)

STORED_CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional("power"): vol.Any(None, vol.Coerce(float)),
        vol.Optional("isCharge"): vol.Any(None, bool),
        vol.Optional("is_charge"): vol.Any(None, bool),
        vol.Optional("cd_time"): vol.Any(None, vol.All(vol.Coerce(int), vol.Range(min=0))),
    },
    extra=vol.REMOVE_EXTRA,
)


def round_to_step(hour: float) -> float:
    """Round an hour value to the nearest 5 minutes."""
    steps = math.floor(hour * 60 / STEP_MINUTES + 0.5)
    return steps * STEP_MINUTES / 60


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class SlotConfig:
    power: float | None = None
    is_charge: bool | None = None
    cd_time: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SlotConfig | None:
        if not data:
            return None
        try:
            data = STORED_CONFIG_SCHEMA(data)
        except vol.Invalid as err:
            raise ValueError(f"invalid slot config: {err}") from err
        return cls(
            power=data.get("power"),
            is_charge=data.get("isCharge", data.get("is_charge")),
            cd_time=data.get("cd_time"),
        )

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.power is not None:
            out["power"] = self.power
        if self.is_charge is not None:
            out["isCharge"] = self.is_charge
        if self.cd_time is not None:
            out["cd_time"] = self.cd_time
        return out

    @property
    def signed_power(self) -> int:
        """Charging is a negative magnitude, discharging a positive one."""
        magnitude = abs(int(round(self.power or 0)))
        return -magnitude if self.is_charge else magnitude


@dataclass
class TimeSlot:
    id: str
    start_hour: float
    end_hour: float
    mode: str = MODE_AUTO
    config: SlotConfig | None = None

    def __post_init__(self) -> None:
        if self.mode not in CONFIGURABLE_MODES:
            self.config = None

    @property
    def duration(self) -> float:
        return self.end_hour - self.start_hour

    def contains(self, hour: float) -> bool:
        return self.start_hour <= hour < self.end_hour

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TimeSlot:
        return cls(
            id=str(data["id"]),
            start_hour=float(data["startHour"]),
            end_hour=float(data["endHour"]),
            mode=data.get("mode", MODE_AUTO),
            config=SlotConfig.from_dict(data.get("config")),
        )

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "startHour": self.start_hour,
            "endHour": self.end_hour,
            "mode": self.mode,
        }
        if self.config is not None:
            out["config"] = self.config.as_dict()
        return out


def default_slots() -> list[TimeSlot]:
    return [TimeSlot(id=_new_id(), start_hour=0.0, end_hour=DAY_HOURS, mode=MODE_AUTO)]


def validate_slots(slots: list[TimeSlot]) -> list[str]:
    """Return every partition rule the given slots break (empty when valid)."""
    if not slots:
        return ["slot list is empty"]

    problems: list[str] = []
    if abs(slots[0].start_hour) > EPSILON:
        problems.append(f"first slot starts at {slots[0].start_hour}")
    if abs(slots[-1].end_hour - DAY_HOURS) > EPSILON:
        problems.append(f"last slot ends at {slots[-1].end_hour}")

    seen: set[str] = set()
    for i, slot in enumerate(slots):
        if slot.id in seen:
            problems.append(f"duplicate slot id {slot.id}")
        seen.add(slot.id)
        if slot.mode not in MODES:
            problems.append(f"slot {i} has unknown mode {slot.mode}")
        if slot.duration < MIN_SLOT_DURATION - EPSILON:
            problems.append(f"slot {i} is shorter than {MIN_SLOT_DURATION}h")
        if i + 1 < len(slots) and abs(slot.end_hour - slots[i + 1].start_hour) > EPSILON:
            problems.append(f"gap or overlap between slot {i} and {i + 1}")
    return problems


class SlotList:
    """Ordered time slots covering one day."""

    def __init__(self, slots: list[TimeSlot] | None = None) -> None:
        self._slots: list[TimeSlot] = list(slots) if slots else default_slots()

    @classmethod
    def from_list(cls, data: list[dict[str, Any]]) -> SlotList:
        """Build from persisted data; raises ``ValueError`` when it is not a partition."""
        try:
            slots = sorted((TimeSlot.from_dict(item) for item in data), key=lambda s: s.start_hour)
        except (KeyError, TypeError, ValueError) as err:
            raise ValueError(f"unreadable slot data: {err}") from err
        problems = validate_slots(slots)
        if problems:
            raise ValueError("; ".join(problems))
        return cls(slots)

    def as_list(self) -> list[dict[str, Any]]:
        return [slot.as_dict() for slot in self._slots]

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self):
        return iter(self._slots)

    def __getitem__(self, index: int) -> TimeSlot:
        return self._slots[index]

    def index_of(self, slot_id: str) -> int | None:
        for i, slot in enumerate(self._slots):
            if slot.id == slot_id:
                return i
        return None

    def get(self, slot_id: str) -> TimeSlot | None:
        idx = self.index_of(slot_id)
        return None if idx is None else self._slots[idx]

    @property
    def is_valid(self) -> bool:
        return not validate_slots(self._slots)

    def current(self, now_hour: float) -> TimeSlot:
        for slot in self._slots:
            if slot.contains(now_hour):
                return slot
        # Only reachable for now_hour outside [0, 24).
        return self._slots[0] if now_hour < 0 else self._slots[-1]

    def split(self, slot_id: str) -> TimeSlot | None:
        """Split a slot at its (rounded) midpoint; return the new second half."""
        idx = self.index_of(slot_id)
        if idx is None:
            _LOGGER.debug("split: slot %s not found", slot_id)
            return None

        target = self._slots[idx]
        mid = round_to_step((target.start_hour + target.end_hour) / 2)
        if (
            mid - target.start_hour < MIN_SLOT_DURATION - EPSILON
            or target.end_hour - mid < MIN_SLOT_DURATION - EPSILON
        ):
            _LOGGER.debug("split: slot %s is too short to split", slot_id)
            return None

        new_slot = TimeSlot(
            id=_new_id(),
            start_hour=mid,
            end_hour=target.end_hour,
            mode=target.mode,
            config=replace(target.config) if target.config is not None else None,
        )
        target.end_hour = mid
        self._slots.insert(idx + 1, new_slot)
        return new_slot

    def delete(self, slot_id: str) -> bool:
        """Remove a slot and let a neighbour absorb its interval."""
        if len(self._slots) <= 1:
            _LOGGER.debug("delete: refusing to remove the only slot")
            return False
        idx = self.index_of(slot_id)
        if idx is None:
            _LOGGER.debug("delete: slot %s not found", slot_id)
            return False

        removed = self._slots.pop(idx)
        if idx > 0:
            self._slots[idx - 1].end_hour = removed.end_hour
        else:
            self._slots[0].start_hour = 0.0

        if len(self._slots) == 1:
            self._slots[0].start_hour = 0.0
            self._slots[0].end_hour = DAY_HOURS
        return True

    def move_boundary(self, index: int, proposed_hour: float) -> float | None:
        """Move the boundary between slot ``index`` and ``index + 1``.

        The value is clamped so both neighbours keep the minimum duration and
        rounded to 5 minutes. Returns the applied hour, or None if refused.
        """
        if not 0 <= index < len(self._slots) - 1:
            _LOGGER.debug("boundary %s does not exist", index)
            return None

        left, right = self._slots[index], self._slots[index + 1]
        low = left.start_hour + MIN_SLOT_DURATION
        high = right.end_hour - MIN_SLOT_DURATION
        if low > high + EPSILON:
            return None

        clamped = min(max(float(proposed_hour), low), high)
        value = round_to_step(clamped)
        if not low - EPSILON <= value <= high + EPSILON:
            value = clamped

        left.end_hour = value
        right.start_hour = value
        return value

    def update(self, slot_id: str, mode: str, config: SlotConfig | None = None) -> bool:
        if mode not in MODES:
            _LOGGER.debug("update: unknown mode %s", mode)
            return False
        slot = self.get(slot_id)
        if slot is None:
            _LOGGER.debug("update: slot %s not found", slot_id)
            return False
        slot.mode = mode
        slot.config = config if mode in CONFIGURABLE_MODES else None
        return True
