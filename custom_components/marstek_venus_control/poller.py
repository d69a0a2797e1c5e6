from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from homeassistant.core import CALLBACK_TYPE, HomeAssistant
from homeassistant.helpers.event import async_track_time_interval

from .const import POLL_INTERVAL_FAST, POLL_INTERVAL_SLOW, POLL_INTERVAL_STEPS
from .exceptions import MarstekError
from .models import DashboardSnapshot

_LOGGER = logging.getLogger(__name__)

ResultCallback = Callable[[DashboardSnapshot | None, MarstekError | None], None]


def select_interval(elapsed: float, failed: bool) -> timedelta:
    """Map the last round-trip time (seconds) to the next polling period."""
    if failed:
        return POLL_INTERVAL_SLOW
    for bound, interval in POLL_INTERVAL_STEPS:
        if elapsed < bound:
            return interval
    return POLL_INTERVAL_SLOW


class AdaptivePoller:
    """Recurring dashboard poll whose period follows the observed latency.

    Owns exactly one timer handle. A tick never overlaps a previous one of the
    same generation; when the selected period changes, the timer is cancelled
    and rearmed. A tick left over from before ``stop()`` does not block the
    next one and its result is dropped.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        fetch: Callable[[], Awaitable[DashboardSnapshot]],
        on_result: ResultCallback,
    ) -> None:
        self.hass = hass
        self._fetch = fetch
        self._on_result = on_result

        self.interval: timedelta = POLL_INTERVAL_FAST
        self.last_latency: float | None = None
        self.last_error: str | None = None

        self._active_generation: int | None = None
        self._generation = 0
        self._unsub_timer: CALLBACK_TYPE | None = None

    @property
    def running(self) -> bool:
        return self._unsub_timer is not None

    @property
    def in_flight(self) -> bool:
        return self._active_generation == self._generation

    def _now(self) -> float:
        return time.monotonic()

    def start(self) -> None:
        self._arm()

    def restart(self) -> None:
        """Stop, reset to the fast period and arm again (device reselection)."""
        self.stop()
        self.interval = POLL_INTERVAL_FAST
        self._arm()

    def stop(self) -> None:
        # In-flight results of the old generation are dropped on arrival.
        self._generation += 1
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._unsub_timer is not None:
            self._unsub_timer()
            self._unsub_timer = None

    def _arm(self) -> None:
        self._cancel_timer()
        self._unsub_timer = async_track_time_interval(
            self.hass, self._async_timer_fired, self.interval
        )

    async def _async_timer_fired(self, _now: datetime) -> None:
        await self.async_tick()

    async def async_tick(self) -> None:
        if self.in_flight:
            _LOGGER.debug("Previous poll still running, skipping tick")
            return

        generation = self._generation
        self._active_generation = generation
        snapshot: DashboardSnapshot | None = None
        error: MarstekError | None = None
        start = self._now()
        try:
            snapshot = await self._fetch()
        except MarstekError as err:
            error = err
        finally:
            elapsed = self._now() - start
            if self._active_generation == generation:
                self._active_generation = None

        if generation != self._generation:
            _LOGGER.debug("Poller was stopped, dropping result")
            return

        failed = error is not None or (snapshot is not None and snapshot.all_failed)
        self.last_latency = elapsed
        if error is not None:
            self.last_error = str(error)
        elif failed:
            self.last_error = "all status queries failed"
        else:
            self.last_error = None

        self._on_result(snapshot, error)

        interval = select_interval(elapsed, failed)
        if interval != self.interval:
            _LOGGER.info(
                "Poll took %.2fs (failed=%s), interval %ss -> %ss",
                elapsed,
                failed,
                self.interval.total_seconds(),
                interval.total_seconds(),
            )
            self.interval = interval
            if self.running:
                self._arm()
