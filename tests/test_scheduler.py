import asyncio
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from custom_components.marstek_venus_control.exceptions import MarstekTimeout
from custom_components.marstek_venus_control.poller import AdaptivePoller
from custom_components.marstek_venus_control.scheduler import ModeScheduler, slot_mode_config
from custom_components.marstek_venus_control.session import DeviceSession
from custom_components.marstek_venus_control.slots import SlotConfig, SlotList, TimeSlot

from conftest import FakeStore

EVENT = "custom_components.marstek_venus_control.scheduler"


def day_plan():
    return SlotList(
        [
            TimeSlot(id="night", start_hour=0.0, end_hour=8.0, mode="Auto"),
            TimeSlot(id="charge", start_hour=8.0, end_hour=14.0, mode="Manual", config=SlotConfig(power=800, is_charge=True)),
            TimeSlot(id="evening", start_hour=14.0, end_hour=24.0, mode="Passive", config=SlotConfig(power=600)),
        ]
    )


@pytest.fixture(name="scheduler")
def fixture_scheduler(session, store):
    scheduler = ModeScheduler(None, session, store)
    scheduler.slots = day_plan()
    scheduler.enabled = True
    return scheduler


def set_mode_calls(client):
    return [call for call in client.calls if call[1] == "ES.SetMode"]


async def test_check_sends_command_once(scheduler, client):
    assert await scheduler.async_check("Auto", now_hour=9.5)
    assert not await scheduler.async_check("Auto", now_hour=9.5)

    calls = set_mode_calls(client)
    assert len(calls) == 1
    assert calls[0][2]["config"] == {
        "mode": "Manual",
        "manual_cfg": {
            "time_num": 0,
            "start_time": "08:00",
            "end_time": "14:00",
            "week_set": 127,
            "power": -800,
            "enable": 1,
        },
    }
    assert scheduler.last_applied_id == "charge"


async def test_aligned_device_needs_no_command(scheduler, client):
    assert not await scheduler.async_check("Auto", now_hour=3)
    assert client.calls == []
    assert scheduler.last_applied_id == "night"


async def test_new_slot_triggers_again(scheduler, client):
    await scheduler.async_check("Auto", now_hour=3)
    assert await scheduler.async_check("Auto", now_hour=20)

    cfg = set_mode_calls(client)[0][2]["config"]
    assert cfg["mode"] == "Passive"
    # discharging is positive; countdown runs to the end of the slot
    assert cfg["passive_cfg"] == {"power": 600, "cd_time": 4 * 3600}


async def test_disabled_or_unconfigured_is_noop(scheduler, client, store):
    scheduler.enabled = False
    assert not await scheduler.async_check("Auto", now_hour=9)

    unconfigured = ModeScheduler(None, DeviceSession(None, client=client), store)
    unconfigured.enabled = True
    assert not await unconfigured.async_check("Auto", now_hour=9)
    assert client.calls == []


async def test_failed_command_is_retried_next_check(scheduler, client):
    client.failures["ES.SetMode"] = MarstekTimeout("no reply")
    await scheduler.async_check("Auto", now_hour=9)
    assert scheduler.last_applied_id is None

    del client.failures["ES.SetMode"]
    assert await scheduler.async_check("Auto", now_hour=9)
    assert scheduler.last_applied_id == "charge"


async def test_rejected_command_is_not_marked(scheduler, client):
    client.responses["ES.SetMode"] = {"set_result": False}
    await scheduler.async_check("AI", now_hour=1)
    assert scheduler.last_applied_id is None


async def test_structural_edits_persist(scheduler, store):
    new_slot = await scheduler.async_split_slot("charge")
    assert new_slot.start_hour == 11.0
    assert len(store.saves) == 1
    assert len(store.saves[0]["slots"]) == 4

    assert await scheduler.async_delete_slot(new_slot.id)
    assert len(store.saves) == 2
    assert [s["endHour"] for s in store.saves[1]["slots"]] == [8.0, 14.0, 24.0]

    assert await scheduler.async_update_slot("night", "AI")
    assert store.saves[-1]["slots"][0]["mode"] == "AI"


async def test_refused_edits_do_not_persist(store, session):
    scheduler = ModeScheduler(None, session, store)
    assert not await scheduler.async_delete_slot(scheduler.slots[0].id)
    assert await scheduler.async_split_slot("missing") is None
    assert not await scheduler.async_commit_boundary(0, 5)
    assert store.saves == []


async def test_boundary_preview_then_commit(scheduler, store):
    assert scheduler.preview_boundary(0, 6.4) == pytest.approx(385 / 60)
    assert scheduler.preview_boundary(0, 7.0) == 7.0
    assert store.saves == []

    assert await scheduler.async_commit_boundary(0)
    assert len(store.saves) == 1
    assert store.saves[0]["slots"][0]["endHour"] == 7.0
    assert store.saves[0]["slots"][1]["startHour"] == 7.0


async def test_edits_reset_last_applied(scheduler):
    scheduler.last_applied_id = "charge"
    await scheduler.async_update_slot("charge", "Manual", SlotConfig(power=1200, is_charge=False))
    assert scheduler.last_applied_id is None


async def test_load_restores_slots_and_flag(session):
    store = FakeStore({"slots": day_plan().as_list(), "enabled": True})
    scheduler = ModeScheduler(None, session, store)
    await scheduler.async_load()

    assert scheduler.enabled
    assert [s.id for s in scheduler.slots] == ["night", "charge", "evening"]
    assert scheduler.slots[1].config == SlotConfig(power=800, is_charge=True)


async def test_load_discards_broken_schedule(session):
    broken = [{"id": "a", "startHour": 0, "endHour": 10, "mode": "Auto"}]
    scheduler = ModeScheduler(None, session, FakeStore({"slots": broken, "enabled": True}))
    await scheduler.async_load()

    assert len(scheduler.slots) == 1
    assert (scheduler.slots[0].start_hour, scheduler.slots[0].end_hour) == (0.0, 24.0)


async def test_load_without_data_keeps_defaults(session, store):
    scheduler = ModeScheduler(None, session, store)
    await scheduler.async_load()
    assert not scheduler.enabled
    assert len(scheduler.slots) == 1


async def test_set_enabled_persists(session, store):
    scheduler = ModeScheduler(None, session, store)
    await scheduler.async_set_enabled(True)
    assert store.saves[-1]["enabled"] is True


def test_slot_mode_config_for_auto_is_none():
    assert slot_mode_config(TimeSlot(id="a", start_hour=0, end_hour=24, mode="Auto"), 3) is None


def test_passive_prefers_configured_countdown():
    slot = TimeSlot(id="p", start_hour=10, end_hour=12, mode="Passive", config=SlotConfig(power=400, is_charge=True, cd_time=900))
    assert slot_mode_config(slot, 11) == {"power": -400, "cd_time": 900}


def test_manual_slot_until_midnight():
    slot = TimeSlot(id="m", start_hour=22.5, end_hour=24, mode="Manual", config=SlotConfig(power=300))
    cfg = slot_mode_config(slot, 23)
    assert (cfg["start_time"], cfg["end_time"], cfg["power"]) == ("22:30", "23:59", 300)


async def test_start_arms_periodic_and_startup_checks(scheduler, client):
    with patch(f"{EVENT}.async_track_time_interval") as track, patch(f"{EVENT}.async_call_later") as later:
        scheduler.start(lambda: "Auto")

    assert track.call_args.args[2] == timedelta(seconds=60)
    assert later.call_args.args[1] == 10

    with patch(f"{EVENT}.current_hour", return_value=9.0):
        await later.call_args.args[2](MagicMock())
    assert len(set_mode_calls(client)) == 1

    scheduler.stop()
    track.return_value.assert_called_once()


async def test_scheduler_command_waits_for_running_poll(scheduler, session, client):
    poller = AdaptivePoller(MagicMock(), session.async_get_dashboard, lambda snapshot, error: None)

    await asyncio.gather(poller.async_tick(), scheduler.async_check("Auto", now_hour=9))

    assert client.max_active == 1
    assert client.methods[:6] == [
        "Marstek.GetDevice",
        "ES.GetStatus",
        "Bat.GetStatus",
        "Wifi.GetStatus",
        "ES.GetMode",
        "EM.GetStatus",
    ]
    assert client.methods[6:] == ["ES.SetMode"]


def test_passive_zero_countdown_is_sent_as_is():
    slot = TimeSlot(id="p", start_hour=10, end_hour=12, mode="Passive", config=SlotConfig(power=400, cd_time=0))
    assert slot_mode_config(slot, 11) == {"power": 400, "cd_time": 0}


async def test_load_discards_unreadable_slot_config(session):
    stored = day_plan().as_list()
    stored[1]["config"] = {"power": "abc", "isCharge": True}
    scheduler = ModeScheduler(None, session, FakeStore({"slots": stored, "enabled": True}))
    await scheduler.async_load()

    assert len(scheduler.slots) == 1
    assert scheduler.slots[0].mode == "Auto"
    assert await scheduler.async_check("Manual", now_hour=9)
