import pytest

from custom_components.marstek_venus_control.helpers import dig, format_hour, is_trueish
from custom_components.marstek_venus_control.models import DashboardSnapshot, DiscoveredDevice, Endpoint


def test_discovered_device_from_result():
    device = DiscoveredDevice.from_result("10.0.0.8", 30000, {"device": "VenusE", "ver": "x", "wifi_name": "home"})
    assert device.endpoint == Endpoint("10.0.0.8")
    assert device.version is None
    assert device.label == "10.0.0.8 - VenusE"
    assert device.as_dict()["wifi_name"] == "home"


def test_endpoint_is_hashable():
    assert len({Endpoint("a", 1), Endpoint("a", 1), Endpoint("a", 2)}) == 2
    assert str(Endpoint("10.0.0.8")) == "10.0.0.8:30000"


def test_snapshot_keeps_every_field():
    data = DashboardSnapshot(battery={"soc": 10}, timestamp="01:02:03").as_dict()
    assert set(data) == {"device", "battery", "energy", "mode", "meter", "wifi", "timestamp"}
    assert data["meter"] == {}


@pytest.mark.parametrize(
    "hour, text",
    [(0, "00:00"), (8.5, "08:30"), (11 + 5 / 60, "11:05"), (23.75, "23:45"), (24, "23:59")],
)
def test_format_hour(hour, text):
    assert format_hour(hour) == text


def test_dig_and_trueish():
    assert dig({"a": {"b": 3}}, "a.b") == 3
    assert dig({"a": None}, "a.b") is None
    assert is_trueish("OK") and is_trueish(1) and not is_trueish(2) and not is_trueish(None)
