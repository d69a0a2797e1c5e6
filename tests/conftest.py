"""Shared fakes for the Marstek Venus tests."""
import asyncio
import copy
import json
import socket
import threading
from contextlib import contextmanager

import pytest

from custom_components.marstek_venus_control.models import Endpoint
from custom_components.marstek_venus_control.session import DeviceSession

ENDPOINT = Endpoint("192.168.1.50", 30000)


class FakeHass:
    """Only what the UDP helpers need: an executor."""

    async def async_add_executor_job(self, target, *args):
        return await asyncio.get_running_loop().run_in_executor(None, target, *args)


class FakeClient:
    """Stands in for MarstekUdpClient; answers per RPC method.

    Each call yields to the event loop once, like a real executor round trip,
    and ``max_active`` records how many calls were ever open at the same time.
    """

    def __init__(self, responses=None, failures=None):
        self.responses = responses or {}
        self.failures = failures or {}
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def async_call(self, endpoint, method, params=None, rpc_id=1):
        self.calls.append((endpoint, method, params, rpc_id))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            if method in self.failures:
                raise self.failures[method]
            return copy.deepcopy(self.responses.get(method, {}))
        finally:
            self.active -= 1

    @property
    def methods(self):
        return [call[1] for call in self.calls]


class FakeStore:
    def __init__(self, data=None):
        self.data = data
        self.saves = []

    async def async_load(self):
        return self.data

    async def async_save(self, data):
        self.saves.append(copy.deepcopy(data))
        self.data = data


@contextmanager
def udp_responder(replies=None):
    """Loopback UDP peer that answers the first datagram with ``replies``."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(3)
    received = []

    def serve():
        try:
            data, addr = sock.recvfrom(65535)
        except OSError:
            return
        received.append(json.loads(data.decode("utf-8")))
        for reply in replies or []:
            if isinstance(reply, dict):
                reply = json.dumps(reply).encode("utf-8")
            sock.sendto(reply, addr)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield sock.getsockname()[1], received
    finally:
        thread.join(5)
        sock.close()


@pytest.fixture(name="hass")
def fixture_hass():
    return FakeHass()


@pytest.fixture(name="client")
def fixture_client():
    return FakeClient(
        responses={
            "Marstek.GetDevice": {"device": "VenusE", "ver": 144, "ble_mac": "aa", "wifi_mac": "bb"},
            "ES.GetStatus": {"bat_soc": 55, "pv_power": 0, "ongrid_power": -120},
            "Bat.GetStatus": {"soc": 55, "bat_temp": 21.5, "bat_capacity": 2800},
            "Wifi.GetStatus": {"ssid": "home", "rssi": -61},
            "ES.GetMode": {"mode": "Auto", "ongrid_power": -120},
            "EM.GetStatus": {"ct_state": 1, "total_power": 340},
            "ES.SetMode": {"id": 0, "set_result": True},
        }
    )


@pytest.fixture(name="session")
def fixture_session(client):
    session = DeviceSession(None, client=client)
    session.set_device(ENDPOINT)
    return session


@pytest.fixture(name="store")
def fixture_store():
    return FakeStore()
