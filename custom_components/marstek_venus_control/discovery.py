# custom_components/marstek_venus_control/discovery.py
from __future__ import annotations

import json
import logging
import socket
import time

from homeassistant.core import HomeAssistant

from .const import BROADCAST_ADDRESS, DEFAULT_DISCOVERY_TIMEOUT, DEFAULT_PORT, METHOD_GET_DEVICE
from .exceptions import MalformedResponse, TransportError
from .models import DiscoveredDevice
from .transport import RECV_BUFFER, decode_response

_LOGGER = logging.getLogger(__name__)


def _discover_blocking(
    port: int,
    window: float,
    address: str = BROADCAST_ADDRESS,
) -> list[DiscoveredDevice]:
    """Broadcast Marstek.GetDevice and collect responses for the whole window."""
    payload = {"id": 0, "method": METHOD_GET_DEVICE, "params": {"ble_mac": "0"}}
    data = json.dumps(payload).encode("utf-8")

    found: dict[str, DiscoveredDevice] = {}

    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    except OSError as err:
        raise TransportError(f"Cannot open discovery socket: {err}") from err

    try:
        try:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            s.bind(("0.0.0.0", 0))
            s.sendto(data, (address, int(port)))
        except OSError as err:
            raise TransportError(f"Discovery broadcast failed: {err}") from err

        deadline = time.monotonic() + float(window)

        # Collect until the window closes
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            s.settimeout(remaining)
            try:
                resp, addr = s.recvfrom(RECV_BUFFER)
            except TimeoutError:
                break
            except OSError as err:
                _LOGGER.debug("Discovery receive aborted: %s", err)
                break

            ip = addr[0]
            if ip in found:
                continue

            try:
                parsed = decode_response(resp)
            except MalformedResponse as err:
                _LOGGER.debug("Ignoring reply from %s: %s", ip, err)
                continue

            result = parsed.get("result")
            if not isinstance(result, dict) or not result.get("device"):
                continue

            found[ip] = DiscoveredDevice.from_result(ip, int(port), result)

    finally:
        s.close()

    _LOGGER.debug("Discovery found %d device(s): %s", len(found), list(found))
    return list(found.values())


async def async_discover_devices(
    hass: HomeAssistant,
    port: int = DEFAULT_PORT,
    timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
) -> list[DiscoveredDevice]:
    """Async wrapper around blocking UDP discovery."""
    return await hass.async_add_executor_job(_discover_blocking, port, timeout)
