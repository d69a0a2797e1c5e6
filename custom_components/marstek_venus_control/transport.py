from __future__ import annotations

import json
import logging
import socket
from typing import Any

from homeassistant.core import HomeAssistant

from .const import DEFAULT_UDP_TIMEOUT, METHOD_ES_STATUS
from .exceptions import MalformedResponse, MarstekError, MarstekTimeout, TransportError
from .models import Endpoint

_LOGGER = logging.getLogger(__name__)

RECV_BUFFER = 65535


def decode_response(raw: bytes) -> dict[str, Any]:
    try:
        parsed = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as err:
        raise MalformedResponse(f"Invalid JSON reply: {err}") from err
    if not isinstance(parsed, dict):
        raise MalformedResponse(f"Unexpected reply type: {type(parsed).__name__}")
    return parsed


def send_request(endpoint: Endpoint, request: dict[str, Any], timeout: float) -> dict[str, Any]:
    """Send one request datagram and wait for exactly one reply.

    Blocking; a fresh socket on an ephemeral port is used per call and is
    closed on every exit path.
    """
    data = json.dumps(request).encode("utf-8")

    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    except OSError as err:
        raise TransportError(f"Cannot open UDP socket: {err}") from err

    try:
        s.settimeout(float(timeout))
        try:
            s.bind(("0.0.0.0", 0))
            s.sendto(data, (endpoint.host, int(endpoint.port)))
        except OSError as err:
            raise TransportError(f"Cannot send to {endpoint}: {err}") from err

        try:
            resp, _addr = s.recvfrom(RECV_BUFFER)
        except TimeoutError as err:
            raise MarstekTimeout(f"No reply from {endpoint} within {timeout}s") from err
        except OSError as err:
            raise TransportError(f"Receive from {endpoint} failed: {err}") from err
    finally:
        s.close()

    return decode_response(resp)


class MarstekUdpClient:
    """Async facade over ``send_request``, executed in executor thread."""

    def __init__(self, hass: HomeAssistant, timeout: float = DEFAULT_UDP_TIMEOUT) -> None:
        self.hass = hass
        self.timeout = float(timeout)

    async def async_call(
        self,
        endpoint: Endpoint,
        method: str,
        params: dict[str, Any] | None = None,
        rpc_id: int = 1,
    ) -> dict[str, Any]:
        """Return the ``result`` object of the reply, ``{}`` when it has none."""
        payload: dict[str, Any] = {
            "id": rpc_id,
            "method": method,
            "params": params if params is not None else {},
        }
        _LOGGER.debug("%s -> %s %s", endpoint, method, payload["params"])

        response = await self.hass.async_add_executor_job(send_request, endpoint, payload, self.timeout)

        result = response.get("result")
        if not isinstance(result, dict):
            _LOGGER.debug("%s returned no result: %s", method, response.get("error", response))
            return {}
        return result


async def async_test_udp_connection(hass: HomeAssistant, host: str, port: int, timeout: float) -> bool:
    """Quick connectivity check used by config flow."""
    client = MarstekUdpClient(hass, timeout)
    try:
        await client.async_call(Endpoint(host, port), METHOD_ES_STATUS, {"id": 0})
    except MarstekError as err:
        _LOGGER.debug("Connection test to %s:%s failed: %s", host, port, err)
        return False
    return True
