from unittest.mock import MagicMock, patch

import pytest

from custom_components.marstek_venus_control.exceptions import (
    MalformedResponse,
    MarstekTimeout,
    TransportError,
)
from custom_components.marstek_venus_control.models import Endpoint
from custom_components.marstek_venus_control.transport import (
    MarstekUdpClient,
    async_test_udp_connection,
    decode_response,
    send_request,
)

from conftest import udp_responder


def test_send_request_returns_reply():
    reply = {"id": 3, "result": {"id": 0, "soc": 80}}
    with udp_responder([reply]) as (port, received):
        response = send_request(Endpoint("127.0.0.1", port), {"id": 3, "method": "Bat.GetStatus", "params": {"id": 0}}, 2.0)

    assert response == reply
    assert received == [{"id": 3, "method": "Bat.GetStatus", "params": {"id": 0}}]


def test_send_request_times_out():
    with udp_responder() as (port, received):
        with pytest.raises(MarstekTimeout):
            send_request(Endpoint("127.0.0.1", port), {"id": 1, "method": "ES.GetStatus", "params": {}}, 0.3)
    assert len(received) == 1


def test_send_request_rejects_garbage():
    with udp_responder([b"\x00not json"]) as (port, _received):
        with pytest.raises(MalformedResponse):
            send_request(Endpoint("127.0.0.1", port), {"id": 1, "method": "ES.GetStatus", "params": {}}, 2.0)


def test_decode_response_requires_object():
    with pytest.raises(MalformedResponse):
        decode_response(b"[1, 2, 3]")
    assert decode_response(b'{"result": {}}') == {"result": {}}


@pytest.mark.parametrize(
    "attr, error, expected",
    [
        ("sendto", OSError("no route to host"), TransportError),
        ("recvfrom", TimeoutError(), MarstekTimeout),
        ("recvfrom", OSError("reset"), TransportError),
    ],
)
def test_socket_closed_on_every_failure(attr, error, expected):
    sock = MagicMock()
    getattr(sock, attr).side_effect = error
    with patch("custom_components.marstek_venus_control.transport.socket.socket", return_value=sock):
        with pytest.raises(expected):
            send_request(Endpoint("10.0.0.9"), {"id": 1, "method": "ES.GetStatus", "params": {}}, 1.0)
    sock.close.assert_called_once()


def test_socket_closed_on_success():
    sock = MagicMock()
    sock.recvfrom.return_value = (b'{"result": {"mode": "AI"}}', ("10.0.0.9", 30000))
    with patch("custom_components.marstek_venus_control.transport.socket.socket", return_value=sock):
        send_request(Endpoint("10.0.0.9"), {"id": 1, "method": "ES.GetMode", "params": {}}, 1.0)
    sock.sendto.assert_called_once()
    sock.close.assert_called_once()


def test_socket_open_failure_is_transport_error():
    with patch(
        "custom_components.marstek_venus_control.transport.socket.socket",
        side_effect=OSError("too many open files"),
    ):
        with pytest.raises(TransportError):
            send_request(Endpoint("10.0.0.9"), {"id": 1, "method": "ES.GetMode", "params": {}}, 1.0)


async def test_client_returns_result_object(hass):
    client = MarstekUdpClient(hass, 2.0)
    with udp_responder([{"id": 7, "result": {"mode": "Manual"}}]) as (port, received):
        result = await client.async_call(Endpoint("127.0.0.1", port), "ES.GetMode", {"id": 0}, 7)

    assert result == {"mode": "Manual"}
    assert received[0]["id"] == 7


async def test_client_without_result_returns_empty(hass):
    client = MarstekUdpClient(hass, 2.0)
    with udp_responder([{"id": 1, "error": {"code": -32601, "message": "Method not found"}}]) as (port, _received):
        result = await client.async_call(Endpoint("127.0.0.1", port), "Foo.Bar")

    assert result == {}


async def test_connection_check(hass):
    with udp_responder([{"id": 1, "result": {"id": 0}}]) as (port, _received):
        assert await async_test_udp_connection(hass, "127.0.0.1", port, 2.0)

    with udp_responder() as (port, _received):
        assert not await async_test_udp_connection(hass, "127.0.0.1", port, 0.2)

