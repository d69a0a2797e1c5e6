"""Errors raised by the Marstek Venus local API and scheduler."""
from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError


class MarstekError(HomeAssistantError):
    """Base class for all integration errors."""


class MarstekTimeout(MarstekError):
    """No reply datagram arrived in time."""


class MalformedResponse(MarstekError):
    """Reply could not be decoded as a JSON object."""


class TransportError(MarstekError):
    """Socket could not be opened, bound or written."""


class DeviceNotConfigured(MarstekError):
    """No device endpoint has been selected yet."""


class InvalidModeConfig(MarstekError):
    """Mode is unknown or lacks its mode-specific config."""


class InvalidSchedulerOperation(MarstekError):
    """A scheduler request was refused because it would break the day partition."""
