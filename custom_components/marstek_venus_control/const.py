from __future__ import annotations

from datetime import timedelta

DOMAIN = "marstek_venus_control"

CONF_UDP_TIMEOUT = "udp_timeout"
CONF_DISCOVERY_TIMEOUT = "discovery_timeout"
CONF_SCHEDULER_INTERVAL = "scheduler_interval"

DEFAULT_PORT = 30000
BROADCAST_ADDRESS = "255.255.255.255"

# UDP socket timeout (seconds)
DEFAULT_UDP_TIMEOUT = 5.0

# Broadcast listen window (seconds)
DEFAULT_DISCOVERY_TIMEOUT = 3.0

# Scheduler check period (seconds)
DEFAULT_SCHEDULER_INTERVAL = 60
SCHEDULER_STARTUP_DELAY = 10

# RPC methods
METHOD_GET_DEVICE = "Marstek.GetDevice"
METHOD_ES_STATUS = "ES.GetStatus"
METHOD_BAT_STATUS = "Bat.GetStatus"
METHOD_WIFI_STATUS = "Wifi.GetStatus"
METHOD_ES_MODE = "ES.GetMode"
METHOD_EM_STATUS = "EM.GetStatus"
METHOD_SET_MODE = "ES.SetMode"

MODE_AUTO = "Auto"
MODE_AI = "AI"
MODE_MANUAL = "Manual"
MODE_PASSIVE = "Passive"
MODES = (MODE_AUTO, MODE_AI, MODE_MANUAL, MODE_PASSIVE)
CONFIGURABLE_MODES = (MODE_MANUAL, MODE_PASSIVE)

# Adaptive polling: (upper latency bound in seconds, interval)
POLL_INTERVAL_FAST = timedelta(seconds=3)
POLL_INTERVAL_SLOW = timedelta(seconds=30)
POLL_INTERVAL_STEPS: tuple[tuple[float, timedelta], ...] = (
    (0.5, POLL_INTERVAL_FAST),
    (2.0, timedelta(seconds=5)),
    (5.0, timedelta(seconds=10)),
)

# Day partition (hours)
DAY_HOURS = 24.0
MIN_SLOT_DURATION = 0.25  # 15 minutes
SLOT_ROUNDING = 5 / 60  # 5 minutes

STORAGE_VERSION = 1
