"""teslabridge - Republish vehicle battery and charging state onto MQTT."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("teslabridge")
except PackageNotFoundError:
    __version__ = "0+local"
from teslabridge._mqtt import BusState, MqttBus
from teslabridge.app import BridgeApp
from teslabridge.auth import TokenManager
from teslabridge.config import BridgeConfig, ScheduleMode
from teslabridge.controller import ControllerState, CycleOutcome, PollController
from teslabridge.exceptions import (
    AuthError,
    BridgeError,
    BusConnectionError,
    BusError,
    ConfigError,
    OfflineError,
    TransportError,
)
from teslabridge.fetcher import StatusFetcher
from teslabridge.models import VehicleStatus
from teslabridge.presence import PresenceState
from teslabridge.publisher import Publisher
from teslabridge.scheduling import AdaptiveSchedule, PresenceSchedule

__all__ = [
    "__version__",
    "AdaptiveSchedule",
    "AuthError",
    "BridgeApp",
    "BridgeConfig",
    "BridgeError",
    "BusConnectionError",
    "BusError",
    "BusState",
    "ConfigError",
    "ControllerState",
    "CycleOutcome",
    "MqttBus",
    "OfflineError",
    "PollController",
    "PresenceSchedule",
    "PresenceState",
    "Publisher",
    "ScheduleMode",
    "StatusFetcher",
    "TokenManager",
    "TransportError",
    "VehicleStatus",
]
