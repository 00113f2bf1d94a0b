"""Bridge configuration."""

from __future__ import annotations

import dataclasses
import enum
import os
from collections.abc import Mapping
from typing import Any

from teslabridge import _constants as const
from teslabridge.exceptions import ConfigError


class ScheduleMode(enum.StrEnum):
    """How fetch cycles are triggered."""

    ADAPTIVE = "adaptive"
    """Poll forever, faster while the vehicle answers."""
    PRESENCE = "presence"
    """Poll only while the presence topic reports ``home``."""


def _env_bool(name: str, value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _env_number(name: str, value: str, kind: type[int] | type[float]) -> int | float:
    try:
        number = kind(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if number < 0:
        raise ConfigError(f"{name} must not be negative, got {value!r}")
    return number


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Bridge configuration.

    Parameters
    ----------
    vehicle_url : str
        Vehicle data endpoint polled with the bearer token.
    refresh_token_url : str
        Token endpoint that exchanges the refresh credential.
    refresh_token : str
        Long-lived refresh credential.
    mqtt_host : str
        MQTT broker host name.
    mqtt_user, mqtt_password : str
        MQTT broker credentials.
    presence_topic : str or None
        Topic carrying ``home`` / ``not_home``. Required in presence mode.
    mode : ScheduleMode
        Scheduling strategy.
    track_driving : bool
        Add a ``driving`` flag to the state message.
    active_interval, idle_interval : float
        Adaptive mode poll periods in seconds.
    presence_interval : float
        Poll period while home in presence mode.
    settle_delay : float
        Wait after an arrival before the first fetch.
    http_timeout : float
        Total timeout for a single HTTP request.
    publish_timeout : float
        Seconds to wait for the broker to acknowledge a publish.
    """

    vehicle_url: str
    refresh_token_url: str
    refresh_token: str
    mqtt_host: str
    mqtt_user: str
    mqtt_password: str
    presence_topic: str | None = None
    mqtt_port: int = const.MQTT_PORT
    mqtt_client_id: str = const.MQTT_CLIENT_ID
    mqtt_connect_timeout: float = 30.0
    mqtt_reconnect_attempts: int = const.MQTT_RECONNECT_ATTEMPTS
    mqtt_reconnect_delay: float = const.MQTT_RECONNECT_DELAY
    mode: ScheduleMode = ScheduleMode.ADAPTIVE
    track_driving: bool = False
    active_interval: float = const.ACTIVE_INTERVAL
    idle_interval: float = const.IDLE_INTERVAL
    presence_interval: float = const.PRESENCE_INTERVAL
    settle_delay: float = const.SETTLE_DELAY
    http_timeout: float = 30.0
    publish_timeout: float = 10.0
    battery_topic: str = const.BATTERY_TOPIC
    state_topic: str = const.STATE_TOPIC

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", ScheduleMode(self.mode))
        if self.mode is ScheduleMode.PRESENCE and not self.presence_topic:
            raise ConfigError("presence mode requires a presence topic (MQTT_ALIVE_TOPIC)")
        if self.active_interval <= 0 or self.idle_interval <= 0 or self.presence_interval <= 0:
            raise ConfigError("poll intervals must be positive")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, **overrides: Any) -> BridgeConfig:
        """Create configuration from environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        ConfigError
            When a required variable is missing or a value does not parse.
        """
        if env is None:
            env = os.environ

        _REQUIRED = {
            "VEHICLE_URL": "vehicle_url",
            "REFRESH_TOKEN_URL": "refresh_token_url",
            "REFRESH_TOKEN": "refresh_token",
            "MQTT_URL": "mqtt_host",
            "MQTT_USER": "mqtt_user",
            "MQTT_PASSWORD": "mqtt_password",
        }
        _OPTIONAL_STR = {
            "MQTT_ALIVE_TOPIC": "presence_topic",
            "MQTT_CLIENT_ID": "mqtt_client_id",
            "BRIDGE_BATTERY_TOPIC": "battery_topic",
            "BRIDGE_STATE_TOPIC": "state_topic",
        }
        _NUMERIC: dict[str, tuple[str, type[int] | type[float]]] = {
            "MQTT_PORT": ("mqtt_port", int),
            "MQTT_CONNECT_TIMEOUT": ("mqtt_connect_timeout", float),
            "MQTT_RECONNECT_ATTEMPTS": ("mqtt_reconnect_attempts", int),
            "MQTT_RECONNECT_DELAY": ("mqtt_reconnect_delay", float),
            "BRIDGE_ACTIVE_INTERVAL": ("active_interval", float),
            "BRIDGE_IDLE_INTERVAL": ("idle_interval", float),
            "BRIDGE_PRESENCE_INTERVAL": ("presence_interval", float),
            "BRIDGE_SETTLE_DELAY": ("settle_delay", float),
            "BRIDGE_HTTP_TIMEOUT": ("http_timeout", float),
            "BRIDGE_PUBLISH_TIMEOUT": ("publish_timeout", float),
        }

        config_kwargs: dict[str, Any] = {}
        missing: list[str] = []
        for env_key, field_name in _REQUIRED.items():
            val = env.get(env_key)
            if val:
                config_kwargs[field_name] = val
            elif field_name not in overrides:
                missing.append(env_key)
        if missing:
            raise ConfigError(f"Missing environment variables: {', '.join(missing)}")

        for env_key, field_name in _OPTIONAL_STR.items():
            val = env.get(env_key)
            if val:
                config_kwargs[field_name] = val

        for env_key, (field_name, kind) in _NUMERIC.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, kind)

        mode_env = env.get("BRIDGE_MODE")
        if mode_env is not None and "mode" not in overrides:
            try:
                config_kwargs["mode"] = ScheduleMode(mode_env.strip().lower())
            except ValueError as exc:
                raise ConfigError(f"BRIDGE_MODE must be one of adaptive, presence; got {mode_env!r}") from exc

        if "track_driving" not in overrides:
            config_kwargs["track_driving"] = _env_bool(
                "BRIDGE_TRACK_DRIVING",
                env.get("BRIDGE_TRACK_DRIVING"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
