from __future__ import annotations

import pytest

from teslabridge.config import BridgeConfig, ScheduleMode
from teslabridge.exceptions import ConfigError


def _env(**extra: str) -> dict[str, str]:
    env = {
        "VEHICLE_URL": "https://owner-api.example/api/1/vehicles/1/vehicle_data",
        "REFRESH_TOKEN_URL": "https://auth.example/oauth2/v3/token",
        "REFRESH_TOKEN": "refresh-secret",
        "MQTT_URL": "broker.local",
        "MQTT_USER": "bridge",
        "MQTT_PASSWORD": "mqtt-secret",
    }
    env.update(extra)
    return env


def test_from_env_defaults() -> None:
    config = BridgeConfig.from_env(_env())
    assert config.mqtt_host == "broker.local"
    assert config.mqtt_port == 1883
    assert config.mqtt_client_id == "teslaClient"
    assert config.mode is ScheduleMode.ADAPTIVE
    assert config.active_interval == 300
    assert config.idle_interval == 900
    assert config.presence_interval == 600
    assert config.settle_delay == 10.0
    assert config.track_driving is False
    assert config.battery_topic == "/tesla/state/battery"
    assert config.state_topic == "/tesla/state/charging"


def test_from_env_reports_all_missing_variables() -> None:
    env = _env()
    del env["REFRESH_TOKEN"]
    del env["MQTT_PASSWORD"]
    with pytest.raises(ConfigError) as exc_info:
        BridgeConfig.from_env(env)
    assert "REFRESH_TOKEN" in str(exc_info.value)
    assert "MQTT_PASSWORD" in str(exc_info.value)


def test_from_env_parses_optional_values() -> None:
    config = BridgeConfig.from_env(
        _env(
            MQTT_PORT="8883",
            MQTT_ALIVE_TOPIC="presence/tesla",
            BRIDGE_MODE="Presence",
            BRIDGE_TRACK_DRIVING="yes",
            BRIDGE_SETTLE_DELAY="2.5",
        )
    )
    assert config.mqtt_port == 8883
    assert config.mode is ScheduleMode.PRESENCE
    assert config.presence_topic == "presence/tesla"
    assert config.track_driving is True
    assert config.settle_delay == 2.5


def test_overrides_win_over_environment() -> None:
    config = BridgeConfig.from_env(_env(MQTT_PORT="8883"), mqtt_port=1884, mode="presence", presence_topic="p")
    assert config.mqtt_port == 1884
    assert config.mode is ScheduleMode.PRESENCE


def test_presence_mode_requires_topic() -> None:
    with pytest.raises(ConfigError):
        BridgeConfig.from_env(_env(BRIDGE_MODE="presence"))


@pytest.mark.parametrize(
    "extra",
    [
        {"MQTT_PORT": "not-a-port"},
        {"BRIDGE_IDLE_INTERVAL": "-5"},
        {"BRIDGE_TRACK_DRIVING": "maybe"},
        {"BRIDGE_MODE": "sometimes"},
        {"BRIDGE_ACTIVE_INTERVAL": "0"},
    ],
)
def test_invalid_values_raise_config_error(extra: dict[str, str]) -> None:
    with pytest.raises(ConfigError):
        BridgeConfig.from_env(_env(**extra))
