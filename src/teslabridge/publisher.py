"""Derives public state from a vehicle status and publishes it."""

from __future__ import annotations

import json
import logging
from typing import Any

from teslabridge import _constants as const
from teslabridge._mqtt import MessageBus
from teslabridge.exceptions import BusError
from teslabridge.models.vehicle import VehicleStatus

_logger = logging.getLogger(__name__)

QOS_AT_LEAST_ONCE = 1


def build_state_payload(status: VehicleStatus, *, track_driving: bool = False) -> str:
    """Compact JSON for the state topic, e.g. ``{"charging":true}``."""
    attributes: dict[str, Any] = {"charging": status.is_charging}
    if track_driving:
        attributes["driving"] = status.is_driving
    return json.dumps(attributes, separators=(",", ":"))


def build_battery_payload(status: VehicleStatus) -> str:
    return str(status.usable_battery_level)


class Publisher:
    """Best-effort, retained, at-least-once publisher.

    Failures are logged and swallowed; a missed update is repaired by the
    next successful cycle.
    """

    def __init__(
        self,
        bus: MessageBus,
        *,
        track_driving: bool = False,
        battery_topic: str = const.BATTERY_TOPIC,
        state_topic: str = const.STATE_TOPIC,
    ) -> None:
        self._bus = bus
        self._track_driving = track_driving
        self._battery_topic = battery_topic
        self._state_topic = state_topic

    async def publish(self, status: VehicleStatus) -> None:
        messages = (
            (self._battery_topic, build_battery_payload(status)),
            (self._state_topic, build_state_payload(status, track_driving=self._track_driving)),
        )
        for topic, payload in messages:
            try:
                await self._bus.publish(topic, payload, qos=QOS_AT_LEAST_ONCE, retain=True)
            except BusError as exc:
                _logger.warning("Publish to %s failed: %s", topic, exc)
                continue
            _logger.debug("Published %s %s", topic, payload)
