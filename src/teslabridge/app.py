"""Wires the components together and runs them until shutdown."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from teslabridge._mqtt import BusState, MessageBus, MqttBus
from teslabridge._transport import HttpTransport, Transport
from teslabridge.auth import TokenManager
from teslabridge.config import BridgeConfig, ScheduleMode
from teslabridge.controller import CycleOutcome, PollController
from teslabridge.exceptions import BridgeError, ConfigError
from teslabridge.fetcher import StatusFetcher
from teslabridge.presence import PresenceState
from teslabridge.publisher import Publisher
from teslabridge.scheduling import AdaptiveSchedule, CycleTrigger, PresenceSchedule

_logger = logging.getLogger(__name__)


class BridgeApp:
    """Owns the HTTP session, the bus connection and the poll strategy.

    Usage::

        async with BridgeApp(config) as app:
            await app.run(shutdown_event)

    Entering the context connects to the broker; a connection failure
    raises :class:`~teslabridge.exceptions.BusConnectionError`.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        transport: Transport | None = None,
        bus: MqttBus | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._bus = bus
        self._external_transport = transport is not None
        self._external_bus = bus is not None
        self._http_session: aiohttp.ClientSession | None = None
        self._controller: PollController | None = None
        self._trigger: CycleTrigger | None = None
        self._bus_lost = asyncio.Event()

    @property
    def controller(self) -> PollController:
        if self._controller is None:
            raise BridgeError("Bridge not started. Use 'async with BridgeApp(...) as app:'")
        return self._controller

    async def __aenter__(self) -> BridgeApp:
        config = self._config
        loop = asyncio.get_running_loop()

        if self._transport is None:
            self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._http_session, timeout=config.http_timeout)

        if self._bus is None:
            self._bus = MqttBus(
                loop=loop,
                host=config.mqtt_host,
                port=config.mqtt_port,
                client_id=config.mqtt_client_id,
                username=config.mqtt_user,
                password=config.mqtt_password,
                connect_timeout=config.mqtt_connect_timeout,
                publish_timeout=config.publish_timeout,
                reconnect_attempts=config.mqtt_reconnect_attempts,
                reconnect_delay=config.mqtt_reconnect_delay,
            )
        self._bus.add_state_listener(self._on_bus_state)
        if not self._external_bus:
            try:
                await self._bus.connect()
            except BridgeError:
                await self._close_http()
                raise

        tokens = TokenManager(
            self._transport,
            refresh_url=config.refresh_token_url,
            refresh_credential=config.refresh_token,
        )
        fetcher = StatusFetcher(self._transport, vehicle_url=config.vehicle_url)
        publisher = Publisher(
            self._bus,
            track_driving=config.track_driving,
            battery_topic=config.battery_topic,
            state_topic=config.state_topic,
        )
        self._controller = PollController(tokens, fetcher, publisher)
        self._trigger = self._build_trigger(self._controller, self._bus)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        trigger = self._trigger
        self._trigger = None
        try:
            if trigger is not None:
                await trigger.stop()
        finally:
            if not self._external_bus and self._bus is not None:
                await self._bus.close()
            await self._close_http()

    async def _close_http(self) -> None:
        if not self._external_transport and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    def _build_trigger(self, controller: PollController, bus: MessageBus) -> CycleTrigger:
        config = self._config
        if config.mode is ScheduleMode.PRESENCE:
            if not config.presence_topic:
                raise ConfigError("presence mode requires a presence topic (MQTT_ALIVE_TOPIC)")
            return PresenceSchedule(
                controller,
                bus,
                PresenceState(),
                topic=config.presence_topic,
                interval=config.presence_interval,
                settle_delay=config.settle_delay,
            )
        return AdaptiveSchedule(
            controller,
            active_interval=config.active_interval,
            idle_interval=config.idle_interval,
        )

    def _on_bus_state(self, state: BusState) -> None:
        if state is BusState.DISCONNECTED:
            _logger.error("MQTT connection lost for good")
            self._bus_lost.set()

    async def run(self, shutdown: asyncio.Event) -> int:
        """Run the poll strategy until *shutdown* is set or the bus is lost.

        Returns the process exit code: ``0`` on requested shutdown, ``1``
        when the bus connection could not be recovered.
        """
        if self._trigger is None:
            raise BridgeError("Bridge not started. Use 'async with BridgeApp(...) as app:'")
        _logger.info("Starting in %s mode", self._config.mode)
        self._trigger.start()

        shutdown_wait = asyncio.ensure_future(shutdown.wait())
        bus_lost_wait = asyncio.ensure_future(self._bus_lost.wait())
        try:
            await asyncio.wait({shutdown_wait, bus_lost_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            shutdown_wait.cancel()
            bus_lost_wait.cancel()

        return 1 if self._bus_lost.is_set() else 0

    async def run_once(self) -> CycleOutcome:
        return await self.controller.run_cycle()
