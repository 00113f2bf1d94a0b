"""MQTT bus runtime: connect, publish, subscribe, bounded reconnect."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from teslabridge.exceptions import BusConnectionError, BusError

MessageCallback = Callable[[str, bytes], None]
StateListener = Callable[["BusState"], None]


class BusState(enum.StrEnum):
    """Connection state of :class:`MqttBus`."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"
    """Terminal: reconnect attempts are exhausted."""
    CLOSED = "closed"


class MessageBus(Protocol):
    """What the publisher and presence trigger need from the bus."""

    @property
    def state(self) -> BusState:
        ...

    async def publish(self, topic: str, payload: str | bytes, *, qos: int = 1, retain: bool = True) -> None:
        ...

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        ...


class MqttBus:
    """Threaded paho-mqtt client that delivers callbacks onto an asyncio loop.

    paho's own reconnect is disabled. After an unexpected disconnect a
    background task makes ``reconnect_attempts`` attempts, each after
    ``reconnect_delay`` seconds; if all fail the bus moves to the terminal
    :attr:`BusState.DISCONNECTED` and state listeners are told.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        host: str,
        port: int,
        client_id: str,
        username: str,
        password: str,
        keepalive: int = 60,
        connect_timeout: float = 30.0,
        publish_timeout: float = 10.0,
        reconnect_attempts: int = 3,
        reconnect_delay: float = 60.0,
        logger: logging.Logger | None = None,
        client_factory: Callable[..., mqtt.Client] | None = None,
    ) -> None:
        self._loop = loop
        self._host = host
        self._port = port
        self._client_id = client_id
        self._username = username
        self._password = password
        self._keepalive = keepalive
        self._connect_timeout = connect_timeout
        self._publish_timeout = publish_timeout
        self._reconnect_attempts = reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._logger = logger or logging.getLogger(__name__)
        self._client_factory = client_factory or mqtt.Client

        self._client: mqtt.Client | None = None
        self._state = BusState.IDLE
        self._closing = False
        self._subscriptions: dict[str, MessageCallback] = {}
        self._state_listeners: list[StateListener] = []
        self._connack: asyncio.Future[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> BusState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is BusState.CONNECTED

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def _set_state(self, state: BusState) -> None:
        if state is self._state:
            return
        self._logger.debug("MQTT state %s -> %s", self._state, state)
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                self._logger.exception("MQTT state listener failed")

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _build_client(self) -> mqtt.Client:
        client = self._client_factory(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
            protocol=mqtt.MQTTv311,
            reconnect_on_failure=False,
        )
        client.enable_logger(self._logger)
        client.username_pw_set(self._username, self._password)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect refused: %s", reason_code)
                self._loop.call_soon_threadsafe(self._on_connack, False, str(reason_code))
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)
            for topic in list(self._subscriptions):
                self._logger.debug("MQTT subscribing topic=%s", topic)
                c.subscribe(topic, qos=0)
            self._loop.call_soon_threadsafe(self._on_connack, True, str(reason_code))

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._loop.call_soon_threadsafe(self._dispatch, msg.topic, bytes(msg.payload))

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._closing:
                return
            self._loop.call_soon_threadsafe(self._on_connection_lost, str(reason_code))

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect
        return client

    async def connect(self) -> None:
        """Connect to the broker and wait for its acknowledgement.

        Raises
        ------
        BusConnectionError
            The broker is unreachable, refused the session, or did not
            answer within ``connect_timeout``.
        """
        self._closing = False
        self._set_state(BusState.CONNECTING)
        client = self._build_client()
        self._client = client
        self._logger.info("Connecting to MQTT broker tcp://%s:%s as %s", self._host, self._port, self._client_id)
        self._connack = self._loop.create_future()
        try:
            await self._loop.run_in_executor(None, self._connect_blocking, client)
            await self._wait_connack()
        except BusConnectionError:
            await self._loop.run_in_executor(None, client.loop_stop)
            self._set_state(BusState.DISCONNECTED)
            raise

    def _connect_blocking(self, client: mqtt.Client) -> None:
        try:
            client.connect(self._host, self._port, keepalive=self._keepalive)
        except (OSError, ValueError) as exc:
            raise BusConnectionError(f"Cannot reach MQTT broker {self._host}:{self._port}: {exc}") from exc
        client.loop_start()

    def _reconnect_blocking(self, client: mqtt.Client) -> None:
        client.loop_stop()
        try:
            client.reconnect()
        except (OSError, ValueError) as exc:
            raise BusConnectionError(f"Reconnect to {self._host}:{self._port} failed: {exc}") from exc
        client.loop_start()

    async def _wait_connack(self) -> None:
        connack = self._connack
        if connack is None:
            raise BusConnectionError("No connection attempt in progress")
        try:
            await asyncio.wait_for(connack, self._connect_timeout)
        except TimeoutError as exc:
            raise BusConnectionError(
                f"MQTT broker did not acknowledge within {self._connect_timeout}s"
            ) from exc
        finally:
            self._connack = None

    def _on_connack(self, ok: bool, reason: str) -> None:
        connack = self._connack
        if connack is not None and not connack.done():
            if ok:
                connack.set_result(None)
            else:
                connack.set_exception(BusConnectionError(f"MQTT broker refused connection: {reason}"))
        if ok:
            self._set_state(BusState.CONNECTED)

    def _on_connection_lost(self, reason: str) -> None:
        if self._closing or self._state is not BusState.CONNECTED:
            return
        self._logger.warning("MQTT connection lost: %s", reason)
        self._set_state(BusState.RECONNECTING)
        self._reconnect_task = self._loop.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        client = self._client
        if client is None:
            return
        for attempt in range(1, self._reconnect_attempts + 1):
            self._logger.info("Attempting to reconnect... (%d/%d)", attempt, self._reconnect_attempts)
            await asyncio.sleep(self._reconnect_delay)
            if self._closing:
                return
            self._connack = self._loop.create_future()
            try:
                await self._loop.run_in_executor(None, self._reconnect_blocking, client)
                await self._wait_connack()
            except BusConnectionError as exc:
                self._logger.warning("Reconnect attempt %d failed: %s", attempt, exc)
                continue
            self._logger.info("Reconnected to MQTT broker")
            return

        self._logger.error("Failed to reconnect after %d attempts", self._reconnect_attempts)
        await self._loop.run_in_executor(None, client.loop_stop)
        self._set_state(BusState.DISCONNECTED)

    async def close(self) -> None:
        """Disconnect and stop the network thread."""
        self._closing = True
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done():
            task.cancel()
        client = self._client
        self._client = None
        if client is not None:
            try:
                if self._state is BusState.CONNECTED:
                    self._logger.debug("MQTT disconnect requested")
                    await self._loop.run_in_executor(None, client.disconnect)
            finally:
                await self._loop.run_in_executor(None, client.loop_stop)
                self._logger.debug("MQTT network loop stopped")
        self._set_state(BusState.CLOSED)

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        """Register *callback* for *topic*; survives reconnects.

        Callbacks run on the event loop with ``(topic, payload)``.
        """
        self._subscriptions[topic] = callback
        client = self._client
        if client is not None and self._state is BusState.CONNECTED:
            self._logger.debug("MQTT subscribing topic=%s", topic)
            client.subscribe(topic, qos=0)

    def _dispatch(self, topic: str, payload: bytes) -> None:
        for topic_filter, callback in list(self._subscriptions.items()):
            if not mqtt.topic_matches_sub(topic_filter, topic):
                continue
            try:
                callback(topic, payload)
            except Exception:
                self._logger.exception("MQTT message handler for %s failed", topic_filter)

    async def publish(self, topic: str, payload: str | bytes, *, qos: int = 1, retain: bool = True) -> None:
        """Publish and wait for the broker acknowledgement (QoS 1 and 2).

        Raises
        ------
        BusError
            Not connected, rejected by the client, or not acknowledged in time.
        """
        client = self._client
        if client is None or self._state is not BusState.CONNECTED:
            raise BusError(f"Cannot publish to {topic}: bus is {self._state}")
        await self._loop.run_in_executor(None, self._publish_blocking, client, topic, payload, qos, retain)

    def _publish_blocking(
        self,
        client: mqtt.Client,
        topic: str,
        payload: str | bytes,
        qos: int,
        retain: bool,
    ) -> None:
        info = client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise BusError(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")
        if qos == 0:
            return
        try:
            info.wait_for_publish(timeout=self._publish_timeout)
        except (RuntimeError, ValueError) as exc:
            raise BusError(f"Publish to {topic} failed: {exc}") from exc
        if not info.is_published():
            raise BusError(f"Publish to {topic} not acknowledged within {self._publish_timeout}s")
