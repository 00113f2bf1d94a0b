"""Strategies that decide when fetch cycles run.

Both strategies drive the same :meth:`PollController.run_cycle`. Timer
loops are stopped through an :class:`asyncio.Event` checked between
cycles, so a cycle that is already running always completes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from teslabridge import _constants as const
from teslabridge._mqtt import MessageBus
from teslabridge.controller import CycleOutcome, PollController
from teslabridge.presence import PresenceState

_logger = logging.getLogger(__name__)


class CycleTrigger(Protocol):
    def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...


async def _wait_stopped(stop: asyncio.Event, timeout: float) -> bool:
    """Sleep up to *timeout* seconds; ``True`` if *stop* was set meanwhile."""
    try:
        await asyncio.wait_for(stop.wait(), timeout)
    except TimeoutError:
        return False
    return True


class AdaptiveSchedule:
    """Poll forever; every ``active_interval`` after a published cycle, else every ``idle_interval``.

    A successful publish is taken as a sign the vehicle is awake, so
    polling speeds up while it answers and slows down once it stops.
    """

    def __init__(
        self,
        controller: PollController,
        *,
        active_interval: float = const.ACTIVE_INTERVAL,
        idle_interval: float = const.IDLE_INTERVAL,
    ) -> None:
        self._controller = controller
        self._active_interval = active_interval
        self._idle_interval = idle_interval
        self._interval = idle_interval
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        """Delay before the next cycle."""
        return self._interval

    def record_outcome(self, outcome: CycleOutcome) -> float:
        self._interval = self._active_interval if outcome.success else self._idle_interval
        return self._interval

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop.clear()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            outcome = await self._controller.run_cycle()
            interval = self.record_outcome(outcome)
            _logger.debug("Next poll in %.0fs", interval)
            if await _wait_stopped(self._stop, interval):
                _logger.debug("Poll loop stopped")
                return

    async def stop(self) -> None:
        self._stop.set()
        task = self._task
        self._task = None
        if task is not None:
            await task


class PresenceSchedule:
    """Poll only while the presence topic says the vehicle is home.

    On arrival: wait ``settle_delay`` for the car to come online, run one
    cycle, then one every ``interval`` until departure.
    """

    def __init__(
        self,
        controller: PollController,
        bus: MessageBus,
        presence: PresenceState,
        *,
        topic: str,
        interval: float = const.PRESENCE_INTERVAL,
        settle_delay: float = const.SETTLE_DELAY,
    ) -> None:
        self._controller = controller
        self._bus = bus
        self._presence = presence
        self._topic = topic
        self._interval = interval
        self._settle_delay = settle_delay
        self._stop: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_polling(self) -> bool:
        """Whether a poll session is live and has not been told to stop."""
        return (
            self._task is not None
            and not self._task.done()
            and self._stop is not None
            and not self._stop.is_set()
        )

    def start(self) -> None:
        self._bus.subscribe(self._topic, self._on_message)
        _logger.info("Listening for presence on %s", self._topic)

    def _on_message(self, topic: str, payload: bytes) -> None:
        value = payload.decode("utf-8", errors="replace").strip()
        _logger.info("* [%s] %s", topic, value)
        self.handle_presence(value)

    def handle_presence(self, value: str) -> None:
        if value == const.PRESENCE_HOME:
            self._arrive()
        elif value == const.PRESENCE_NOT_HOME:
            self._leave()
        else:
            _logger.warning("Ignoring unknown presence payload %r", value)

    def _arrive(self) -> None:
        if not self._presence.set(True):
            _logger.debug("Already home")
            return
        stop = asyncio.Event()
        previous = self._task
        self._stop = stop
        self._task = asyncio.get_running_loop().create_task(self._session(stop, previous))

    def _leave(self) -> None:
        if not self._presence.set(False):
            _logger.debug("Already away")
            return
        if self._stop is not None:
            _logger.debug("Stopping poll loop")
            self._stop.set()

    async def _session(self, stop: asyncio.Event, previous: asyncio.Task[None] | None) -> None:
        if previous is not None:
            await previous

        _logger.debug("Waiting %.0fs for the vehicle to come online", self._settle_delay)
        if await _wait_stopped(stop, self._settle_delay):
            _logger.debug("Left before the first fetch")
            return

        await self._controller.run_cycle()
        while not await _wait_stopped(stop, self._interval):
            _logger.debug("Tick received")
            await self._controller.run_cycle()
        _logger.debug("Poll loop stopped")

    async def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        task = self._task
        self._task = None
        if task is not None:
            await task
