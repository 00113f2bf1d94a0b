from __future__ import annotations

import asyncio

import pytest

from teslabridge._mqtt import BusState, MessageCallback
from teslabridge.controller import CycleOutcome
from teslabridge.presence import PresenceState
from teslabridge.scheduling import AdaptiveSchedule, PresenceSchedule

ACTIVE = 300.0
IDLE = 900.0


class _CountingController:
    def __init__(self, outcomes: list[CycleOutcome] | None = None) -> None:
        self.calls = 0
        self.completed = 0
        self._outcomes = list(outcomes or [])
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    async def run_cycle(self) -> CycleOutcome:
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        self.completed += 1
        return self._outcomes.pop(0) if self._outcomes else CycleOutcome.PUBLISHED


class _SubscribingBus:
    state = BusState.CONNECTED

    def __init__(self) -> None:
        self.subscriptions: dict[str, MessageCallback] = {}

    async def publish(self, topic: str, payload: str | bytes, *, qos: int = 1, retain: bool = True) -> None:
        raise AssertionError("not used")

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        self.subscriptions[topic] = callback


# ------------------------------------------------------------------
# AdaptiveSchedule
# ------------------------------------------------------------------


class TestAdaptiveSchedule:
    def test_starts_idle(self) -> None:
        schedule = AdaptiveSchedule(_CountingController(), active_interval=ACTIVE, idle_interval=IDLE)  # type: ignore[arg-type]
        assert schedule.interval == IDLE

    @pytest.mark.parametrize("prior", [CycleOutcome.PUBLISHED, CycleOutcome.FAILED])
    @pytest.mark.parametrize(
        ("outcome", "expected"),
        [
            (CycleOutcome.PUBLISHED, ACTIVE),
            (CycleOutcome.OFFLINE, IDLE),
            (CycleOutcome.AUTH_FAILED, IDLE),
            (CycleOutcome.FAILED, IDLE),
        ],
    )
    def test_interval_follows_last_outcome(
        self,
        prior: CycleOutcome,
        outcome: CycleOutcome,
        expected: float,
    ) -> None:
        schedule = AdaptiveSchedule(_CountingController(), active_interval=ACTIVE, idle_interval=IDLE)  # type: ignore[arg-type]
        schedule.record_outcome(prior)
        assert schedule.record_outcome(outcome) == expected
        assert schedule.interval == expected

    @pytest.mark.asyncio
    async def test_runs_immediately_then_periodically_until_stopped(self) -> None:
        controller = _CountingController([CycleOutcome.OFFLINE, CycleOutcome.PUBLISHED])
        schedule = AdaptiveSchedule(controller, active_interval=0.01, idle_interval=0.01)  # type: ignore[arg-type]

        schedule.start()
        await asyncio.sleep(0.1)
        await schedule.stop()

        assert controller.calls >= 3
        calls = controller.calls
        await asyncio.sleep(0.05)
        assert controller.calls == calls

    @pytest.mark.asyncio
    async def test_start_twice_keeps_single_loop(self) -> None:
        controller = _CountingController()
        schedule = AdaptiveSchedule(controller, active_interval=60, idle_interval=60)  # type: ignore[arg-type]

        schedule.start()
        schedule.start()
        await asyncio.sleep(0.02)
        await schedule.stop()

        assert controller.calls == 1

    @pytest.mark.asyncio
    async def test_stop_lets_in_flight_cycle_finish(self) -> None:
        controller = _CountingController()
        controller.gate = asyncio.Event()
        schedule = AdaptiveSchedule(controller, active_interval=60, idle_interval=60)  # type: ignore[arg-type]

        schedule.start()
        await controller.entered.wait()
        stopping = asyncio.create_task(schedule.stop())
        await asyncio.sleep(0.02)
        assert not stopping.done()

        controller.gate.set()
        await stopping
        assert controller.completed == 1
        assert schedule.interval == 60


# ------------------------------------------------------------------
# PresenceSchedule
# ------------------------------------------------------------------


def _presence_schedule(
    controller: _CountingController,
    *,
    interval: float = 60.0,
    settle_delay: float = 0.01,
) -> tuple[PresenceSchedule, PresenceState, _SubscribingBus]:
    presence = PresenceState()
    bus = _SubscribingBus()
    schedule = PresenceSchedule(
        controller,  # type: ignore[arg-type]
        bus,
        presence,
        topic="presence/tesla",
        interval=interval,
        settle_delay=settle_delay,
    )
    return schedule, presence, bus


class TestPresenceSchedule:
    @pytest.mark.asyncio
    async def test_start_subscribes_and_reacts_to_messages(self) -> None:
        controller = _CountingController()
        schedule, presence, bus = _presence_schedule(controller)

        schedule.start()
        bus.subscriptions["presence/tesla"]("presence/tesla", b"home\n")
        await asyncio.sleep(0.05)

        assert presence.get() is True
        assert controller.calls == 1
        assert schedule.is_polling
        await schedule.stop()

    @pytest.mark.asyncio
    async def test_repeated_home_starts_one_sequence(self) -> None:
        controller = _CountingController()
        schedule, _presence, _bus = _presence_schedule(controller)

        schedule.handle_presence("home")
        schedule.handle_presence("home")
        await asyncio.sleep(0.05)
        schedule.handle_presence("home")
        await asyncio.sleep(0.05)

        assert controller.calls == 1
        await schedule.stop()

    @pytest.mark.asyncio
    async def test_not_home_without_active_timer_is_noop(self) -> None:
        controller = _CountingController()
        schedule, presence, _bus = _presence_schedule(controller)

        schedule.handle_presence("not_home")
        await asyncio.sleep(0.02)

        assert presence.get() is False
        assert not schedule.is_polling
        assert controller.calls == 0

    @pytest.mark.asyncio
    async def test_ticks_until_not_home(self) -> None:
        controller = _CountingController()
        schedule, presence, _bus = _presence_schedule(controller, interval=0.01)

        schedule.handle_presence("home")
        await asyncio.sleep(0.1)
        schedule.handle_presence("not_home")
        assert not schedule.is_polling
        await asyncio.sleep(0.02)
        calls = controller.calls
        await asyncio.sleep(0.05)

        assert calls >= 3
        assert controller.calls == calls
        assert presence.get() is False
        await schedule.stop()

    @pytest.mark.asyncio
    async def test_leaving_during_settle_delay_skips_fetch(self) -> None:
        controller = _CountingController()
        schedule, _presence, _bus = _presence_schedule(controller, settle_delay=0.05)

        schedule.handle_presence("home")
        await asyncio.sleep(0)
        schedule.handle_presence("not_home")
        await asyncio.sleep(0.1)

        assert controller.calls == 0
        await schedule.stop()

    @pytest.mark.asyncio
    async def test_not_home_lets_in_flight_cycle_finish(self) -> None:
        controller = _CountingController()
        controller.gate = asyncio.Event()
        schedule, _presence, _bus = _presence_schedule(controller, interval=0.01)

        schedule.handle_presence("home")
        await controller.entered.wait()
        schedule.handle_presence("not_home")
        controller.gate.set()
        await schedule.stop()

        assert controller.calls == 1
        assert controller.completed == 1

    @pytest.mark.asyncio
    async def test_returning_home_starts_a_new_sequence(self) -> None:
        controller = _CountingController()
        schedule, _presence, _bus = _presence_schedule(controller)

        schedule.handle_presence("home")
        await asyncio.sleep(0.05)
        schedule.handle_presence("not_home")
        schedule.handle_presence("home")
        await asyncio.sleep(0.05)

        assert controller.calls == 2
        assert schedule.is_polling
        await schedule.stop()

    @pytest.mark.asyncio
    async def test_unknown_payload_is_ignored(self) -> None:
        controller = _CountingController()
        schedule, presence, _bus = _presence_schedule(controller)

        schedule.handle_presence("unknown")
        await asyncio.sleep(0.02)

        assert presence.get() is False
        assert controller.calls == 0


def test_presence_state_set_reports_change() -> None:
    presence = PresenceState()
    assert presence.set(True) is True
    assert presence.set(True) is False
    assert presence.get() is True
    assert presence.set(False) is True
    assert presence.set(False) is False
