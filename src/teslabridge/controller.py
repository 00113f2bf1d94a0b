"""Fetch cycle state machine.

One cycle: make sure a token exists, fetch the vehicle status, recover
once from a rejected token, publish on success. Cycles never raise and
never overlap; the outcome feeds the scheduling strategy.
"""

from __future__ import annotations

import asyncio
import enum
import logging

from teslabridge.auth import TokenManager
from teslabridge.exceptions import AuthError, BridgeError, OfflineError
from teslabridge.fetcher import StatusFetcher
from teslabridge.models.vehicle import VehicleStatus
from teslabridge.publisher import Publisher

_logger = logging.getLogger(__name__)


class ControllerState(enum.StrEnum):
    IDLE = "idle"
    FETCHING = "fetching"
    BACKOFF = "backoff"
    """Last cycle found the vehicle offline; waiting for the next trigger."""


class CycleOutcome(enum.StrEnum):
    PUBLISHED = "published"
    OFFLINE = "offline"
    AUTH_FAILED = "auth_failed"
    FAILED = "failed"

    @property
    def success(self) -> bool:
        return self is CycleOutcome.PUBLISHED


class PollController:
    """Runs serialized fetch cycles against the token manager, fetcher and publisher."""

    def __init__(self, tokens: TokenManager, fetcher: StatusFetcher, publisher: Publisher) -> None:
        self._tokens = tokens
        self._fetcher = fetcher
        self._publisher = publisher
        self._lock = asyncio.Lock()
        self._state = ControllerState.IDLE
        self._last_outcome: CycleOutcome | None = None

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def last_outcome(self) -> CycleOutcome | None:
        return self._last_outcome

    async def run_cycle(self) -> CycleOutcome:
        """Run one fetch cycle. Waits for any cycle already in progress."""
        async with self._lock:
            self._state = ControllerState.FETCHING
            _logger.info("Fetching vehicle status")
            try:
                outcome = await self._cycle()
            except Exception:
                _logger.exception("Unexpected error during fetch cycle")
                outcome = CycleOutcome.FAILED
            self._state = ControllerState.BACKOFF if outcome is CycleOutcome.OFFLINE else ControllerState.IDLE
            self._last_outcome = outcome
            _logger.debug("Fetch cycle finished: %s", outcome)
            return outcome

    async def _cycle(self) -> CycleOutcome:
        try:
            token = await self._tokens.ensure_token()
        except AuthError as exc:
            _logger.error("Could not obtain access token: %s", exc)
            return CycleOutcome.AUTH_FAILED

        try:
            status = await self._fetcher.fetch_status(token)
        except AuthError:
            _logger.info("Access token rejected, refreshing")
            return await self._refresh_and_retry()
        except OfflineError:
            _logger.info("Vehicle offline")
            return CycleOutcome.OFFLINE
        except BridgeError as exc:
            _logger.error("Vehicle status request failed: %s", exc)
            return CycleOutcome.FAILED

        return await self._publish(status)

    async def _refresh_and_retry(self) -> CycleOutcome:
        try:
            token = await self._tokens.refresh_token()
        except AuthError as exc:
            _logger.error("Token refresh failed: %s", exc)
            return CycleOutcome.AUTH_FAILED

        # Second and last attempt this cycle.
        try:
            status = await self._fetcher.fetch_status(token)
        except AuthError as exc:
            _logger.error("Refreshed access token rejected: %s", exc)
            return CycleOutcome.AUTH_FAILED
        except OfflineError:
            _logger.info("Vehicle offline")
            return CycleOutcome.OFFLINE
        except BridgeError as exc:
            _logger.error("Vehicle status request failed after token refresh: %s", exc)
            return CycleOutcome.FAILED

        return await self._publish(status)

    async def _publish(self, status: VehicleStatus) -> CycleOutcome:
        _logger.info(
            "Vehicle battery=%s%% charging=%s",
            status.usable_battery_level,
            status.is_charging,
        )
        await self._publisher.publish(status)
        return CycleOutcome.PUBLISHED
