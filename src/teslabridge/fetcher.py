"""Vehicle status request and failure classification."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from teslabridge._transport import Transport
from teslabridge.exceptions import AuthError, OfflineError, TransportError
from teslabridge.models.vehicle import VehicleStatus

_logger = logging.getLogger(__name__)

HTTP_UNAUTHORIZED = 401
HTTP_REQUEST_TIMEOUT = 408


def parse_status_response(status: int, text: str, *, url: str = "") -> VehicleStatus:
    """Classify a vehicle data reply and parse it on success.

    Raises
    ------
    AuthError
        HTTP 401, the bearer token was rejected.
    OfflineError
        HTTP 408, the vehicle is asleep or unreachable.
    TransportError
        Any other non-200 status, invalid JSON, or an unexpected payload shape.
    """
    if status == HTTP_UNAUTHORIZED:
        raise AuthError("Vehicle request rejected the bearer token")
    if status == HTTP_REQUEST_TIMEOUT:
        raise OfflineError("Vehicle is offline")
    if status != 200:
        raise TransportError(
            f"Unexpected status code {status}: {text[:200]}",
            status_code=status,
            url=url,
        )

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TransportError(f"Invalid JSON from {url}: {text[:64]}", status_code=status, url=url) from exc

    try:
        return VehicleStatus.model_validate(payload)
    except ValidationError as exc:
        raise TransportError(f"Unexpected vehicle payload from {url}: {exc}", status_code=status, url=url) from exc


class StatusFetcher:
    """Performs one authenticated vehicle status read. Never retries."""

    def __init__(self, transport: Transport, *, vehicle_url: str) -> None:
        self._transport = transport
        self._vehicle_url = vehicle_url

    async def fetch_status(self, token: str) -> VehicleStatus:
        response = await self._transport.get(
            self._vehicle_url,
            headers={"Authorization": f"Bearer {token}"},
        )
        status = parse_status_response(response.status, response.text, url=self._vehicle_url)
        _logger.debug(
            "Vehicle status battery=%s charging_state=%s shift_state=%r",
            status.usable_battery_level,
            status.charging_state,
            status.shift_state,
        )
        return status
