"""Bearer token cache and refresh-token exchange (token manager)."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from teslabridge._redact import mask_token, redact_for_log
from teslabridge._transport import Transport
from teslabridge.exceptions import AuthError, TransportError
from teslabridge.models.token import RefreshGrant, TokenResponse

_logger = logging.getLogger(__name__)


def parse_token_response(status: int, text: str) -> str:
    """Extract the access token from a token endpoint reply.

    Raises
    ------
    AuthError
        On a non-200 status or a body without a usable ``access_token``.
    """
    if status != 200:
        raise AuthError(f"Token refresh failed: unexpected status code {status}: {text[:200]}")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise AuthError(f"Token refresh returned invalid JSON: {text[:64]}") from exc
    _logger.debug("Token response: %s", redact_for_log(payload))
    try:
        return TokenResponse.model_validate(payload).access_token
    except ValidationError as exc:
        raise AuthError("Token refresh response has no access_token") from exc


class TokenManager:
    """Owns the bearer token used for vehicle requests.

    The token is held in memory only. Expiry is not tracked; callers learn
    about it from an :class:`AuthError` on the status fetch and must then
    call :meth:`refresh_token`.
    """

    def __init__(self, transport: Transport, *, refresh_url: str, refresh_credential: str) -> None:
        self._transport = transport
        self._refresh_url = refresh_url
        self._grant = RefreshGrant(refresh_token=refresh_credential)
        self._token: str | None = None

    @property
    def token(self) -> str | None:
        """The cached bearer token, or ``None`` before the first refresh."""
        return self._token

    async def ensure_token(self) -> str:
        """Return the cached token, refreshing only when none is cached."""
        if self._token is not None:
            return self._token
        return await self.refresh_token()

    async def refresh_token(self) -> str:
        """Exchange the refresh credential for a new bearer token.

        On success the new token replaces the cached one. On failure the
        cached value is left as it was.
        """
        payload = self._grant.model_dump()
        _logger.debug("POST %s body=%s", self._refresh_url, redact_for_log(payload))
        try:
            response = await self._transport.post_json(self._refresh_url, payload)
        except TransportError as exc:
            raise AuthError(f"Token refresh request failed: {exc}") from exc

        token = parse_token_response(response.status, response.text)
        self._token = token
        _logger.info("Access token refreshed (%s)", mask_token(token))
        return token
