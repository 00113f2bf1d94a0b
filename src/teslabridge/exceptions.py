"""Custom exception hierarchy for teslabridge."""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all teslabridge errors."""


class ConfigError(BridgeError):
    """Invalid or missing configuration."""


class AuthError(BridgeError):
    """Bearer token rejected, or a token refresh failed.

    Raised by the status fetch on HTTP 401 (the caller should refresh and
    retry once) and by the token manager when the refresh endpoint does
    not hand out a usable access token.
    """


class OfflineError(BridgeError):
    """Vehicle is asleep or unreachable (HTTP 408).

    Not retried within a cycle; the next scheduled cycle tries again.
    """


class TransportError(BridgeError):
    """HTTP-level failure (network, unexpected status, invalid payload)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class BusError(BridgeError):
    """Message bus publish or subscribe failure."""


class BusConnectionError(BusError):
    """Could not connect to the message broker."""
