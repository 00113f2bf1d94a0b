"""Data models for the token and vehicle endpoints."""

from teslabridge.models.token import RefreshGrant, TokenResponse
from teslabridge.models.vehicle import VehicleStatus

__all__ = [
    "RefreshGrant",
    "TokenResponse",
    "VehicleStatus",
]
