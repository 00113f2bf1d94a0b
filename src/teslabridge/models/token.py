"""Token endpoint request and response models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from teslabridge import _constants as const


class RefreshGrant(BaseModel):
    """Body of the refresh-token exchange."""

    model_config = ConfigDict(frozen=True)

    grant_type: str = const.GRANT_TYPE
    client_id: str = const.CLIENT_ID
    refresh_token: str
    scope: str = const.SCOPE


class TokenResponse(BaseModel):
    """Successful token endpoint reply.

    Only ``access_token`` is used; the endpoint also returns a rotated
    refresh token and an expiry, which are ignored because the refresh
    credential is configured and expiry is detected from HTTP 401.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(min_length=1)
