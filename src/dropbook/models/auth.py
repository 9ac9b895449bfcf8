"""Auth-related data models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    """Successful response from the Dropbox OAuth2 token endpoint."""
    access_token: str
    token_type: str
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None
    uid: str | None = None
    account_id: str | None = None


class OAuthErrorResponse(BaseModel):
    """Structured error body from the token endpoint."""
    error: str
    error_description: str | None = None


class AccessToken(BaseModel):
    """Token pair produced by a successful code exchange."""
    access_token: str
    uid: str
    refresh_token: str | None = None
    expiration_timestamp: float  # epoch seconds


class StoredTokenData(BaseModel):
    """Persisted projection of an AccessToken.

    Serialized with camelCase keys; absent optionals are omitted.
    """
    access_token: str = Field(alias="accessToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")
    expiration_timestamp: float | None = Field(default=None, alias="expirationTimestamp")
    uid: str | None = None

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @classmethod
    def from_access_token(cls, token: AccessToken) -> StoredTokenData:
        return cls(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expiration_timestamp=token.expiration_timestamp,
            uid=token.uid,
        )

    def to_json(self, indent: int | None = None) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


class TokenStatus(BaseModel):
    """Where the active credentials come from and whether they are still fresh."""
    has_token: bool
    source: Literal["keyring", "file", "environment", "none"] = "none"
    has_refresh_token: bool = False
    is_expired: bool = True
    expires_at: datetime | None = None
    seconds_remaining: int | None = None
