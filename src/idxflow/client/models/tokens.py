"""Token models for the end of an Identity Engine workflow.

Contains the ``Token`` credential bundle, the OAuth token endpoint request
records and the token endpoint response model.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from idxflow.client.models.configuration import Configuration
from idxflow.client.models.errors import (
    InvalidParameterError,
    InvalidResponseDataError,
    MissingRefreshTokenError,
    OAuthError,
)

if TYPE_CHECKING:
    from idxflow.client.services.api import IDXClientAPI

T = TypeVar("T")


class RevokeType(str, Enum):
    """Which token to revoke.

    Revoking the access token also invalidates the refresh token issued with
    it. Values are the OAuth ``token_type_hint`` sent to the revoke endpoint.
    """

    REFRESH_TOKEN = "refresh_token"
    ACCESS_AND_REFRESH_TOKEN = "access_token"

    @property
    def token_type_hint(self) -> str:
        return self.value


class Token(BaseModel):
    """Credentials issued once a workflow succeeds.

    Tokens are immutable: ``refresh`` returns a new Token and leaves this one
    untouched. Depending on server policy the refreshed token's non-access
    fields may differ, so callers should store the new value.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str | None = None
    id_token: str | None = None
    expires_in: float
    scope: str = ""
    token_type: str
    issued_at: float = Field(default_factory=time.time)
    configuration: Configuration

    @classmethod
    def from_response(cls, payload: Any, configuration: Configuration) -> Token:
        """Build a Token from a decoded token endpoint reply.

        Raises:
            OAuthError: If the reply is an OAuth error
            InvalidResponseDataError: If the reply has no access token
        """
        try:
            response = TokenResponse.model_validate(payload)
        except ValidationError as e:
            raise InvalidResponseDataError(f"Invalid token response format: {e}") from e
        return response.to_token(configuration)

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.expires_in

    def is_expired(self, buffer_seconds: float = 0.0) -> bool:
        return time.time() >= self.expires_at - buffer_seconds

    async def refresh(self, api: IDXClientAPI | None = None) -> Token:
        """Exchange the refresh token for a new Token.

        Args:
            api: Optional API service to reuse; one is created from this
                token's configuration otherwise

        Raises:
            MissingRefreshTokenError: If this token has no refresh token
            OAuthError: If the token endpoint rejects the refresh
        """
        if not self.refresh_token:
            raise MissingRefreshTokenError()
        return await _with_api(self.configuration, api, lambda a: a.refresh(self))

    async def revoke(
        self,
        kind: RevokeType = RevokeType.ACCESS_AND_REFRESH_TOKEN,
        api: IDXClientAPI | None = None,
    ) -> None:
        """Revoke this token.

        Raises:
            InvalidParameterError: If the selected token is absent; no request
                is sent in that case
        """
        selected = (
            self.refresh_token if kind is RevokeType.REFRESH_TOKEN else self.access_token
        )
        if not selected:
            raise InvalidParameterError("token")
        await Token.revoke_token(selected, kind, self.configuration, api)

    @staticmethod
    async def revoke_token(
        token: str,
        kind: RevokeType,
        configuration: Configuration,
        api: IDXClientAPI | None = None,
    ) -> None:
        """Revoke a stored token string without a Token instance."""
        if not token:
            raise InvalidParameterError("token")
        await _with_api(configuration, api, lambda a: a.revoke(token, kind))

    def __repr__(self) -> str:
        return (
            f"Token(token_type={self.token_type!r}, scope={self.scope!r}, "
            f"expires_in={self.expires_in!r}, "
            f"has_refresh_token={self.refresh_token is not None})"
        )


async def _with_api(
    configuration: Configuration,
    api: IDXClientAPI | None,
    operation: Callable[[IDXClientAPI], Awaitable[T]],
) -> T:
    if api is not None:
        return await operation(api)

    from idxflow.client.services.api import IDXClientAPI

    async with IDXClientAPI(configuration) as owned:
        return await operation(owned)


class TokenResponse(BaseModel):
    """OAuth token endpoint response, success or error (RFC 6749 Section 5)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: float | None = None
    refresh_token: str | None = None
    id_token: str | None = None
    scope: str | None = None

    error: str | None = None
    error_description: str | None = None
    error_id: str | None = Field(default=None, alias="errorId")

    def is_success(self) -> bool:
        return self.error is None and self.access_token is not None

    def is_error(self) -> bool:
        return self.error is not None

    def to_token(self, configuration: Configuration) -> Token:
        """Convert a successful response into a Token.

        Raises:
            OAuthError: If the response is an OAuth error
            InvalidResponseDataError: If the access token is missing
        """
        if self.is_error():
            raise OAuthError(
                self.error_description or self.error or "Unknown OAuth error",
                code=self.error,
                error_id=self.error_id,
            )
        if not self.access_token:
            raise InvalidResponseDataError("Token response missing required access_token")

        return Token(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            id_token=self.id_token,
            expires_in=self.expires_in or 0.0,
            scope=self.scope or "",
            token_type=self.token_type,
            configuration=configuration,
        )


@dataclass(frozen=True)
class InteractionCodeRequest:
    """Token request exchanging an interaction code for tokens."""

    token_endpoint: str
    interaction_code: str
    client_id: str
    code_verifier: str
    client_secret: str | None = None
    grant_type: str = "interaction_code"

    def to_form_data(self) -> dict[str, str]:
        data = {
            "grant_type": self.grant_type,
            "interaction_code": self.interaction_code,
            "client_id": self.client_id,
            "code_verifier": self.code_verifier,
        }
        if self.client_secret:
            data["client_secret"] = self.client_secret
        return data


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Token request refreshing an access token (RFC 6749 Section 6)."""

    token_endpoint: str
    refresh_token: str
    client_id: str
    scope: str | None = None
    client_secret: str | None = None
    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        data = {
            "grant_type": self.grant_type,
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
        }
        if self.scope:
            data["scope"] = self.scope
        if self.client_secret:
            data["client_secret"] = self.client_secret
        return data


@dataclass(frozen=True)
class RevokeRequest:
    """Token revocation request (RFC 7009)."""

    revoke_endpoint: str
    token: str
    token_type_hint: str
    client_id: str
    client_secret: str | None = None

    def to_form_data(self) -> dict[str, str]:
        data = {
            "token": self.token,
            "token_type_hint": self.token_type_hint,
            "client_id": self.client_id,
        }
        if self.client_secret:
            data["client_secret"] = self.client_secret
        return data
