"""Tests for Token refresh and revocation.

High-impact tests covering:
- Token construction from token endpoint replies
- Refresh producing a new, independent token
- Revocation failing before any request when the token is absent
"""

from unittest.mock import AsyncMock

import pytest

from idxflow.client.models.configuration import Configuration
from idxflow.client.models.errors import (
    InvalidParameterError,
    InvalidResponseDataError,
    MissingRefreshTokenError,
    OAuthError,
)
from idxflow.client.models.tokens import RevokeType, Token
from idxflow.client.services.api import IDXClientAPI
from tests.payloads import ISSUER, REDIRECT_URI, http_response, token_payload


class TokenTestCase:
    def setup_method(self):
        # Arrange
        self.configuration = Configuration(
            issuer=ISSUER,
            client_id="client-123",
            scopes=["openid", "offline_access"],
            redirect_uri=REDIRECT_URI,
        )
        self.api = IDXClientAPI(self.configuration)
        self.api._http_client = AsyncMock()


class TestTokenFromResponse(TokenTestCase):
    def test_builds_token(self):
        # Act
        token = Token.from_response(token_payload(), self.configuration)

        # Assert
        assert token.access_token == "access-token-abc"
        assert token.id_token == "id-token-ghi"
        assert token.expires_at == token.issued_at + 3600
        assert not token.is_expired()

    def test_missing_access_token(self):
        # Act & Assert
        with pytest.raises(InvalidResponseDataError):
            Token.from_response({"token_type": "Bearer"}, self.configuration)

    def test_oauth_error_reply(self):
        # Act & Assert
        with pytest.raises(OAuthError):
            Token.from_response(
                {"error": "invalid_grant", "error_description": "expired"},
                self.configuration,
            )

    def test_repr_hides_credentials(self):
        # Arrange
        token = Token.from_response(token_payload(), self.configuration)

        # Act & Assert
        assert "access-token-abc" not in repr(token)
        assert "refresh-token-def" not in repr(token)


class TestTokenRefresh(TokenTestCase):
    async def test_refresh_returns_new_token(self):
        # Arrange
        token = Token.from_response(token_payload(), self.configuration)
        refreshed_payload = dict(token_payload(), access_token="access-token-new")
        self.api._http_client.request.return_value = http_response(200, refreshed_payload)

        # Act
        refreshed = await token.refresh(api=self.api)

        # Assert
        assert refreshed.access_token == "access-token-new"
        assert token.access_token == "access-token-abc"
        body = self.api._http_client.request.call_args.kwargs["content"].decode()
        assert "grant_type=refresh_token" in body
        assert "refresh_token=refresh-token-def" in body

    async def test_refresh_without_refresh_token(self):
        # Arrange
        payload = token_payload()
        del payload["refresh_token"]
        token = Token.from_response(payload, self.configuration)

        # Act & Assert
        with pytest.raises(MissingRefreshTokenError):
            await token.refresh(api=self.api)
        self.api._http_client.request.assert_not_awaited()


class TestTokenRevoke(TokenTestCase):
    async def test_revoke_refresh_token_without_one_sends_nothing(self):
        # Arrange
        payload = token_payload()
        del payload["refresh_token"]
        token = Token.from_response(payload, self.configuration)

        # Act & Assert
        with pytest.raises(InvalidParameterError):
            await token.revoke(RevokeType.REFRESH_TOKEN, api=self.api)
        self.api._http_client.request.assert_not_awaited()

    async def test_revoke_access_token(self):
        # Arrange
        token = Token.from_response(token_payload(), self.configuration)
        self.api._http_client.request.return_value = http_response(200)

        # Act
        await token.revoke(api=self.api)

        # Assert
        body = self.api._http_client.request.call_args.kwargs["content"].decode()
        assert "token=access-token-abc" in body
        assert "token_type_hint=access_token" in body

    async def test_revoke_stored_token_string(self):
        # Arrange
        self.api._http_client.request.return_value = http_response(200)

        # Act
        await Token.revoke_token(
            "refresh-token-def", RevokeType.REFRESH_TOKEN, self.configuration, api=self.api
        )

        # Assert
        self.api._http_client.request.assert_awaited_once()
