"""Identity Engine HTTP service.

Issues every request the workflow needs: interact, introspect, remediation
submissions, and the OAuth token, refresh and revoke calls. Replies are
decoded here and failures mapped onto the ``IDXClientError`` hierarchy; no
request is ever retried.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Self

import httpx
from idxflow.client.models.configuration import Configuration
from idxflow.client.models.context import Context
from idxflow.client.models.errors import (
    InternalError,
    InvalidHTTPResponseError,
    InvalidResponseDataError,
    OAuthError,
    ServerError,
)
from idxflow.client.models.tokens import (
    InteractionCodeRequest,
    RefreshTokenRequest,
    RevokeRequest,
    RevokeType,
    Token,
)
from idxflow.client.primitives.pkce import PKCEParameters
from idxflow.protocol.accept import AcceptType
from idxflow.protocol.remediation import DEFAULT_ACCEPT, IDXRequest
from idxflow.protocol.response import Response
from idxflow.shared.parser import ResponseParser

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"


class IDXClientAPI:
    """HTTP access to the Identity Engine and OAuth endpoints of one application.

    The underlying ``httpx.AsyncClient`` can be shared between many API
    instances; a client passed in is never closed here, one created here is
    closed by ``close()``.
    """

    def __init__(
        self,
        configuration: Configuration,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the API service.

        Args:
            configuration: Application configuration
            http_client: Optional shared HTTP client; a new one using the
                configured timeout is created otherwise
        """
        self.configuration = configuration
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=configuration.timeout
        )
        self._parser = ResponseParser()

    # ================================
    # Workflow requests
    # ================================

    async def interact(
        self,
        pkce: PKCEParameters,
        state: str,
        recovery_token: str | None = None,
    ) -> str:
        """Create a new interaction and return its interaction handle.

        Raises:
            OAuthError: If the interact endpoint rejects the request
            ServerError: If the server answers with an IDX error message
            InvalidResponseDataError: If no interaction handle is returned
        """
        data = {
            "client_id": self.configuration.client_id,
            "scope": self.configuration.scope,
            "code_challenge": pkce.code_challenge,
            "code_challenge_method": pkce.code_challenge_method,
            "redirect_uri": self.configuration.redirect_uri,
            "state": state,
        }
        secret = self._client_secret()
        if secret:
            data["client_secret"] = secret
        if recovery_token:
            data["recovery_token"] = recovery_token

        logger.debug(
            f"Interact request: client_id={data['client_id']}, scope={data['scope']}"
        )

        payload = await self.send(
            self._form_request(self.configuration.oauth_endpoint("interact"), data)
        )

        handle = payload.get("interaction_handle") if isinstance(payload, dict) else None
        if not handle:
            messages = self._parser.messages(payload) if isinstance(payload, dict) else []
            if messages:
                first = messages[0]
                logger.warning(f"Interact rejected: {first.message}")
                raise ServerError(
                    first.message, first.localization_key or "", first.type.value
                )
            raise InvalidResponseDataError("Interact response missing interaction_handle")

        logger.info("Created new interaction")
        return handle

    async def introspect(self, interaction_handle: str) -> Response:
        """Fetch the current workflow state for an interaction."""
        request = IDXRequest(
            method="POST",
            url=self.configuration.idx_endpoint("introspect"),
            headers={
                "Accept": str(DEFAULT_ACCEPT),
                "Content-Type": DEFAULT_ACCEPT.content_type,
            },
            body=DEFAULT_ACCEPT.encode({"interactionHandle": interaction_handle}),
        )
        return self._parser.parse(await self.send(request))

    async def proceed(self, request: IDXRequest) -> Response:
        """Send a remediation request and decode the next response."""
        return self._parser.parse(await self.send(request))

    # ================================
    # Token requests
    # ================================

    async def token(self, request: IDXRequest) -> Token:
        """Send a token endpoint request and decode the issued Token.

        Raises:
            OAuthError: If the token endpoint returns an OAuth error
            InvalidResponseDataError: If the reply isn't a token response
        """
        token = Token.from_response(await self.send(request), self.configuration)
        logger.info("Token exchange successful")
        return token

    async def exchange_code(self, context: Context, interaction_code: str) -> Token:
        """Exchange an interaction code for tokens (RFC 6749 Section 4.1.3)."""
        token_request = InteractionCodeRequest(
            token_endpoint=self.configuration.oauth_endpoint("token"),
            interaction_code=interaction_code,
            client_id=self.configuration.client_id,
            code_verifier=context.code_verifier,
            client_secret=self._client_secret(),
        )
        logger.debug(f"Exchanging interaction code at {token_request.token_endpoint}")
        return await self.token(
            self._form_request(token_request.token_endpoint, token_request.to_form_data())
        )

    async def refresh(self, token: Token) -> Token:
        """Refresh a token (RFC 6749 Section 6)."""
        refresh_request = RefreshTokenRequest(
            token_endpoint=self.configuration.oauth_endpoint("token"),
            refresh_token=token.refresh_token or "",
            client_id=self.configuration.client_id,
            scope=token.scope or self.configuration.scope,
            client_secret=self._client_secret(),
        )
        logger.debug(f"Refreshing access token at {refresh_request.token_endpoint}")
        return await self.token(
            self._form_request(
                refresh_request.token_endpoint, refresh_request.to_form_data()
            )
        )

    async def revoke(self, token: str, kind: RevokeType) -> None:
        """Revoke a token string (RFC 7009). Succeeds silently."""
        revoke_request = RevokeRequest(
            revoke_endpoint=self.configuration.oauth_endpoint("revoke"),
            token=token,
            token_type_hint=kind.token_type_hint,
            client_id=self.configuration.client_id,
            client_secret=self._client_secret(),
        )
        logger.debug(f"Revoking {kind.token_type_hint} at {revoke_request.revoke_endpoint}")
        await self.send(
            self._form_request(
                revoke_request.revoke_endpoint, revoke_request.to_form_data()
            )
        )
        logger.info(f"Revoked {kind.token_type_hint}")

    # ================================
    # Transport
    # ================================

    async def send(self, request: IDXRequest) -> Any:
        """Issue a request and return its decoded JSON body.

        Returns:
            The decoded body, or None for an empty successful reply. IDX
            bodies returned with an error status are returned too, so the
            server's field messages reach the caller as a Response.

        Raises:
            InternalError: If the transport fails (timeouts included)
            InvalidResponseDataError: If a successful reply isn't JSON
            ServerError: If the server returns an error body
            OAuthError: If an OAuth endpoint returns an error body
            InvalidHTTPResponseError: For any other unsuccessful reply
        """
        try:
            response = await self._http_client.request(
                request.method,
                request.url,
                content=request.body,
                headers=request.headers,
            )
        except httpx.HTTPError as e:
            raise InternalError(e) from e

        return self._decode(response)

    def _decode(self, response: httpx.Response) -> Any:
        status = response.status_code
        successful = 200 <= status < 300

        if not response.content:
            if successful:
                return None
            raise InvalidHTTPResponseError(f"Empty HTTP {status} response")

        try:
            payload = response.json()
        except ValueError as e:
            if successful:
                raise InvalidResponseDataError(f"Response is not valid JSON: {e}") from e
            raise InvalidHTTPResponseError(f"Unexpected HTTP {status} response") from e

        if successful:
            return payload

        if isinstance(payload, dict):
            if self._parser.is_idx_payload(payload):
                logger.warning(f"IDX request failed with {status}")
                return payload
            if "error" in payload or "errorCode" in payload:
                summary = (
                    payload.get("error_description")
                    or payload.get("errorSummary")
                    or payload.get("error")
                    or payload.get("errorCode")
                )
                logger.warning(f"OAuth request failed with {status}: {summary}")
                raise OAuthError(
                    summary,
                    code=payload.get("error") or payload.get("errorCode"),
                    error_id=payload.get("errorId"),
                )
            if "message" in payload:
                logger.warning(f"Server error {status}: {payload['message']}")
                raise ServerError(
                    payload["message"],
                    payload.get("localizationKey", ""),
                    payload.get("type", ""),
                )

        raise InvalidHTTPResponseError(f"Unexpected HTTP {status} response")

    def _form_request(self, url: str, data: dict[str, str]) -> IDXRequest:
        accept = AcceptType.form_encoded()
        return IDXRequest(
            method="POST",
            url=url,
            headers={"Accept": JSON_MEDIA_TYPE, "Content-Type": accept.content_type},
            body=accept.encode(data),
        )

    def _client_secret(self) -> str | None:
        secret = self.configuration.client_secret
        return secret.get_secret_value() if secret is not None else None

    # ================================
    # Lifecycle
    # ================================

    async def close(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
