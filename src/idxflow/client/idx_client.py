"""Identity Engine client.

Drives one authentication workflow: starts (or resumes) an interaction,
submits remediations as the user completes them, and exchanges the final
interaction code for tokens. Every operation reports its outcome through a
single completion point, so a per-call completion callback, the awaiting
caller and the long-lived observer always see the same result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

import httpx

from idxflow.client.callbacks import CallbackManager
from idxflow.client.models.configuration import Configuration
from idxflow.client.models.context import Context
from idxflow.client.models.errors import (
    IDXClientError,
    InternalError,
    InvalidClientError,
    InvalidParameterError,
    MissingRemediationOptionError,
    MissingRequiredParameterError,
    OAuthError,
    SuccessResponseMissingError,
)
from idxflow.client.models.redirect import RedirectKind, RedirectResult
from idxflow.client.models.tokens import Token
from idxflow.client.primitives.pkce import PKCEManager, generate_state
from idxflow.client.services.api import IDXClientAPI
from idxflow.client.services.redirect import evaluate_redirect
from idxflow.protocol.remediation import Completion, Remediation
from idxflow.protocol.response import Response

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ClientState(str, Enum):
    """Where a workflow stands.

    SUCCESS is terminal: the client rejects further workflow calls. FAILED
    means the latest response offered no remediations. The client stays
    usable in that state, so a caller may still resume, cancel or submit a
    remediation kept from an earlier response.
    """

    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    SUCCESS = "success"
    FAILED = "failed"


class Option(str, Enum):
    """Options accepted by ``IDXClient.start``."""

    STATE = "state"
    RECOVERY_TOKEN = "recovery_token"


class IDXClient:
    """A live authentication workflow.

    Create one with ``IDXClient.start`` for a new interaction, or construct
    it from a persisted ``Context`` and call ``resume`` to continue an
    existing one. Workflow-advancing calls are serialized; a call issued
    while another is in flight waits for it and then runs against the
    context it produced.

    Every operation accepts an optional ``completion`` callback. When one is
    passed, the outcome is delivered there as ``(result, None)`` or
    ``(None, error)`` and the call returns None instead of raising.
    """

    def __init__(
        self,
        context: Context,
        api: IDXClientAPI | None = None,
        callbacks: CallbackManager | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.context: Context | None = context
        self.api = api or IDXClientAPI(context.configuration, http_client)
        self.callbacks = callbacks or CallbackManager()
        self.state = ClientState.UNINITIALIZED
        self.last_response: Response | None = None
        self._lock = asyncio.Lock()

    @property
    def configuration(self) -> Configuration | None:
        return self.context.configuration if self.context is not None else None

    @property
    def is_active(self) -> bool:
        """Whether the workflow can still be advanced."""
        return self.context is not None and self.state is not ClientState.SUCCESS

    # ================================
    # Starting and resuming
    # ================================

    @classmethod
    async def start(
        cls,
        configuration: Configuration,
        options: dict[Option, str] | None = None,
        completion: Completion | None = None,
        http_client: httpx.AsyncClient | None = None,
        callbacks: CallbackManager | None = None,
    ) -> IDXClient | None:
        """Start a new interaction and fetch its first response.

        Args:
            configuration: Application configuration
            options: ``Option.STATE`` to supply the OAuth state,
                ``Option.RECOVERY_TOKEN`` to start account recovery
            completion: Optional single-shot callback receiving the client
            http_client: Optional shared HTTP client
            callbacks: Optional observer registered on the new client

        Returns:
            IDXClient: Client in ACTIVE state with ``last_response`` set, or
            None when a completion callback was given

        Raises:
            IDXClientError: If the interaction can't be started
        """
        options = options or {}
        callbacks = callbacks or CallbackManager()
        api = IDXClientAPI(configuration, http_client)

        try:
            pkce = PKCEManager().generate_parameters()
            state = options.get(Option.STATE) or generate_state()
            handle = await api.interact(
                pkce, state, recovery_token=options.get(Option.RECOVERY_TOKEN)
            )
            client = cls(
                Context(
                    configuration=configuration,
                    interaction_handle=handle,
                    state=state,
                    code_verifier=pkce.code_verifier,
                ),
                api=api,
                callbacks=callbacks,
            )
            await client._introspect()
        except IDXClientError as e:
            logger.warning(f"Failed to start interaction: {e}")
            await api.close()
            return await _complete(callbacks, completion, None, e)
        except asyncio.CancelledError as e:
            logger.warning("Interaction start was cancelled")
            await api.close()
            await _report_cancelled(callbacks, completion, e)
            raise

        logger.info("Interaction started")
        return await _complete(callbacks, completion, client, None)

    async def resume(self, completion: Completion | None = None) -> Response | None:
        """Fetch the current response of this client's interaction.

        Raises:
            InvalidClientError: If the client has no context or has succeeded
        """
        return await self._run(self._introspect, completion)

    async def _introspect(self) -> Response:
        async with self._lock:
            context = self._require_active()
            response = await self.api.introspect(context.interaction_handle)
            self._advance(response)
        return response

    # ================================
    # Proceeding
    # ================================

    async def proceed(
        self,
        remediation: Remediation,
        values: dict[str, Any] | None = None,
        completion: Completion | None = None,
    ) -> Response | None:
        """Submit a remediation with the given field values.

        Args:
            remediation: Remediation from the latest response
            values: Field values keyed by name or dotted path
            completion: Optional single-shot callback

        Returns:
            Response: The next workflow state

        Raises:
            InvalidClientError: If the client has no context or has succeeded
            IDXClientError: If the request can't be built or sent
        """

        async def submit() -> Response:
            async with self._lock:
                self._require_active()
                request = remediation.build_request(values)
                logger.debug(f"Proceeding with {remediation.name}")
                response = await self.api.proceed(request)
                self._advance(response)
            return response

        return await self._run(submit, completion)

    async def cancel(self, completion: Completion | None = None) -> Response | None:
        """Cancel the workflow using the latest response's cancel remediation.

        Raises:
            MissingRemediationOptionError: If the latest response can't be
                cancelled
        """
        response = self.last_response
        if response is None or response.cancel_remediation is None:
            return await _complete(
                self.callbacks, completion, None, MissingRemediationOptionError("cancel")
            )
        return await self.proceed(response.cancel_remediation, completion=completion)

    def _advance(self, response: Response) -> None:
        self.last_response = response
        self.context = self.context.with_state_handle(response.state_handle)

        if response.is_login_successful:
            self.state = ClientState.SUCCESS
        elif not response.remediations:
            self.state = ClientState.FAILED
        else:
            self.state = ClientState.ACTIVE

        logger.debug(f"Workflow state: {self.state.value}")

    def _require_active(self) -> Context:
        if not self.is_active:
            raise InvalidClientError()
        return self.context

    # ================================
    # Redirects and tokens
    # ================================

    def redirect_result(self, url: str) -> RedirectResult:
        """Classify a redirect back to the application for this workflow.

        Raises:
            InvalidClientError: If the client has no context
        """
        if self.context is None:
            raise InvalidClientError()
        return evaluate_redirect(url, self.context)

    async def exchange_code(
        self,
        redirect_url: str | None = None,
        response: Response | None = None,
        completion: Completion | None = None,
    ) -> Token | None:
        """Exchange the workflow's interaction code for tokens.

        Uses the interaction code from ``redirect_url`` when given, otherwise
        the success remediation of ``response`` (default: the latest
        response). The PKCE code verifier comes from the context.

        Raises:
            OAuthError: If the redirect reports an error
            InvalidParameterError: If the redirect isn't a valid redirect
                for this workflow
            SuccessResponseMissingError: If the response hasn't succeeded
            MissingRequiredParameterError: If the success remediation takes no
                code verifier
        """

        async def exchange() -> Token:
            if self.context is None:
                raise InvalidClientError()

            if redirect_url is not None:
                result = self.redirect_result(redirect_url)
                if result.kind in (RedirectKind.ERROR, RedirectKind.REMEDIATION_REQUIRED):
                    raise OAuthError(
                        result.error_description or result.error,
                        code=result.error,
                    )
                if not result.is_authenticated():
                    raise InvalidParameterError("redirect_url")
                return await self.api.exchange_code(
                    self.context, result.interaction_code
                )

            source = response or self.last_response
            if source is None or source.success is None:
                raise SuccessResponseMissingError()

            success = source.success
            if "code_verifier" not in success.form:
                raise MissingRequiredParameterError("code_verifier")
            values: dict[str, Any] = {"code_verifier": self.context.code_verifier}
            secret = self.context.configuration.client_secret
            if secret is not None and "client_secret" in success.form:
                values["client_secret"] = secret.get_secret_value()

            return await self.api.token(success.build_request(values))

        return await self._run(exchange, completion)

    # ================================
    # Completion
    # ================================

    async def _run(
        self,
        operation: Callable[[], Awaitable[T]],
        completion: Completion | None,
    ) -> T | None:
        try:
            result = await operation()
        except IDXClientError as e:
            return await _complete(self.callbacks, completion, None, e)
        except asyncio.CancelledError as e:
            logger.warning("Workflow request was cancelled")
            await _report_cancelled(self.callbacks, completion, e)
            raise
        return await _complete(self.callbacks, completion, result, None)

    async def close(self) -> None:
        """End this client; later workflow calls fail with InvalidClientError."""
        self.context = None
        await self.api.close()

    async def __aenter__(self) -> IDXClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def _complete(
    callbacks: CallbackManager,
    completion: Completion | None,
    result: Any,
    error: IDXClientError | None,
) -> Any:
    """Deliver one outcome to the observer and then to the caller."""
    if error is not None:
        await callbacks.call_error(error)
    elif isinstance(result, Token):
        await callbacks.call_token(result)
    elif isinstance(result, Response):
        await callbacks.call_response(result)
    elif isinstance(result, IDXClient) and result.last_response is not None:
        await callbacks.call_response(result.last_response)

    if completion is not None:
        await completion(result, error)
        return None
    if error is not None:
        raise error
    return result


async def _report_cancelled(
    callbacks: CallbackManager,
    completion: Completion | None,
    cancelled: asyncio.CancelledError,
) -> None:
    """Deliver a cancelled call as an InternalError; the caller re-raises."""
    error = InternalError(cancelled)
    await callbacks.call_error(error)
    if completion is not None:
        await completion(None, error)
