import logging
from typing import Awaitable, Callable

from idxflow.client.models.errors import IDXClientError
from idxflow.client.models.tokens import Token
from idxflow.protocol.response import Response

logger = logging.getLogger(__name__)


class CallbackManager:
    """Manages long-lived observer callbacks for workflow events."""

    def __init__(self):
        self._response: Callable[[Response], Awaitable[None]] | None = None
        self._token: Callable[[Token], Awaitable[None]] | None = None
        self._error: Callable[[IDXClientError], Awaitable[None]] | None = None

    def on_response(self, callback: Callable[[Response], Awaitable[None]]) -> None:
        """Register your callback for every new workflow response.

        Called with each Response the client receives: after starting,
        resuming, or proceeding through a remediation. It receives the same
        object the awaiting caller or completion callback receives.

        Args:
            callback: Your async function called with each Response.
        """
        self._response = callback

    async def call_response(self, response: Response) -> None:
        """Invoke your registered response callback.

        Logs any errors that occur.
        """
        if self._response:
            try:
                await self._response(response)
            except Exception as e:
                logger.warning(f"Response callback failed: {e}")

    def on_token(self, callback: Callable[[Token], Awaitable[None]]) -> None:
        """Register your callback for issued tokens.

        Args:
            callback: Your async function called with each Token obtained by
                exchanging an interaction code.
        """
        self._token = callback

    async def call_token(self, token: Token) -> None:
        """Invoke your registered token callback. Logs any errors that occur."""
        if self._token:
            try:
                await self._token(token)
            except Exception as e:
                logger.warning(f"Token callback failed: {e}")

    def on_error(self, callback: Callable[[IDXClientError], Awaitable[None]]) -> None:
        """Register your callback for workflow errors.

        Args:
            callback: Your async function called with every error a client
                operation reports, whether it was raised to the caller or
                delivered to a completion callback.
        """
        self._error = callback

    async def call_error(self, error: IDXClientError) -> None:
        if self._error:
            try:
                await self._error(error)
            except Exception as e:
                logger.warning(f"Error callback failed: {e}")
