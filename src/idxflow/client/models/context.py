"""Resumable session state for one workflow run."""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, ValidationError

from idxflow.client.models.configuration import Configuration
from idxflow.client.models.errors import InvalidResponseDataError


class Context(BaseModel):
    """Everything needed to resume a workflow, possibly in another process.

    ``interaction_handle`` identifies the server-side interaction, ``state``
    is the OAuth state sent when it was created, and ``code_verifier`` is the
    PKCE secret required for the final code exchange. ``state_handle`` tracks
    the latest server state token. Contexts are immutable; the client swaps
    in a new one after each successful response.
    """

    model_config = ConfigDict(frozen=True)

    configuration: Configuration
    interaction_handle: str
    state: str
    code_verifier: str
    state_handle: str | None = None
    version: str = "1.0.0"

    def with_state_handle(self, state_handle: str | None) -> Context:
        if state_handle is None or state_handle == self.state_handle:
            return self
        return self.model_copy(update={"state_handle": state_handle})

    def to_json(self) -> str:
        """Serialize for storage, client secret included.

        Store the result as securely as the client secret itself.
        """
        data = self.model_dump(mode="json")
        secret = self.configuration.client_secret
        data["configuration"]["client_secret"] = (
            secret.get_secret_value() if secret is not None else None
        )
        return json.dumps(data)

    @classmethod
    def from_json(cls, text: str | bytes) -> Context:
        """Restore a context produced by ``to_json``.

        Raises:
            InvalidResponseDataError: If the text isn't a serialized context
        """
        try:
            return cls.model_validate_json(text)
        except ValidationError as e:
            raise InvalidResponseDataError(f"Invalid serialized context: {e}") from e
