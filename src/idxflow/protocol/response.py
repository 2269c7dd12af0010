"""Decoded IDX responses: the complete workflow state after each request."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from idxflow.protocol.authenticators import AuthenticatorCollection
from idxflow.protocol.form import Field
from idxflow.protocol.messages import MessageCollection
from idxflow.protocol.remediation import Remediation, RemediationCollection


@dataclass(frozen=True)
class Application:
    """The client application the user is signing in to."""

    id: str
    label: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class User:
    id: str
    username: str | None = None
    profile: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Response:
    """Snapshot of the workflow returned by one IDX request.

    A response is never updated in place; each request produces a new one
    that supersedes the previous one entirely. ``success`` holds the
    remediation used to exchange the interaction code once sign-in is done.
    """

    state_handle: str | None
    version: str | None
    remediations: RemediationCollection
    messages: MessageCollection = field(default_factory=MessageCollection)
    authenticators: AuthenticatorCollection = field(
        default_factory=AuthenticatorCollection
    )
    intent: str | None = None
    expires_at: datetime | None = None
    app: Application | None = None
    user: User | None = None
    success: Remediation | None = None
    cancel_remediation: Remediation | None = None

    @property
    def is_login_successful(self) -> bool:
        return self.success is not None

    @property
    def can_cancel(self) -> bool:
        return self.cancel_remediation is not None

    def __getitem__(self, path: str) -> Field:
        """Resolve ``"<remediation name>.<field path>"``.

        For example ``response["challenge-authenticator.credentials.passcode"]``.
        """
        name, _, rest = path.partition(".")
        remediation = self.remediations[name]
        if not rest:
            raise KeyError(path)
        return remediation[rest]
