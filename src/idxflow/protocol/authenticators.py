"""Authenticators: the verification methods a remediation can act on."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from idxflow.protocol.remediation import Remediation


class AuthenticatorState(str, Enum):
    NORMAL = "normal"
    ENROLLED = "enrolled"
    AUTHENTICATING = "authenticating"
    RECOVERY = "recovery"


@dataclass
class Authenticator:
    """A verification method such as a password, email OTP or security key.

    ``json_path`` is where the authenticator was found in the response, which
    is what remediation ``relatesTo`` references point at. The optional
    remediations are authenticator-level actions (resend a code, poll for an
    out-of-band approval, start recovery) offered by the server.
    """

    id: str
    type: str
    display_name: str | None = None
    key: str | None = None
    methods: list[dict[str, Any]] = field(default_factory=list)
    profile: dict[str, Any] = field(default_factory=dict)
    state: AuthenticatorState = AuthenticatorState.NORMAL
    json_path: str | None = None
    send: Remediation | None = None
    resend: Remediation | None = None
    poll: Remediation | None = None
    recover: Remediation | None = None

    @property
    def method_types(self) -> list[str]:
        return [method["type"] for method in self.methods if "type" in method]


class AuthenticatorCollection:
    """Ordered set of authenticators with lookup by id or type."""

    def __init__(self, authenticators: list[Authenticator] | None = None):
        self._authenticators = list(authenticators or [])

    def by_id(self, authenticator_id: str) -> Authenticator | None:
        for authenticator in self._authenticators:
            if authenticator.id == authenticator_id:
                return authenticator
        return None

    def by_type(self, authenticator_type: str) -> Authenticator | None:
        for authenticator in self._authenticators:
            if authenticator.type == authenticator_type:
                return authenticator
        return None

    @property
    def current(self) -> Authenticator | None:
        """The authenticator the user is currently verifying or enrolling."""
        for authenticator in self._authenticators:
            if authenticator.state is AuthenticatorState.AUTHENTICATING:
                return authenticator
        return None

    def __iter__(self) -> Iterator[Authenticator]:
        return iter(self._authenticators)

    def __len__(self) -> int:
        return len(self._authenticators)
