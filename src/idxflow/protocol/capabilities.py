"""Well-known remediation behaviors.

Capabilities let callers handle a remediation by what it can do (resend a
code, poll for approval, redirect to an identity provider) instead of
string-matching its raw name. They are descriptive only; ``proceed`` works the
same with or without them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from idxflow.protocol.remediation import Completion, Remediation, Session
    from idxflow.protocol.response import Response


class CapabilityKind(str, Enum):
    SEND = "send"
    RESEND = "resend"
    POLL = "poll"
    RECOVER = "recover"
    SOCIAL_IDP = "social-idp"


@dataclass(frozen=True)
class _ActionCapability:
    remediation: Remediation

    async def proceed(
        self, session: Session | None, completion: Completion | None = None
    ) -> Response | None:
        return await self.remediation.proceed(session, completion=completion)


@dataclass(frozen=True)
class SendCapability(_ActionCapability):
    """Sends a verification code to the related authenticator."""

    kind: ClassVar[CapabilityKind] = CapabilityKind.SEND


@dataclass(frozen=True)
class ResendCapability(_ActionCapability):
    """Re-sends a verification code to the related authenticator."""

    kind: ClassVar[CapabilityKind] = CapabilityKind.RESEND


@dataclass(frozen=True)
class RecoverCapability(_ActionCapability):
    """Starts account recovery for the related authenticator."""

    kind: ClassVar[CapabilityKind] = CapabilityKind.RECOVER


@dataclass(frozen=True)
class PollCapability(_ActionCapability):
    """Re-issues a request until the user approves out of band.

    ``interval`` is the server-advertised refresh interval in seconds. Each
    ``poll`` call waits one interval and sends a single request; looping and
    giving up are left to the caller.
    """

    interval: float = 0.0

    kind: ClassVar[CapabilityKind] = CapabilityKind.POLL

    async def poll(
        self, session: Session | None, completion: Completion | None = None
    ) -> Response | None:
        await asyncio.sleep(self.interval)
        return await self.proceed(session, completion)


@dataclass(frozen=True)
class SocialIdpCapability:
    """Authentication through an external identity provider.

    The user is sent to ``redirect_url``; the result comes back through the
    configured redirect URI and is evaluated with ``IDXClient.redirect_result``.
    """

    id: str
    name: str
    service: str
    redirect_url: str

    kind: ClassVar[CapabilityKind] = CapabilityKind.SOCIAL_IDP


Capability = (
    SendCapability
    | ResendCapability
    | RecoverCapability
    | PollCapability
    | SocialIdpCapability
)
