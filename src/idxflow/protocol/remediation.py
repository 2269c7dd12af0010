"""Remediations: the next steps a server offers in an authentication workflow.

Each remediation carries a form to fill and a description of the request to
send. ``build_request`` turns caller-supplied values into that request;
``proceed`` hands it to the session that owns the workflow.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from idxflow.client.models.errors import (
    CannotCreateRequestError,
    IDXClientError,
    InvalidClientError,
    MissingRemediationOptionError,
)
from idxflow.protocol.accept import AcceptType
from idxflow.protocol.authenticators import AuthenticatorCollection
from idxflow.protocol.capabilities import Capability, CapabilityKind
from idxflow.protocol.form import Field, Form
from idxflow.protocol.messages import MessageCollection

if TYPE_CHECKING:
    from idxflow.protocol.response import Response

logger = logging.getLogger(__name__)

DEFAULT_ACCEPT = AcceptType.ion_json("1.0.0")

T = TypeVar("T")

Completion = Callable[[Any | None, IDXClientError | None], Awaitable[None]]
"""Single-shot completion callback: receives (result, None) or (None, error)."""


class RemediationType(str, Enum):
    """Known remediation names.

    Names the client doesn't know map to ``UNKNOWN``; the raw name stays
    available on ``Remediation.name``.
    """

    IDENTIFY = "identify"
    SELECT_IDENTIFY = "select-identify"
    IDENTIFY_RECOVERY = "identify-recovery"
    SELECT_ENROLL_PROFILE = "select-enroll-profile"
    ENROLL_PROFILE = "enroll-profile"
    REDIRECT_IDP = "redirect-idp"
    SELECT_AUTHENTICATOR_AUTHENTICATE = "select-authenticator-authenticate"
    SELECT_AUTHENTICATOR_ENROLL = "select-authenticator-enroll"
    SELECT_ENROLLMENT_CHANNEL = "select-enrollment-channel"
    AUTHENTICATOR_VERIFICATION_DATA = "authenticator-verification-data"
    AUTHENTICATOR_ENROLLMENT_DATA = "authenticator-enrollment-data"
    ENROLLMENT_CHANNEL_DATA = "enrollment-channel-data"
    CHALLENGE_AUTHENTICATOR = "challenge-authenticator"
    CHALLENGE_POLL = "challenge-poll"
    ENROLL_POLL = "enroll-poll"
    ENROLL_AUTHENTICATOR = "enroll-authenticator"
    REENROLL_AUTHENTICATOR = "reenroll-authenticator"
    RESET_AUTHENTICATOR = "reset-authenticator"
    RECOVER = "recover"
    SEND = "send"
    RESEND = "resend"
    POLL = "poll"
    SKIP = "skip"
    CANCEL = "cancel"
    UNLOCK_ACCOUNT = "unlock-account"
    USER_UNLOCK_ACCOUNT = "user-unlock-account"
    DEVICE_CHALLENGE_POLL = "device-challenge-poll"
    DEVICE_APPLE_SSO_EXTENSION = "device-apple-sso-extension"
    LAUNCH_AUTHENTICATOR = "launch-authenticator"
    CANCEL_TRANSACTION = "cancel-transaction"
    CONSENT = "consent"
    ISSUE = "issue"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> RemediationType:
        return cls.UNKNOWN


class Session(Protocol):
    """The live workflow a remediation proceeds through."""

    @property
    def is_active(self) -> bool: ...

    async def proceed(
        self,
        remediation: Remediation,
        values: dict[str, Any] | None = None,
        completion: Completion | None = None,
    ) -> Response | None: ...


@dataclass(frozen=True)
class IDXRequest:
    """A fully encoded request, ready for the transport."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None


class Remediation:
    """One available next step in the workflow.

    Remediations belong to the response that produced them and are frozen
    snapshots: building a request works on a copy of the form, so neither the
    remediation nor its response change when a request fails. Proceeding
    twice re-sends the request; avoiding duplicate side effects (such as
    re-submitting a one-time code) is up to the caller.
    """

    def __init__(
        self,
        name: str,
        method: str,
        href: str,
        form: Form,
        accepts: str | None = None,
        authenticators: AuthenticatorCollection | None = None,
        capabilities: list[Capability] | None = None,
        refresh: float | None = None,
        relates_to: list[str] | None = None,
    ):
        self.name = name
        self.type = RemediationType(name)
        self.method = method
        self.href = href
        self.form = form
        self.accepts = accepts
        self.authenticators = authenticators or AuthenticatorCollection()
        self.capabilities: list[Capability] = list(capabilities or [])
        self.refresh = refresh
        self.relates_to = list(relates_to or [])

    @property
    def messages(self) -> MessageCollection:
        """Messages nested under any field of this remediation's form."""
        nested: list[tuple[Field, Any]] = []
        _gather_messages(self.form, nested)
        return MessageCollection(nested=nested)

    def capability(self, kind: CapabilityKind | type[T]) -> Capability | T | None:
        """Return the first capability of the given kind or class.

        Servers shouldn't declare a capability twice; if one does, the first
        declaration wins.
        """
        for capability in self.capabilities:
            if isinstance(kind, CapabilityKind):
                if capability.kind is kind:
                    return capability
            elif isinstance(capability, kind):
                return capability
        return None

    def __getitem__(self, path: str) -> Field:
        return self.form[path]

    def build_request(self, values: dict[str, Any] | None = None) -> IDXRequest:
        """Encode the form plus caller values into the next request.

        Values are keyed by field name or dotted path; mappings may be used
        for nested forms.

        Raises:
            CannotCreateRequestError: If the accept type can't be negotiated
            InvalidRequestDataError: If parameters don't fit the accept type
            InvalidParameterError, ParameterImmutableError,
            InvalidParameterValueError, UnknownRemediationOptionError:
                If a value can't be written to the form
        """
        accept = self.accept_type
        if accept is None:
            raise CannotCreateRequestError(
                f"Unsupported content type for {self.name}: {self.accepts}"
            )
        if not self.href or not self.method:
            raise CannotCreateRequestError(f"Remediation {self.name} has no target")

        form = self.form.copy()
        if values:
            form.apply(values)
        parameters = form.collect()

        logger.debug(
            f"Building {self.method} request for {self.name}: "
            f"parameters={sorted(parameters)}"
        )

        return IDXRequest(
            method=self.method.upper(),
            url=self.href,
            headers={
                "Accept": str(DEFAULT_ACCEPT),
                "Content-Type": accept.content_type,
            },
            body=accept.encode(parameters),
        )

    @property
    def accept_type(self) -> AcceptType | None:
        if self.accepts is None:
            return DEFAULT_ACCEPT
        return AcceptType.parse(self.accepts)

    async def proceed(
        self,
        session: Session | None,
        values: dict[str, Any] | None = None,
        completion: Completion | None = None,
    ) -> Response | None:
        """Submit this remediation and return the next response.

        Args:
            session: The live session that owns this remediation's response
            values: Field values keyed by name or dotted path
            completion: Optional single-shot callback; when given, the outcome
                is delivered there instead of being returned or raised

        Raises:
            InvalidClientError: If there is no live session
        """
        if session is None or not session.is_active:
            error = InvalidClientError()
            if completion is not None:
                await completion(None, error)
                return None
            raise error
        return await session.proceed(self, values, completion)

    def __repr__(self) -> str:
        return f"<Remediation {self.name} {self.method} {self.href}>"


def _gather_messages(form: Form, nested: list[tuple[Field, Any]]) -> None:
    for child in form:
        for message in child.messages:
            nested.append((child, message))
        if child.form is not None:
            _gather_messages(child.form, nested)


class RemediationCollection:
    """Ordered remediations with lookup by type or raw name."""

    def __init__(self, remediations: list[Remediation] | None = None):
        self._remediations = list(remediations or [])

    def get(self, key: RemediationType | str) -> Remediation | None:
        for remediation in self._remediations:
            if isinstance(key, RemediationType) and key is not RemediationType.UNKNOWN:
                if remediation.type is key:
                    return remediation
            elif remediation.name == key:
                return remediation
        return None

    def require(self, key: RemediationType | str) -> Remediation:
        """Return the remediation or raise when the response doesn't offer it.

        Raises:
            MissingRemediationOptionError: If no remediation matches
        """
        remediation = self.get(key)
        if remediation is None:
            name = key.value if isinstance(key, RemediationType) else key
            raise MissingRemediationOptionError(name)
        return remediation

    def __getitem__(self, key: RemediationType | str) -> Remediation:
        remediation = self.get(key)
        if remediation is None:
            raise KeyError(key)
        return remediation

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __iter__(self) -> Iterator[Remediation]:
        return iter(self._remediations)

    def __len__(self) -> int:
        return len(self._remediations)

    def __bool__(self) -> bool:
        return bool(self._remediations)
