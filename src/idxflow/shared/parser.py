"""IDX ion+json payload parsing.

Turns the raw JSON of an IDX reply into a typed ``Response``: remediations
with their forms, authenticators, messages, application and user details.
Used for every reply the client receives so all responses decode the same
way.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from idxflow.client.models.errors import (
    IDXClientError,
    InvalidResponseDataError,
    MissingRelatedObjectError,
)
from idxflow.protocol.authenticators import (
    Authenticator,
    AuthenticatorCollection,
    AuthenticatorState,
)
from idxflow.protocol.capabilities import (
    Capability,
    PollCapability,
    RecoverCapability,
    ResendCapability,
    SendCapability,
    SocialIdpCapability,
)
from idxflow.protocol.form import Field, Form
from idxflow.protocol.messages import Message, MessageCollection, MessageType
from idxflow.protocol.remediation import Remediation, RemediationCollection
from idxflow.protocol.response import Application, Response, User
from idxflow.protocol.values import JSONValue

logger = logging.getLogger(__name__)

# Top-level keys holding authenticator lists, and the state they imply.
_AUTHENTICATOR_LISTS = {
    "authenticators": AuthenticatorState.NORMAL,
    "authenticatorEnrollments": AuthenticatorState.ENROLLED,
}

# Top-level keys holding a single authenticator, and the state it implies.
_AUTHENTICATOR_OBJECTS = {
    "currentAuthenticator": AuthenticatorState.AUTHENTICATING,
    "currentAuthenticatorEnrollment": AuthenticatorState.AUTHENTICATING,
    "recoveryAuthenticator": AuthenticatorState.RECOVERY,
}

_AUTHENTICATOR_ACTIONS = ("send", "resend", "poll", "recover")


class ResponseParser:
    """Parses IDX payloads into ``Response`` objects.

    Payload shape errors become ``InvalidResponseDataError``; a ``relatesTo``
    reference that points at nothing becomes ``MissingRelatedObjectError``.
    Unknown remediation names are kept with type ``UNKNOWN``.
    """

    def is_idx_payload(self, payload: Any) -> bool:
        """Check if a payload looks like an IDX response rather than an error body."""
        return isinstance(payload, dict) and (
            "remediation" in payload
            or "stateHandle" in payload
            or "successWithInteractionCode" in payload
            or "messages" in payload
        )

    def messages(self, payload: dict[str, Any]) -> list[Message]:
        """Top-level messages of a payload, without parsing the rest."""
        return self._parse_messages(payload.get("messages"))

    def parse(self, payload: Any) -> Response:
        """Parse an IDX payload.

        Args:
            payload: Decoded JSON body of an IDX reply

        Returns:
            Response: The new workflow state

        Raises:
            InvalidResponseDataError: If the payload doesn't have the IDX shape
            MissingRelatedObjectError: If a relatesTo reference can't be resolved
        """
        if not isinstance(payload, dict):
            raise InvalidResponseDataError("IDX response must be a JSON object")

        try:
            return self._parse_response(payload)
        except IDXClientError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise InvalidResponseDataError(f"Malformed IDX response: {e}") from e

    def _parse_response(self, payload: dict[str, Any]) -> Response:
        index = self._parse_authenticators(payload)
        all_authenticators = AuthenticatorCollection(list(index.values()))

        remediations = [
            self._parse_remediation(raw, index)
            for raw in _values(payload.get("remediation"))
        ]

        success = None
        if "successWithInteractionCode" in payload:
            success = self._parse_remediation(
                payload["successWithInteractionCode"], index
            )

        cancel = None
        if "cancel" in payload:
            cancel = self._parse_remediation(payload["cancel"], index)

        response = Response(
            state_handle=payload.get("stateHandle"),
            version=payload.get("version"),
            remediations=RemediationCollection(remediations),
            messages=MessageCollection(
                messages=self._parse_messages(payload.get("messages"))
            ),
            authenticators=all_authenticators,
            intent=payload.get("intent"),
            expires_at=_parse_datetime(payload.get("expiresAt")),
            app=self._parse_app(payload.get("app")),
            user=self._parse_user(payload.get("user")),
            success=success,
            cancel_remediation=cancel,
        )

        logger.debug(
            f"Parsed IDX response: remediations={[r.name for r in remediations]}, "
            f"success={response.is_login_successful}"
        )
        return response

    # ================================
    # Authenticators
    # ================================

    def _parse_authenticators(
        self, payload: dict[str, Any]
    ) -> dict[str, Authenticator]:
        index: dict[str, Authenticator] = {}

        for key, state in _AUTHENTICATOR_LISTS.items():
            for position, raw in enumerate(_values(payload.get(key))):
                path = f"$.{key}.value[{position}]"
                index[path] = self._parse_authenticator(raw, state, path)

        for key, state in _AUTHENTICATOR_OBJECTS.items():
            if key in payload:
                path = f"$.{key}"
                raw = payload[key].get("value", payload[key])
                index[path] = self._parse_authenticator(raw, state, path)

        return index

    def _parse_authenticator(
        self, raw: dict[str, Any], state: AuthenticatorState, path: str
    ) -> Authenticator:
        authenticator = Authenticator(
            id=raw["id"],
            type=raw["type"],
            display_name=raw.get("displayName"),
            key=raw.get("key"),
            methods=list(raw.get("methods", [])),
            profile=dict(raw.get("profile", {})),
            state=state,
            json_path=path,
        )

        owner = AuthenticatorCollection([authenticator])
        for action in _AUTHENTICATOR_ACTIONS:
            if action in raw:
                remediation = self._build_remediation(raw[action], owner)
                setattr(authenticator, action, remediation)

        return authenticator

    # ================================
    # Remediations
    # ================================

    def _parse_remediation(
        self, raw: dict[str, Any], index: dict[str, Authenticator]
    ) -> Remediation:
        relates_to = _as_list(raw.get("relatesTo"))
        related = AuthenticatorCollection(
            [_resolve(reference, index) for reference in relates_to]
        )
        remediation = self._build_remediation(raw, related, index)
        remediation.capabilities.extend(self._capabilities(remediation, raw))
        return remediation

    def _build_remediation(
        self,
        raw: dict[str, Any],
        related: AuthenticatorCollection,
        index: dict[str, Authenticator] | None = None,
    ) -> Remediation:
        refresh = raw.get("refresh")
        return Remediation(
            name=raw["name"],
            method=raw.get("method", "POST"),
            href=raw["href"],
            form=self._parse_form(raw.get("value", []), index or {}),
            accepts=raw.get("accepts"),
            authenticators=related,
            refresh=refresh / 1000.0 if refresh is not None else None,
            relates_to=_as_list(raw.get("relatesTo")),
        )

    def _capabilities(
        self, remediation: Remediation, raw: dict[str, Any]
    ) -> list[Capability]:
        capabilities: list[Capability] = []

        if remediation.refresh is not None:
            capabilities.append(
                PollCapability(remediation, interval=remediation.refresh)
            )

        if "idp" in raw:
            idp = raw["idp"]
            capabilities.append(
                SocialIdpCapability(
                    id=idp["id"],
                    name=idp.get("name", ""),
                    service=raw.get("type", ""),
                    redirect_url=remediation.href,
                )
            )

        for authenticator in remediation.authenticators:
            if authenticator.send is not None:
                capabilities.append(SendCapability(authenticator.send))
            if authenticator.resend is not None:
                capabilities.append(ResendCapability(authenticator.resend))
            if authenticator.poll is not None:
                capabilities.append(
                    PollCapability(
                        authenticator.poll, interval=authenticator.poll.refresh or 0.0
                    )
                )
            if authenticator.recover is not None:
                capabilities.append(RecoverCapability(authenticator.recover))

        return capabilities

    # ================================
    # Forms
    # ================================

    def _parse_form(
        self, raw_fields: list[dict[str, Any]], index: dict[str, Authenticator]
    ) -> Form:
        return Form([self._parse_field(raw, index) for raw in raw_fields])

    def _parse_field(self, raw: dict[str, Any], index: dict[str, Authenticator]) -> Field:
        value = None
        form = None
        raw_value = raw.get("value")
        if isinstance(raw_value, dict) and "form" in raw_value:
            form = self._parse_form(raw_value["form"]["value"], index)
        elif "value" in raw:
            value = JSONValue.from_json(raw_value)

        if "form" in raw:
            form = self._parse_form(raw["form"]["value"], index)

        relates_to = None
        if isinstance(raw.get("relatesTo"), str):
            relates_to = _resolve(raw["relatesTo"], index)

        return Field(
            name=raw.get("name"),
            label=raw.get("label"),
            type=raw.get("type"),
            value=value,
            required=raw.get("required", False),
            mutable=raw.get("mutable", True),
            visible=raw.get("visible", True),
            secret=raw.get("secret", False),
            form=form,
            options=[
                self._parse_field(option, index) for option in raw.get("options", [])
            ],
            messages=self._parse_messages(raw.get("messages"), raw.get("name")),
            relates_to=relates_to,
        )

    # ================================
    # Messages, app and user
    # ================================

    def _parse_messages(
        self, raw: dict[str, Any] | None, field_name: str | None = None
    ) -> list[Message]:
        return [
            Message(
                type=MessageType.from_class(item.get("class")),
                message=item["message"],
                localization_key=(item.get("i18n") or {}).get("key"),
                field_name=field_name,
            )
            for item in _values(raw)
        ]

    def _parse_app(self, raw: dict[str, Any] | None) -> Application | None:
        if raw is None:
            return None
        value = raw.get("value", raw)
        return Application(id=value["id"], label=value.get("label"), name=value.get("name"))

    def _parse_user(self, raw: dict[str, Any] | None) -> User | None:
        if raw is None:
            return None
        value = raw.get("value", raw)
        return User(
            id=value["id"],
            username=value.get("identifier"),
            profile=dict(value.get("profile", {})),
        )


def _values(raw: Any) -> list[Any]:
    """Unwrap an ion collection (``{"type": "array", "value": [...]}``)."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        return list(raw.get("value", []))
    return list(raw)


def _as_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    return list(raw)


def _resolve(reference: str, index: dict[str, Authenticator]) -> Authenticator:
    try:
        return index[reference]
    except KeyError:
        raise MissingRelatedObjectError(
            f"relatesTo reference not found: {reference}"
        ) from None


def _parse_datetime(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))
