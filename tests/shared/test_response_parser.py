"""Tests for decoding IDX payloads into Responses.

Covers the shapes the client relies on:
- Remediations, forms and options
- Authenticators and relatesTo references
- Capabilities derived from authenticator actions
- Messages at response and field level
- Malformed payloads
"""

from datetime import datetime, timezone

import pytest

from idxflow.client.models.errors import (
    InvalidResponseDataError,
    MissingRelatedObjectError,
)
from idxflow.protocol.authenticators import AuthenticatorState
from idxflow.protocol.capabilities import (
    CapabilityKind,
    PollCapability,
    ResendCapability,
    SocialIdpCapability,
)
from idxflow.protocol.messages import MessageType
from idxflow.protocol.remediation import RemediationType
from idxflow.shared.parser import ResponseParser
from tests.payloads import (
    challenge_payload,
    identify_payload,
    success_payload,
    terminal_error_payload,
)


class TestIdentifyResponse:
    def setup_method(self):
        self.parser = ResponseParser()

    def test_parses_remediations_in_order(self):
        # Act
        response = self.parser.parse(identify_payload())

        # Assert
        assert [r.name for r in response.remediations] == ["identify", "redirect-idp"]
        assert response.state_handle == "state-handle-1"
        assert response.intent == "LOGIN"
        assert response.expires_at == datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
        assert not response.is_login_successful

    def test_parses_form_fields(self):
        # Act
        response = self.parser.parse(identify_payload())
        identify = response.remediations[RemediationType.IDENTIFY]

        # Assert
        assert identify["identifier"].required
        assert identify["rememberMe"].type == "boolean"
        state_handle = identify["stateHandle"]
        assert not state_handle.mutable
        assert not state_handle.visible
        assert state_handle.value.string_value() == "state-handle-1"
        assert response["identify.identifier"] is identify["identifier"]

    def test_parses_social_idp_capability(self):
        # Act
        response = self.parser.parse(identify_payload())
        idp = response.remediations["redirect-idp"].capability(SocialIdpCapability)

        # Assert
        assert idp.id == "idp-facebook"
        assert idp.service == "FACEBOOK"
        assert idp.redirect_url.endswith("/v1/authorize?idp=idp-facebook")

    def test_parses_cancel_and_app(self):
        # Act
        response = self.parser.parse(identify_payload())

        # Assert
        assert response.can_cancel
        assert response.cancel_remediation.type is RemediationType.CANCEL
        assert response.app.label == "My App"


class TestChallengeResponse:
    def setup_method(self):
        self.parser = ResponseParser()

    def test_resolves_related_authenticators(self):
        # Act
        response = self.parser.parse(challenge_payload())
        challenge = response.remediations["challenge-authenticator"]

        # Assert
        current = challenge.authenticators.current
        assert current.id == "aut-email"
        assert current.state is AuthenticatorState.AUTHENTICATING
        assert current.method_types == ["email"]
        assert current.profile == {"email": "u***r@example.com"}

    def test_authenticator_actions_become_capabilities(self):
        # Act
        response = self.parser.parse(challenge_payload())
        challenge = response.remediations["challenge-authenticator"]

        # Assert
        resend = challenge.capability(ResendCapability)
        poll = challenge.capability(CapabilityKind.POLL)
        assert resend.remediation.href.endswith("/challenge/resend")
        assert isinstance(poll, PollCapability)
        assert poll.interval == 4.0
        assert challenge.capability(CapabilityKind.SEND) is None

    def test_options_relate_to_enrollments(self):
        # Act
        response = self.parser.parse(challenge_payload())
        select = response.remediations[RemediationType.SELECT_AUTHENTICATOR_AUTHENTICATE]

        # Assert
        options = select["authenticator"].options
        assert [option.label for option in options] == ["Email", "Password"]
        assert options[1].relates_to.type == "password"
        assert options[1].relates_to.state is AuthenticatorState.ENROLLED

    def test_field_messages_are_nested_under_their_field(self):
        # Act
        response = self.parser.parse(challenge_payload())
        challenge = response.remediations["challenge-authenticator"]

        # Assert
        message = challenge.messages.message_for("passcode")
        assert message.type is MessageType.ERROR
        assert message.localization_key == "api.authn.error.PASSCODE_INVALID"
        assert message.field_name == "passcode"
        assert len(response.messages) == 0

    def test_parses_user(self):
        # Act
        response = self.parser.parse(challenge_payload())

        # Assert
        assert response.user.id == "user-1"
        assert response.user.username == "user@example.com"

    def test_missing_related_object_is_reported(self):
        # Arrange
        payload = challenge_payload()
        del payload["currentAuthenticatorEnrollment"]

        # Act & Assert
        with pytest.raises(MissingRelatedObjectError):
            self.parser.parse(payload)


class TestTerminalResponses:
    def setup_method(self):
        self.parser = ResponseParser()

    def test_success_response(self):
        # Act
        response = self.parser.parse(success_payload())

        # Assert
        assert response.is_login_successful
        assert response.success.type is RemediationType.ISSUE
        assert len(response.remediations) == 0

    def test_top_level_messages(self):
        # Act
        response = self.parser.parse(terminal_error_payload())

        # Assert
        assert [m.localization_key for m in response.messages] == [
            "security.access_denied"
        ]
        assert not response.remediations


class TestMalformedPayloads:
    def setup_method(self):
        self.parser = ResponseParser()

    def test_non_object_payload(self):
        # Act & Assert
        with pytest.raises(InvalidResponseDataError):
            self.parser.parse(["remediation"])

    def test_remediation_missing_href(self):
        # Arrange
        payload = identify_payload()
        del payload["remediation"]["value"][0]["href"]

        # Act & Assert
        with pytest.raises(InvalidResponseDataError):
            self.parser.parse(payload)

    def test_is_idx_payload(self):
        # Assert
        assert self.parser.is_idx_payload(identify_payload())
        assert self.parser.is_idx_payload(terminal_error_payload())
        assert not self.parser.is_idx_payload({"error": "invalid_grant"})
