import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from idxflow.client.models.errors import (
    CannotCreateRequestError,
    InvalidClientError,
    InvalidRequestDataError,
    MissingRemediationOptionError,
)
from idxflow.protocol.capabilities import (
    CapabilityKind,
    PollCapability,
    ResendCapability,
)
from idxflow.protocol.form import Field, Form
from idxflow.protocol.remediation import (
    Remediation,
    RemediationCollection,
    RemediationType,
)
from idxflow.protocol.values import JSONValue


def challenge_remediation(accepts: str | None = "application/ion+json; okta-version=1.0.0") -> Remediation:
    return Remediation(
        name="challenge-authenticator",
        method="post",
        href="https://example.okta.com/idp/idx/challenge/answer",
        form=Form(
            [
                Field(
                    name="credentials",
                    type="object",
                    form=Form([Field(name="passcode")]),
                ),
                Field(
                    name="stateHandle",
                    value=JSONValue.string("state-1"),
                    mutable=False,
                ),
            ]
        ),
        accepts=accepts,
    )


class TestRemediationType:
    def test_known_names_map_to_types(self):
        # Act & Assert
        assert challenge_remediation().type is RemediationType.CHALLENGE_AUTHENTICATOR

    def test_unknown_names_keep_raw_name(self):
        # Act
        remediation = Remediation(
            name="device-assurance-check", method="POST", href="https://x", form=Form()
        )

        # Assert
        assert remediation.type is RemediationType.UNKNOWN
        assert remediation.name == "device-assurance-check"


class TestBuildRequest:
    def test_builds_ion_json_request(self):
        # Arrange
        remediation = challenge_remediation()

        # Act
        request = remediation.build_request({"credentials.passcode": "123456"})

        # Assert
        assert request.method == "POST"
        assert request.url == "https://example.okta.com/idp/idx/challenge/answer"
        assert request.headers == {
            "Accept": "application/ion+json; okta-version=1.0.0",
            "Content-Type": "application/ion+json; okta-version=1.0.0",
        }
        assert json.loads(request.body) == {
            "credentials": {"passcode": "123456"},
            "stateHandle": "state-1",
        }

    def test_building_never_mutates_the_remediation(self):
        # Arrange
        remediation = challenge_remediation()

        # Act
        remediation.build_request({"credentials": {"passcode": "123456"}})

        # Assert
        assert remediation["credentials.passcode"].value is None

    def test_failed_build_leaves_form_untouched(self):
        # Arrange
        remediation = challenge_remediation(accepts="application/x-www-form-urlencoded")

        # Act & Assert
        with pytest.raises(InvalidRequestDataError):
            remediation.build_request({"credentials.passcode": "123456"})
        assert remediation.form.collect() == {"stateHandle": "state-1"}

    def test_unrecognized_accept_type_cannot_create_request(self):
        # Arrange
        remediation = challenge_remediation(accepts="text/plain")

        # Act & Assert
        with pytest.raises(CannotCreateRequestError):
            remediation.build_request()


class TestRemediationProceed:
    async def test_proceed_delegates_to_session(self):
        # Arrange
        remediation = challenge_remediation()
        session = MagicMock()
        session.is_active = True
        session.proceed = AsyncMock(return_value="next-response")

        # Act
        result = await remediation.proceed(session, {"credentials.passcode": "1"})

        # Assert
        assert result == "next-response"
        session.proceed.assert_awaited_once_with(
            remediation, {"credentials.passcode": "1"}, None
        )

    async def test_proceed_without_session_raises(self):
        # Act & Assert
        with pytest.raises(InvalidClientError):
            await challenge_remediation().proceed(None)

    async def test_proceed_without_session_reports_to_completion(self):
        # Arrange
        completion = AsyncMock()

        # Act
        result = await challenge_remediation().proceed(None, completion=completion)

        # Assert
        assert result is None
        completion.assert_awaited_once()
        response, error = completion.await_args.args
        assert response is None
        assert isinstance(error, InvalidClientError)

    async def test_inactive_session_is_rejected(self):
        # Arrange
        session = MagicMock()
        session.is_active = False
        session.proceed = AsyncMock()

        # Act & Assert
        with pytest.raises(InvalidClientError):
            await challenge_remediation().proceed(session)
        session.proceed.assert_not_awaited()


class TestCapabilities:
    def test_first_declared_capability_wins(self):
        # Arrange
        remediation = challenge_remediation()
        first = PollCapability(remediation, interval=4.0)
        second = PollCapability(remediation, interval=8.0)
        remediation.capabilities.extend([first, second])

        # Act & Assert
        assert remediation.capability(CapabilityKind.POLL) is first
        assert remediation.capability(PollCapability) is first
        assert remediation.capability(ResendCapability) is None

    async def test_poll_waits_then_proceeds_once(self, monkeypatch):
        # Arrange
        remediation = challenge_remediation()
        sleep = AsyncMock()
        monkeypatch.setattr("idxflow.protocol.capabilities.asyncio.sleep", sleep)
        session = MagicMock()
        session.is_active = True
        session.proceed = AsyncMock(return_value="polled")

        # Act
        result = await PollCapability(remediation, interval=4.0).poll(session)

        # Assert
        assert result == "polled"
        sleep.assert_awaited_once_with(4.0)
        session.proceed.assert_awaited_once()


class TestRemediationCollection:
    def test_lookup_by_type_and_name(self):
        # Arrange
        remediation = challenge_remediation()
        collection = RemediationCollection([remediation])

        # Act & Assert
        assert collection.get(RemediationType.CHALLENGE_AUTHENTICATOR) is remediation
        assert collection["challenge-authenticator"] is remediation
        assert "challenge-authenticator" in collection
        assert collection.get(RemediationType.IDENTIFY) is None

    def test_require_raises_for_missing_option(self):
        # Arrange
        collection = RemediationCollection([challenge_remediation()])

        # Act & Assert
        with pytest.raises(MissingRemediationOptionError):
            collection.require(RemediationType.IDENTIFY)
