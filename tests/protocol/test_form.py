import pytest

from idxflow.client.models.errors import (
    InvalidParameterError,
    InvalidParameterValueError,
    InvalidResponseDataError,
    ParameterImmutableError,
    UnknownRemediationOptionError,
)
from idxflow.protocol.authenticators import Authenticator
from idxflow.protocol.form import Field, Form
from idxflow.protocol.values import JSONValue


def credentials_form() -> Form:
    return Form(
        [
            Field(
                name="credentials",
                type="object",
                form=Form([Field(name="passcode", label="Enter code")]),
            ),
            Field(
                name="stateHandle",
                value=JSONValue.string("state-1"),
                mutable=False,
                visible=False,
            ),
        ]
    )


def authenticator_form() -> Form:
    email = Authenticator(id="aut-email", type="email")
    phone = Authenticator(id="aut-phone", type="phone")
    return Form(
        [
            Field(
                name="authenticator",
                type="object",
                options=[
                    Field(
                        label="Email",
                        form=Form(
                            [
                                Field(name="id", value=JSONValue.string("aut-email"), mutable=False),
                                Field(name="methodType", value=JSONValue.string("email")),
                            ]
                        ),
                        relates_to=email,
                    ),
                    Field(
                        label="Phone",
                        form=Form(
                            [
                                Field(name="id", value=JSONValue.string("aut-phone"), mutable=False),
                                Field(name="methodType", value=JSONValue.string("sms")),
                            ]
                        ),
                        relates_to=phone,
                    ),
                ],
            )
        ]
    )


class TestFormLookup:
    def test_resolves_dotted_paths(self):
        # Arrange
        form = credentials_form()

        # Act
        field = form.lookup("credentials.passcode")

        # Assert
        assert field.label == "Enter code"
        assert form["credentials.passcode"] is field

    def test_unknown_names_resolve_to_none(self):
        # Arrange
        form = credentials_form()

        # Act & Assert
        assert form.lookup("password") is None
        assert "password" not in form
        with pytest.raises(KeyError):
            form["password"]

    def test_descending_into_a_scalar_field_fails(self):
        # Arrange
        form = credentials_form()

        # Act & Assert
        with pytest.raises(InvalidParameterError):
            form.lookup("stateHandle.value")

    def test_unnamed_grouping_fields_are_transparent(self):
        # Arrange
        form = Form([Field(form=Form([Field(name="username")]))])

        # Act & Assert
        assert form.lookup("username").name == "username"

    def test_duplicate_sibling_names_are_rejected(self):
        # Act & Assert
        with pytest.raises(InvalidResponseDataError):
            Form([Field(name="identifier"), Field(name="identifier")])


class TestFormSet:
    def test_writes_nested_values_from_a_mapping(self):
        # Arrange
        form = credentials_form()

        # Act
        form.set("credentials", {"passcode": "123456"})

        # Assert
        assert form.collect() == {
            "credentials": {"passcode": "123456"},
            "stateHandle": "state-1",
        }

    def test_composite_field_rejects_scalars(self):
        # Arrange
        form = credentials_form()

        # Act & Assert
        with pytest.raises(InvalidParameterValueError):
            form.set("credentials", "123456")

    def test_immutable_fields_cannot_be_written(self):
        # Arrange
        form = credentials_form()

        # Act & Assert
        with pytest.raises(ParameterImmutableError):
            form.set("stateHandle", "forged")

    def test_unknown_paths_are_rejected(self):
        # Arrange
        form = credentials_form()

        # Act & Assert
        with pytest.raises(InvalidParameterError):
            form.apply({"password": "secret"})

    def test_typed_fields_check_values(self):
        # Arrange
        form = Form([Field(name="rememberMe", type="boolean")])

        # Act & Assert
        with pytest.raises(InvalidParameterValueError):
            form.set("rememberMe", "yes")

        form.set("rememberMe", True)
        assert form.collect() == {"rememberMe": True}

    def test_unset_fields_are_left_out(self):
        # Arrange
        form = credentials_form()

        # Act & Assert
        assert form.collect() == {"stateHandle": "state-1"}


def method_choice_form() -> Form:
    return Form(
        [
            Field(
                name="authenticator",
                type="object",
                options=[
                    Field(
                        label=label,
                        form=Form(
                            [
                                Field(name="id", value=JSONValue.string(ident), mutable=False),
                                Field(name="methodType"),
                            ]
                        ),
                    )
                    for label, ident in [("Phone", "aut-phone"), ("Okta Verify", "aut-verify")]
                ],
            )
        ]
    )


class TestFormOptions:
    @pytest.mark.parametrize("choice", ["Phone", "aut-phone", "phone", {"methodType": "sms"}])
    def test_selects_options_by_label_authenticator_or_values(self, choice):
        # Arrange
        form = authenticator_form()

        # Act
        form.set("authenticator", choice)

        # Assert
        assert form.collect() == {
            "authenticator": {"id": "aut-phone", "methodType": "sms"}
        }

    def test_selects_the_option_field_itself(self):
        # Arrange
        form = authenticator_form()
        email_option = form["authenticator"].options[0]

        # Act
        form.set("authenticator", email_option)

        # Assert
        assert form["authenticator"].selected_option is email_option

    def test_original_options_select_on_a_copy(self):
        # Arrange
        form = authenticator_form()
        phone_option = form["authenticator"].options[1]
        replica = form.copy()

        # Act
        replica.set("authenticator", phone_option)

        # Assert
        assert replica.collect()["authenticator"]["id"] == "aut-phone"
        assert form["authenticator"].selected_option is None

    def test_unknown_choice_is_rejected(self):
        # Arrange
        form = authenticator_form()

        # Act & Assert
        with pytest.raises(UnknownRemediationOptionError):
            form.set("authenticator", "Security Key")

    def test_selected_option_fields_can_be_addressed(self):
        # Arrange
        form = authenticator_form()
        form.set("authenticator", "Email")

        # Act
        form.set("authenticator.methodType", "voice")

        # Assert
        assert form.collect()["authenticator"]["methodType"] == "voice"

    def test_mapping_selects_by_id_and_writes_method_type(self):
        # Arrange
        form = method_choice_form()

        # Act
        form.set("authenticator", {"id": "aut-verify", "methodType": "push"})

        # Assert
        assert form["authenticator"].selected_option.label == "Okta Verify"
        assert form.collect() == {
            "authenticator": {"id": "aut-verify", "methodType": "push"}
        }
        assert form["authenticator"].options[0].form.collect() == {"id": "aut-phone"}

    def test_mapping_without_preset_values_selects_nothing(self):
        # Arrange
        form = method_choice_form()

        # Act & Assert
        with pytest.raises(UnknownRemediationOptionError):
            form.set("authenticator", {"methodType": "sms"})
