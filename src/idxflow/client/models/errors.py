"""Exception hierarchy for Identity Engine workflow errors.

Every failure the client surfaces is an ``IDXClientError`` subclass so callers
can catch the whole family or branch on the precise failure mode. Nothing in
this package retries; each error reaches the caller exactly once.
"""

from __future__ import annotations


class IDXClientError(Exception):
    """Base exception for all Identity Engine client errors."""

    pass


class InvalidClientError(IDXClientError):
    """Raised when an operation is invoked without a live session."""

    def __init__(self, message: str = "No active client session"):
        super().__init__(message)


class CannotCreateRequestError(IDXClientError):
    """Raised when a request cannot be built from the remediation data."""

    pass


class InvalidHTTPResponseError(IDXClientError):
    """Raised when the server reply is not a usable HTTP response."""

    pass


class InvalidResponseDataError(IDXClientError):
    """Raised when a response body is malformed or cannot be decoded."""

    pass


class InvalidRequestDataError(IDXClientError):
    """Raised when request parameters don't fit the negotiated content type."""

    pass


class ServerError(IDXClientError):
    """Raised when the server reports an error body.

    Carries the server-supplied message, its localization key and the error
    type exactly as received.
    """

    def __init__(self, message: str, localization_key: str, type: str):
        super().__init__(message)
        self.message = message
        self.localization_key = localization_key
        self.type = type


class InternalError(IDXClientError):
    """Wraps a lower-level failure (usually transport) without reinterpreting it."""

    def __init__(self, cause: BaseException):
        super().__init__(f"Internal error: {cause}")
        self.cause = cause


class InternalMessageError(IDXClientError):
    """Raised for internal failures described only by a message."""

    pass


class OAuthError(IDXClientError):
    """Raised when an OAuth endpoint returns an error response."""

    def __init__(
        self, summary: str, code: str | None = None, error_id: str | None = None
    ):
        super().__init__(summary)
        self.summary = summary
        self.code = code
        self.error_id = error_id


class InvalidParameterError(IDXClientError):
    """Raised when a parameter name doesn't resolve to a known field."""

    def __init__(self, name: str):
        super().__init__(f"Invalid parameter: {name}")
        self.name = name


class InvalidParameterValueError(IDXClientError):
    """Raised when a parameter value doesn't match the field's declared type."""

    def __init__(self, name: str, type: str):
        super().__init__(f"Invalid value for parameter {name}, expected {type}")
        self.name = name
        self.type = type


class ParameterImmutableError(IDXClientError):
    """Raised when writing a value to an immutable field."""

    def __init__(self, name: str):
        super().__init__(f"Parameter is immutable: {name}")
        self.name = name


class MissingRequiredParameterError(IDXClientError):
    """Raised when a value needed to build a request is absent."""

    def __init__(self, name: str):
        super().__init__(f"Missing required parameter: {name}")
        self.name = name


class MissingRemediationOptionError(IDXClientError):
    """Raised when a response doesn't offer the requested remediation."""

    def __init__(self, name: str):
        super().__init__(f"Remediation option not available: {name}")
        self.name = name


class UnknownRemediationOptionError(IDXClientError):
    """Raised when selecting an option a field doesn't offer."""

    def __init__(self, name: str):
        super().__init__(f"Unknown remediation option: {name}")
        self.name = name


class SuccessResponseMissingError(IDXClientError):
    """Raised when exchanging a code from a response that isn't successful."""

    def __init__(self, message: str = "Response does not contain a success remediation"):
        super().__init__(message)


class MissingRefreshTokenError(IDXClientError):
    """Raised when refreshing a token that has no refresh token."""

    def __init__(self, message: str = "Token has no refresh token"):
        super().__init__(message)


class MissingRelatedObjectError(IDXClientError):
    """Raised when a ``relatesTo`` reference points at nothing in the response."""

    pass
