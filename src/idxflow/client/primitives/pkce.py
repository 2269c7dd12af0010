"""PKCE (Proof Key for Code Exchange) and state generation.

Every interaction starts with a fresh code verifier and OAuth state. The
challenge is sent to the interact endpoint; the verifier is kept in the
Context and proven at code exchange (RFC 7636).
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string
from dataclasses import dataclass

from idxflow.client.models.errors import InternalError

_VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
_STATE_ALPHABET = string.ascii_letters + string.digits + "-_"


@dataclass(frozen=True)
class PKCEParameters:
    """Immutable PKCE parameters for one interaction."""

    code_verifier: str
    code_challenge: str
    code_challenge_method: str = "S256"

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not (43 <= len(self.code_challenge) <= 128):
            raise ValueError("code_challenge must be 43-128 characters")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")


class PKCEManager:
    """Generates PKCE parameters using the S256 challenge method."""

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters.

        Raises:
            InternalError: If parameter generation fails
        """
        try:
            code_verifier = self._generate_code_verifier()
            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=self._generate_code_challenge(code_verifier),
            )
        except ValueError as e:
            raise InternalError(e) from e

    def _generate_code_verifier(self) -> str:
        """Generate a 128-character verifier from the RFC 7636 unreserved set."""
        return "".join(secrets.choice(_VERIFIER_ALPHABET) for _ in range(128))

    def _generate_code_challenge(self, code_verifier: str) -> str:
        """BASE64URL-ENCODE(SHA256(ASCII(code_verifier))) without padding."""
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_state() -> str:
    """Generate an unguessable 32-character OAuth state value."""
    return "".join(secrets.choice(_STATE_ALPHABET) for _ in range(32))
