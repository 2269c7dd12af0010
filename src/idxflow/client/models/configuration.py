"""Client configuration for an Identity Engine application.

``Configuration`` identifies the application being signed in to and where its
authorization server lives. ``IDXSettings`` reads the same values from the
environment (``IDX_ISSUER``, ``IDX_CLIENT_ID``, ...) or a ``.env`` file for
applications configured that way.
"""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _require_http_url(value: str, name: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"{name} must be an absolute http(s) URL")
    return value


class Configuration(BaseModel):
    """Application settings used to start a workflow and mint tokens.

    Immutable so a context or token can hold on to the configuration that
    created it.
    """

    model_config = ConfigDict(frozen=True)

    issuer: str
    client_id: str = Field(min_length=1)
    client_secret: SecretStr | None = None
    scopes: list[str] = Field(min_length=1)
    redirect_uri: str
    timeout: float = 30.0

    @field_validator("issuer")
    @classmethod
    def validate_issuer(cls, v: str) -> str:
        return _require_http_url(v, "issuer").rstrip("/")

    @field_validator("redirect_uri")
    @classmethod
    def validate_redirect_uri(cls, v: str) -> str:
        parsed = urlparse(v)
        if not parsed.scheme:
            raise ValueError("redirect_uri must include a scheme")
        return v

    @field_validator("scopes")
    @classmethod
    def validate_scopes(cls, v: list[str]) -> list[str]:
        if not all(scope.strip() for scope in v):
            raise ValueError("scopes must not contain empty values")
        return v

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)

    @property
    def issuer_origin(self) -> str:
        parsed = urlparse(self.issuer)
        return f"{parsed.scheme}://{parsed.netloc}"

    def oauth_endpoint(self, name: str) -> str:
        """URL of an OAuth endpoint such as ``interact``, ``token`` or ``revoke``.

        Custom authorization servers (``.../oauth2/<id>``) host endpoints
        under ``/v1``; org issuers host them under ``/oauth2/v1``.
        """
        if "/oauth2" in urlparse(self.issuer).path:
            return f"{self.issuer}/v1/{name}"
        return f"{self.issuer}/oauth2/v1/{name}"

    def idx_endpoint(self, name: str) -> str:
        """URL of an IDX endpoint such as ``introspect``."""
        return f"{self.issuer_origin}/idp/idx/{name}"


class IDXSettings(BaseSettings):
    """Environment-driven configuration.

    Tests construct ``IDXSettings(_env_file=None, ...)`` directly for isolation.
    """

    model_config = SettingsConfigDict(
        env_prefix="IDX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    issuer: str
    client_id: str
    client_secret: SecretStr | None = None
    scopes: str = "openid profile"
    redirect_uri: str
    timeout: float = 30.0

    def to_configuration(self) -> Configuration:
        return Configuration(
            issuer=self.issuer,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=self.scopes.split(),
            redirect_uri=self.redirect_uri,
            timeout=self.timeout,
        )


@lru_cache(maxsize=1)
def get_settings() -> IDXSettings:
    return IDXSettings()
