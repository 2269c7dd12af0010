"""Content negotiation between the two IDX wire encodings."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urlencode

from idxflow.client.models.errors import InvalidRequestDataError

FORM_ENCODED_MEDIA_TYPE = "application/x-www-form-urlencoded"
ION_JSON_MEDIA_TYPE = "application/ion+json"
VERSION_MARKER = "okta-version="


class AcceptKind(str, Enum):
    FORM_ENCODED = "form-encoded"
    ION_JSON = "ion-json"


@dataclass(frozen=True)
class AcceptType:
    """Negotiated request encoding for the next IDX request.

    ``ION_JSON`` optionally carries the protocol version advertised by the
    server. The version is captured verbatim and never validated.
    """

    kind: AcceptKind
    version: str | None = None

    @classmethod
    def form_encoded(cls) -> AcceptType:
        return cls(AcceptKind.FORM_ENCODED)

    @classmethod
    def ion_json(cls, version: str | None = None) -> AcceptType:
        return cls(AcceptKind.ION_JSON, version)

    @classmethod
    def parse(cls, raw: str) -> AcceptType | None:
        """Parse a media type string.

        Returns:
            The matching AcceptType, or None when the value is unrecognized.
            Callers must treat None as "cannot negotiate".
        """
        if raw == FORM_ENCODED_MEDIA_TYPE:
            return cls.form_encoded()
        if raw.startswith(ION_JSON_MEDIA_TYPE):
            version = None
            marker = raw.find(VERSION_MARKER)
            if marker != -1:
                version = raw[marker + len(VERSION_MARKER) :]
            return cls.ion_json(version)
        return None

    @property
    def content_type(self) -> str:
        return str(self)

    def encode(self, parameters: dict[str, Any]) -> bytes:
        """Encode request parameters for this content type.

        Form encoding accepts only text values. ION JSON bodies are dumped
        with sorted keys so identical parameters always produce identical
        bytes.

        Raises:
            InvalidRequestDataError: If a form-encoded parameter isn't text
        """
        if self.kind is AcceptKind.FORM_ENCODED:
            for name, value in parameters.items():
                if not isinstance(value, str):
                    raise InvalidRequestDataError(
                        f"Parameter '{name}' cannot be form encoded: "
                        f"expected text, got {type(value).__name__}"
                    )
            return urlencode(parameters).encode("utf-8")

        try:
            return json.dumps(parameters, sort_keys=True).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise InvalidRequestDataError(f"Parameters are not JSON encodable: {e}") from e

    def __str__(self) -> str:
        if self.kind is AcceptKind.FORM_ENCODED:
            return FORM_ENCODED_MEDIA_TYPE
        if self.version is None:
            return ION_JSON_MEDIA_TYPE
        return f"{ION_JSON_MEDIA_TYPE}; {VERSION_MARKER}{self.version}"
