"""Redirect evaluation results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RedirectKind(str, Enum):
    AUTHENTICATED = "authenticated"
    REMEDIATION_REQUIRED = "remediation_required"
    INVALID = "invalid"
    ERROR = "error"


@dataclass(frozen=True)
class RedirectResult:
    """Classification of a redirect back to the application.

    ``interaction_code`` is only set for ``AUTHENTICATED``; ``error`` and
    ``error_description`` only for ``ERROR`` and ``REMEDIATION_REQUIRED``.
    """

    kind: RedirectKind
    interaction_code: str | None = None
    error: str | None = None
    error_description: str | None = None

    def is_authenticated(self) -> bool:
        return self.kind is RedirectKind.AUTHENTICATED
