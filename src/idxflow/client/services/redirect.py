"""Evaluation of redirects back to the application.

Classifies a redirect URL received after an identity provider or browser step
without touching the network or the session.
"""

from __future__ import annotations

import logging
import secrets
from urllib.parse import parse_qs, urlparse

from idxflow.client.models.context import Context
from idxflow.client.models.redirect import RedirectKind, RedirectResult

logger = logging.getLogger(__name__)


def evaluate_redirect(url: str, context: Context) -> RedirectResult:
    """Classify a redirect URL for the given context.

    The URL must match the configured redirect URI (scheme, host and path)
    and, when it carries a ``state``, the context's state. Error parameters
    are checked before codes, so a URL carrying both is never treated as
    authenticated.

    Args:
        url: Redirect URL received by the application
        context: Context of the workflow the redirect belongs to

    Returns:
        RedirectResult: AUTHENTICATED with the interaction code,
        REMEDIATION_REQUIRED when the user must continue the workflow,
        ERROR with the server's error, or INVALID
    """
    parsed = urlparse(url)
    expected = urlparse(context.configuration.redirect_uri)

    if (parsed.scheme, parsed.netloc, parsed.path) != (
        expected.scheme,
        expected.netloc,
        expected.path,
    ):
        logger.debug(f"Redirect does not match configured redirect URI: {url}")
        return RedirectResult(RedirectKind.INVALID)

    query_params = parse_qs(parsed.query)

    def get_single_param(key: str) -> str | None:
        values = query_params.get(key, [])
        return values[0] if values else None

    state = get_single_param("state")
    if state is not None and not secrets.compare_digest(state, context.state):
        logger.warning("Redirect state does not match the current context")
        return RedirectResult(RedirectKind.INVALID)

    error = get_single_param("error")
    if error is not None:
        kind = (
            RedirectKind.REMEDIATION_REQUIRED
            if error == "interaction_required"
            else RedirectKind.ERROR
        )
        return RedirectResult(
            kind,
            error=error,
            error_description=get_single_param("error_description"),
        )

    code = get_single_param("interaction_code") or get_single_param("code")
    if code:
        return RedirectResult(RedirectKind.AUTHENTICATED, interaction_code=code)

    return RedirectResult(RedirectKind.INVALID)
