"""OAuth v3 login, token refresh and revoke.

Endpoints:
  - GET  {auth}/oauth2/v3/authorize   (login form + session cookies)
  - POST {auth}/oauth2/v3/authorize   (credentials, answered with a 302)
  - POST {auth}/oauth2/v3/token       (authorization_code / refresh_token grants)
  - POST {owner}/oauth/revoke

The authorization-code exchange uses PKCE (S256).
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
import secrets
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlsplit

from pydantic import ValidationError

from pyteslacar._api._common import decode_body, error_reason
from pyteslacar._constants import OAUTH_REDIRECT_URI, OAUTH_SCOPE
from pyteslacar._redact import redact_for_log
from pyteslacar._transport import HttpResponse
from pyteslacar.config import TeslaConfig
from pyteslacar.exceptions import TeslaAuthenticationError
from pyteslacar.models.token import TokenResponse

_logger = logging.getLogger(__name__)

_HIDDEN_INPUT_RE = re.compile(r"<input\b[^>]*\btype=[\"']hidden[\"'][^>]*>", re.IGNORECASE)
_ATTR_RE = re.compile(r"\b(name|value)=[\"']([^\"']*)[\"']", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class PkceChallenge:
    """Verifier/challenge pair plus the anti-forgery ``state``."""

    verifier: str
    challenge: str
    state: str


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_pkce() -> PkceChallenge:
    """Create a fresh S256 PKCE challenge."""
    verifier = _b64url(secrets.token_bytes(64))
    challenge = _b64url(hashlib.sha256(verifier.encode("ascii")).digest())
    return PkceChallenge(verifier=verifier, challenge=challenge, state=_b64url(secrets.token_bytes(16)))


def build_authorize_params(config: TeslaConfig, pkce: PkceChallenge) -> dict[str, str]:
    """Query parameters shared by both authorize steps."""
    return {
        "client_id": config.client_id,
        "code_challenge": pkce.challenge,
        "code_challenge_method": "S256",
        "redirect_uri": OAUTH_REDIRECT_URI,
        "response_type": "code",
        "scope": OAUTH_SCOPE,
        "state": pkce.state,
        "login_hint": config.email,
    }


def parse_hidden_inputs(html: str) -> dict[str, str]:
    """Collect ``name -> value`` of every hidden ``<input>`` in the login form."""
    fields: dict[str, str] = {}
    for tag in _HIDDEN_INPUT_RE.findall(html):
        attrs = {k.lower(): v for k, v in _ATTR_RE.findall(tag)}
        name = attrs.get("name")
        if name:
            fields[name] = attrs.get("value", "")
    return fields


def build_credentials_form(config: TeslaConfig, hidden: dict[str, str]) -> dict[str, str]:
    """Form body for the credentials POST.

    Raises :class:`TeslaAuthenticationError` when the login page carried
    no form state, which means the identity provider changed or blocked us.
    """
    if not hidden:
        raise TeslaAuthenticationError(
            "Login form did not contain any hidden fields",
            endpoint="authorize",
        )
    form = dict(hidden)
    form["identity"] = config.email
    form["credential"] = config.password
    return form


def extract_authorization_code(response: HttpResponse, pkce: PkceChallenge) -> str:
    """Pull the ``code`` out of the credentials step's redirect.

    Parameters
    ----------
    response : HttpResponse
        Response of the credentials POST, redirects not followed.
    pkce : PkceChallenge
        Challenge whose ``state`` the redirect must echo.

    Returns
    -------
    str
        The authorization code.
    """
    location = response.location
    if response.status != 302 or not location:
        reason = error_reason(decode_body(response)) or "credentials rejected"
        raise TeslaAuthenticationError(
            f"Login failed: HTTP {response.status} {reason}",
            status_code=response.status,
            endpoint="authorize",
            reason=reason,
        )

    query = parse_qs(urlsplit(location).query)
    state = query.get("state", [""])[0]
    if state and state != pkce.state:
        raise TeslaAuthenticationError("Login redirect carried a foreign state", status_code=302, endpoint="authorize")
    codes = query.get("code")
    if not codes or not codes[0]:
        raise TeslaAuthenticationError(
            "Login redirect did not contain an authorization code",
            status_code=302,
            endpoint="authorize",
        )
    return codes[0]


def build_code_exchange_body(config: TeslaConfig, pkce: PkceChallenge, code: str) -> dict[str, str]:
    return {
        "grant_type": "authorization_code",
        "client_id": config.client_id,
        "code": code,
        "code_verifier": pkce.verifier,
        "redirect_uri": OAUTH_REDIRECT_URI,
    }


def build_refresh_body(config: TeslaConfig, refresh_token: str) -> dict[str, str]:
    return {
        "grant_type": "refresh_token",
        "client_id": config.client_id,
        "refresh_token": refresh_token,
        "scope": OAUTH_SCOPE,
    }


def build_revoke_body(token: str) -> dict[str, str]:
    return {"token": token}


def parse_token_response(response: HttpResponse, *, endpoint: str = "token") -> TokenResponse:
    """Validate a token endpoint response.

    Raises :class:`TeslaAuthenticationError` with the HTTP status and the
    server's reason for anything but a 200 carrying an access token.
    """
    body: dict[str, Any] = decode_body(response)
    _logger.debug("Token response HTTP %d: %s", response.status, redact_for_log(body))

    if response.status != 200:
        reason = error_reason(body) or response.text[:200]
        raise TeslaAuthenticationError(
            f"Token request failed: HTTP {response.status} {reason}".rstrip(),
            status_code=response.status,
            endpoint=endpoint,
            reason=reason,
        )
    try:
        return TokenResponse.model_validate({**body, "raw": body})
    except ValidationError as exc:
        raise TeslaAuthenticationError(
            "Token response did not contain an access token",
            status_code=response.status,
            endpoint=endpoint,
        ) from exc
