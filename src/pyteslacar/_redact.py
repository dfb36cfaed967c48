"""Helpers for safe debug logging.

Login traffic carries account passwords, OAuth tokens, authorization codes
and PKCE verifiers. Everything logged at DEBUG goes through these helpers.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel

_REDACTED = "<redacted>"

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "identity",
        "credential",
        "access_token",
        "refresh_token",
        "id_token",
        "token",
        "code",
        "code_verifier",
        "authorization",
        "cookie",
        "set-cookie",
    }
)


def _is_sensitive(key: str) -> bool:
    return key.lower() in _SENSITIVE_VALUE_KEYS


def redact_url(url: str) -> str:
    """Blank sensitive query parameters (``code``, ``token`` ...) in *url*."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [(k, _REDACTED if _is_sensitive(k) else v) for k, v in parse_qsl(parts.query, keep_blank_values=True)]
    return urlunsplit(parts._replace(query=urlencode(query, safe="<>")))


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, BaseModel):
        return redact_for_log(value.model_dump(exclude={"raw"}), max_string=max_string, _depth=_depth + 1)

    if isinstance(value, Mapping):
        return {
            str(k): _REDACTED if _is_sensitive(str(k)) else redact_for_log(v, max_string=max_string, _depth=_depth + 1)
            for k, v in value.items()
        }

    if isinstance(value, Sequence):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
