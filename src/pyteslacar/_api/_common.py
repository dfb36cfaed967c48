"""Shared helpers for owner API endpoint modules.

This module centralizes the most repeated patterns:
- building the authenticated JSON headers
- unwrapping the ``{"response": ...}`` envelope
- mapping error statuses onto the exception hierarchy

It is internal to pyteslacar and may change at any time.
"""

from __future__ import annotations

import json
from typing import Any

from pyteslacar._constants import JSON_HEADERS
from pyteslacar._transport import HttpResponse
from pyteslacar.exceptions import (
    TeslaApiError,
    TeslaAuthenticationError,
    TeslaTransientApiError,
    TeslaVehicleMissingError,
)
from pyteslacar.session import Session

TRANSIENT_STATUSES: frozenset[int] = frozenset({400, 408, 502, 504})
VEHICLE_MISSING_STATUSES: frozenset[int] = frozenset({404, 428})


def build_headers(session: Session | None = None) -> dict[str, str]:
    """JSON headers, with ``Authorization`` when a session is given."""
    headers = dict(JSON_HEADERS)
    if session is not None and session.access_token:
        headers["authorization"] = session.authorization
    return headers


def decode_body(response: HttpResponse) -> dict[str, Any]:
    """Decode a JSON object body; anything else yields ``{}``."""
    try:
        body = response.json()
    except json.JSONDecodeError:
        return {}
    return body if isinstance(body, dict) else {}


def error_reason(body: dict[str, Any]) -> str:
    """Best-effort human readable reason from an error body."""
    for key in ("error_description", "error", "reason", "message"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    inner = body.get("response")
    if isinstance(inner, dict):
        reason = inner.get("reason")
        if isinstance(reason, str):
            return reason
    return ""


def raise_for_status(response: HttpResponse, *, endpoint: str) -> dict[str, Any]:
    """Return the decoded body of a 200 response or raise a mapped error."""
    body = decode_body(response)
    status = response.status
    if status == 200:
        return body

    reason = error_reason(body) or response.text[:200]
    message = f"{endpoint} failed: HTTP {status} {reason}".rstrip()
    if status == 401:
        raise TeslaAuthenticationError(message, status_code=status, endpoint=endpoint, reason=reason)
    if status in VEHICLE_MISSING_STATUSES:
        raise TeslaVehicleMissingError(message, status_code=status, endpoint=endpoint, reason=reason)
    if status in TRANSIENT_STATUSES:
        raise TeslaTransientApiError(message, status_code=status, endpoint=endpoint, reason=reason)
    raise TeslaApiError(message, status_code=status, endpoint=endpoint, reason=reason)
