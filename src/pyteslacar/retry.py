"""Outcome classification for owner API calls.

Pure functions: they look at a status code and decoded body (or an
exception) and say what the dispatcher should do next. Nothing here
sleeps, counts retries or touches the network.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pyteslacar._api._common import TRANSIENT_STATUSES, VEHICLE_MISSING_STATUSES
from pyteslacar._constants import COULD_NOT_WAKE_BUSES
from pyteslacar.exceptions import (
    TeslaAuthenticationError,
    TeslaTransientApiError,
    TeslaTransportError,
    TeslaVehicleMissingError,
)


class Outcome(StrEnum):
    SUCCESS = "success"
    TRANSIENT = "transient"
    REAUTH = "reauth"
    VEHICLE_MISSING = "vehicle_missing"
    FATAL = "fatal"

    @property
    def is_terminal(self) -> bool:
        """Whether the command leaves the queue after this outcome."""
        return self in (Outcome.SUCCESS, Outcome.FATAL)


def command_reason(body: Any) -> str:
    """The ``response.reason`` string of a command answer, if any."""
    if not isinstance(body, dict):
        return ""
    inner = body.get("response")
    if isinstance(inner, dict):
        reason = inner.get("reason")
        if isinstance(reason, str):
            return reason
    return ""


def classify_response(status: int, body: Any) -> Outcome:
    """Map a completed HTTP exchange onto an :class:`Outcome`.

    * 200 with ``response.result`` not false → SUCCESS
    * 200 with ``result: false`` and reason ``could_not_wake_buses`` → TRANSIENT
    * 200 with ``result: false`` otherwise → FATAL
    * 400/408/502/504 → TRANSIENT
    * 401 → REAUTH
    * 404/428 → VEHICLE_MISSING
    * anything else → FATAL
    """
    if status == 200:
        inner = body.get("response") if isinstance(body, dict) else None
        if isinstance(inner, dict) and inner.get("result") is False:
            if command_reason(body) == COULD_NOT_WAKE_BUSES:
                return Outcome.TRANSIENT
            return Outcome.FATAL
        return Outcome.SUCCESS
    if status in TRANSIENT_STATUSES:
        return Outcome.TRANSIENT
    if status == 401:
        return Outcome.REAUTH
    if status in VEHICLE_MISSING_STATUSES:
        return Outcome.VEHICLE_MISSING
    return Outcome.FATAL


def classify_exception(exc: BaseException) -> Outcome:
    """Map an exception raised while executing a call onto an :class:`Outcome`."""
    if isinstance(exc, TeslaTransportError):
        return Outcome.TRANSIENT
    if isinstance(exc, TeslaVehicleMissingError):
        return Outcome.VEHICLE_MISSING
    if isinstance(exc, TeslaTransientApiError):
        return Outcome.TRANSIENT
    if isinstance(exc, TeslaAuthenticationError) and exc.status_code == 401:
        return Outcome.REAUTH
    return Outcome.FATAL
