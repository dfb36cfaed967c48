from __future__ import annotations

import pytest

from pyteslacar.exceptions import (
    TeslaApiError,
    TeslaAuthenticationError,
    TeslaConfigError,
    TeslaTransientApiError,
    TeslaTransportError,
    TeslaVehicleMissingError,
)
from pyteslacar.retry import Outcome, classify_exception, classify_response


@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (200, {"response": {"result": True, "reason": ""}}, Outcome.SUCCESS),
        (200, {"response": {"charge_state": {}}}, Outcome.SUCCESS),
        (200, {}, Outcome.SUCCESS),
        (200, {"response": {"result": False, "reason": "could_not_wake_buses"}}, Outcome.TRANSIENT),
        (200, {"response": {"result": False, "reason": "not_charging"}}, Outcome.FATAL),
        (400, {}, Outcome.TRANSIENT),
        (408, {"error": "vehicle unavailable"}, Outcome.TRANSIENT),
        (502, {}, Outcome.TRANSIENT),
        (504, {}, Outcome.TRANSIENT),
        (401, {}, Outcome.REAUTH),
        (404, {}, Outcome.VEHICLE_MISSING),
        (428, {}, Outcome.VEHICLE_MISSING),
        (403, {}, Outcome.FATAL),
        (500, {}, Outcome.FATAL),
    ],
)
def test_classify_response(status: int, body: dict, expected: Outcome) -> None:
    assert classify_response(status, body) == expected


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (TeslaTransportError("reset"), Outcome.TRANSIENT),
        (TeslaTransientApiError("gateway", status_code=504), Outcome.TRANSIENT),
        (TeslaVehicleMissingError("deep sleep", status_code=428), Outcome.VEHICLE_MISSING),
        (TeslaAuthenticationError("expired", status_code=401), Outcome.REAUTH),
        (TeslaAuthenticationError("bad form"), Outcome.FATAL),
        (TeslaApiError("forbidden", status_code=403), Outcome.FATAL),
        (TeslaConfigError("no credentials"), Outcome.FATAL),
    ],
)
def test_classify_exception(exc: Exception, expected: Outcome) -> None:
    assert classify_exception(exc) == expected


def test_only_success_and_fatal_are_terminal() -> None:
    assert {o for o in Outcome if o.is_terminal} == {Outcome.SUCCESS, Outcome.FATAL}
