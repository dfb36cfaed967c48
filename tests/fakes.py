from __future__ import annotations

import asyncio
import datetime as dt
import json
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode, urlsplit

from pyteslacar._transport import HttpResponse
from pyteslacar.exceptions import TeslaTransportError

LOGIN_PAGE = """
<html><body><form method="post">
  <input type="hidden" name="_csrf" value="csrf-token-1" />
  <input type="hidden" name="_phase" value="authenticate" />
  <input type="hidden" name="transaction_id" value="tx-1" />
  <input type="email" name="identity" />
  <input type="password" name="credential" />
</form></body></html>
"""


def json_response(status: int, body: Any) -> HttpResponse:
    return HttpResponse(status=status, text=json.dumps(body))


def command_ok() -> HttpResponse:
    return json_response(200, {"response": {"result": True, "reason": ""}})


def vehicle_data_body(
    *,
    vin: str = "5YJ3E7EA1KF000001",
    shift_state: str | None = None,
    locked: bool = True,
    charging_state: str = "Disconnected",
    time_to_full_charge: float = 0.0,
    battery_range: float = 200.0,
    software_status: str = "",
    download_perc: int = 0,
) -> dict[str, Any]:
    return {
        "id_s": "123",
        "vin": vin,
        "state": "online",
        "charge_state": {
            "charging_state": charging_state,
            "battery_level": 80,
            "battery_range": battery_range,
            "time_to_full_charge": time_to_full_charge,
            "timestamp": 1771000000000,
        },
        "climate_state": {"is_climate_on": False, "inside_temp": 21.5, "timestamp": 1771000000000},
        "drive_state": {"shift_state": shift_state, "latitude": 52.37, "longitude": 4.90, "timestamp": 1771000000000},
        "vehicle_state": {
            "locked": locked,
            "df": 0,
            "dr": 0,
            "pf": 0,
            "pr": 0,
            "sentry_mode": False,
            "software_update": {"status": software_status, "download_perc": download_perc, "version": ""},
            "timestamp": 1771000000000,
        },
        "gui_settings": {"gui_distance_units": "km/hr"},
    }


class FakeClock:
    """Monotonic/wall clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


@dataclass
class FakeTeslaBackend:
    """In-process owner API + identity provider implementing ``HttpGateway``."""

    vin: str = "5YJ3E7EA1KF000001"
    vehicle_id: str = "123"
    clock: FakeClock | None = None
    calls: dict[str, int] = field(default_factory=dict)
    requests: list[tuple[str, str, Any]] = field(default_factory=list)
    timeline: list[tuple[float, str]] = field(default_factory=list)
    vehicle_states: deque[str] = field(default_factory=lambda: deque(["online"]))
    list_responses: deque[HttpResponse] = field(default_factory=deque)
    scripted: dict[str, deque[HttpResponse | Exception]] = field(default_factory=dict)
    refresh_should_fail: bool = False
    login_should_fail: bool = False
    token_counter: int = 0
    vehicle_data: dict[str, Any] = field(default_factory=vehicle_data_body)
    in_flight: int = 0
    max_in_flight: int = 0

    def script(self, path_suffix: str, *responses: HttpResponse | Exception) -> None:
        self.scripted.setdefault(path_suffix, deque()).extend(responses)

    def count(self, suffix: str) -> int:
        return sum(n for key, n in self.calls.items() if key.endswith(suffix))

    def _record(self, method: str, path: str, body: Any) -> str:
        key = f"{method} {path}"
        self.calls[key] = self.calls.get(key, 0) + 1
        self.requests.append((method, path, body))
        if self.clock is not None:
            self.timeline.append((self.clock.now, key))
        return key

    def _tokens(self) -> HttpResponse:
        self.token_counter += 1
        return json_response(
            200,
            {
                "access_token": f"access-{self.token_counter}",
                "refresh_token": f"refresh-{self.token_counter}",
                "token_type": "bearer",
                "expires_in": 28800,
            },
        )

    def _vehicle_list(self) -> HttpResponse:
        if self.list_responses:
            return self.list_responses.popleft()
        state = self.vehicle_states[0]
        if len(self.vehicle_states) > 1:
            self.vehicle_states.popleft()
        return json_response(
            200,
            {
                "count": 1,
                "response": [
                    {"id_s": self.vehicle_id, "vin": self.vin, "display_name": "Car", "state": state},
                ],
            },
        )

    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json_body: Mapping[str, Any] | None = None,
        form: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        allow_redirects: bool = True,
    ) -> HttpResponse:
        path = urlsplit(url).path
        self._record(method, path, dict(json_body) if json_body is not None else dict(form or {}))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            return self._respond(method, path, json_body, form, params or {})
        finally:
            self.in_flight -= 1

    def _respond(
        self,
        method: str,
        path: str,
        json_body: Mapping[str, Any] | None,
        form: Mapping[str, str] | None,
        params: Mapping[str, str],
    ) -> HttpResponse:
        for suffix, queue in self.scripted.items():
            if path.endswith(suffix) and queue:
                item = queue.popleft()
                if isinstance(item, Exception):
                    raise item
                return item

        if path == "/oauth2/v3/authorize" and method == "GET":
            return HttpResponse(status=200, text=LOGIN_PAGE)
        if path == "/oauth2/v3/authorize" and method == "POST":
            if self.login_should_fail:
                return HttpResponse(status=401, text="<html>Invalid credentials</html>")
            query = urlencode({"code": "auth-code-1", "state": params.get("state", "")})
            return HttpResponse(status=302, headers={"Location": f"https://auth.tesla.com/void/callback?{query}"})
        if path == "/oauth2/v3/token":
            grant = (json_body or {}).get("grant_type")
            if grant == "refresh_token" and self.refresh_should_fail:
                return json_response(401, {"error": "login_required"})
            return self._tokens()
        if path == "/oauth/revoke":
            return json_response(200, {})
        if path == "/api/1/vehicles":
            return self._vehicle_list()

        prefix = f"/api/1/vehicles/{self.vehicle_id}/"
        if not path.startswith(prefix):
            raise AssertionError(f"Unexpected path in fake backend: {path}")
        endpoint = path[len(prefix) :]
        if endpoint == "wake_up":
            return json_response(200, {"response": {"state": "online"}})
        if endpoint == "vehicle_data":
            return json_response(200, {"response": self.vehicle_data})
        if endpoint == "service_data":
            return json_response(200, {"response": {"service_status": "not_in_service"}})
        if endpoint.startswith("command/") or endpoint.startswith("data_request/") or endpoint == "mobile_enabled":
            return command_ok()
        raise AssertionError(f"Unexpected endpoint in fake backend: {endpoint}")


def transport_error() -> TeslaTransportError:
    return TeslaTransportError("connection reset", endpoint="fake")


@dataclass
class _Timer:
    delay: float
    task: Any
    daily_at: dt.time | None = None
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class RecordingTimers:
    """``TaskScheduler`` that records timers; tests fire them by hand."""

    def __init__(self) -> None:
        self.timers: list[_Timer] = []

    def after(self, delay: float, task: Any) -> _Timer:
        timer = _Timer(delay=delay, task=task)
        self.timers.append(timer)
        return timer

    def every_day(self, at: dt.time, task: Any) -> _Timer:
        timer = _Timer(delay=0, task=task, daily_at=at)
        self.timers.append(timer)
        return timer

    def active(self) -> list[_Timer]:
        return [t for t in self.timers if not t.cancelled]
