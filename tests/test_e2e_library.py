from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeTeslaBackend, RecordingTimers, json_response

from pyteslacar.client import TeslaClient
from pyteslacar.config import TeslaConfig
from pyteslacar.exceptions import TeslaAuthenticationError, TeslaError
from pyteslacar.session import JsonFileTokenStore
from pyteslacar.state.store import StateStore


@pytest.fixture
def config(tmp_path: Path) -> TeslaConfig:
    return TeslaConfig(
        email="user@example.com",
        password="secret",
        vin="5YJ3E7EA1KF000001",
        send_interval=0,
        token_store_path=str(tmp_path / "tokens.json"),
    )


@pytest.fixture
def backend() -> FakeTeslaBackend:
    return FakeTeslaBackend()


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_client_happy_path_exercises_full_library(config: TeslaConfig, backend: FakeTeslaBackend) -> None:
    sink = StateStore()
    timers = RecordingTimers()

    async with TeslaClient(config, gateway=backend, state_sink=sink, timers=timers) as client:
        vehicles = await client.get_vehicles()
        assert [v.vin for v in vehicles] == [backend.vin]

        vehicle = client.vehicle()
        assert client.vehicle() is vehicle
        assert await vehicle.start()

        flags = await vehicle.refresh_status()
        assert flags is not None
        assert flags.battery_level == 80

        lock = await vehicle.lock()
        assert lock.success
        limit = await vehicle.set_charge_limit(80)
        assert limit.success

        assert sink.snapshot(backend.vin)["drive_state"]["latitude"] == pytest.approx(52.37)
        assert any(t.daily_at is not None for t in timers.active())

    # Full login once; every later call reused the cached token.
    assert backend.calls["GET /oauth2/v3/authorize"] == 1
    assert backend.token_counter == 1
    stored = JsonFileTokenStore(config.token_store_path or "").get()
    assert stored is not None
    assert stored.access_token == "access-1"
    assert timers.active() == []


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_stored_session_skips_login(config: TeslaConfig, backend: FakeTeslaBackend) -> None:
    async with TeslaClient(config, gateway=backend) as client:
        await client.login()

    async with TeslaClient(config, gateway=backend) as client:
        session = await client.login()
        assert session.access_token == "access-1"

    assert backend.calls["GET /oauth2/v3/authorize"] == 1


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_login_error_raises_authentication(config: TeslaConfig, backend: FakeTeslaBackend) -> None:
    backend.login_should_fail = True

    async with TeslaClient(config, gateway=backend) as client:
        with pytest.raises(TeslaAuthenticationError):
            await client.login()


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_logoff_revokes_token(config: TeslaConfig, backend: FakeTeslaBackend) -> None:
    async with TeslaClient(config, gateway=backend, timers=RecordingTimers()) as client:
        await client.login()
        await client.logoff()

    assert backend.calls["POST /oauth/revoke"] == 1
    assert JsonFileTokenStore(config.token_store_path or "").get() is None


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_rejected_command_is_reported(config: TeslaConfig, backend: FakeTeslaBackend) -> None:
    backend.script(
        "command/charge_stop",
        json_response(200, {"response": {"result": False, "reason": "not_charging"}}),
    )

    async with TeslaClient(config, gateway=backend, timers=RecordingTimers()) as client:
        result = await client.vehicle().stop_charging()

    assert not result.success
    assert "not_charging" in result.message


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_client_requires_context_manager(config: TeslaConfig) -> None:
    client = TeslaClient(config)

    with pytest.raises(TeslaError, match="not initialized"):
        await client.get_vehicles()
