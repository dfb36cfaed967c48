from __future__ import annotations

import asyncio
from collections import deque

import pytest
from fakes import FakeClock, FakeTeslaBackend, RecordingTimers, json_response

from pyteslacar.auth import AuthManager
from pyteslacar.config import TeslaConfig
from pyteslacar.models.command import Command, CommandResult
from pyteslacar.polling import PollCategory
from pyteslacar.session import MemoryTokenStore
from pyteslacar.state.events import StateSection
from pyteslacar.state.store import StateStore
from pyteslacar.status import NOT_READY_MESSAGE
from pyteslacar.vehicle import LOGIN_FAILED_MESSAGE, VehicleSession


def _session_with_messages(
    config: TeslaConfig, backend: FakeTeslaBackend, clock: FakeClock
) -> tuple[VehicleSession, list[str], RecordingTimers]:
    messages: list[str] = []
    timers = RecordingTimers()
    auth = AuthManager(config, backend, MemoryTokenStore(), clock=clock)
    vehicle = VehicleSession(
        config,
        backend,
        auth,
        timers=timers,
        on_status=messages.append,
        sleep=clock.sleep,
        clock=clock,
    )
    return vehicle, messages, timers


@pytest.mark.asyncio
async def test_start_resolves_vehicle_and_refreshes_status(
    vehicle: VehicleSession, backend: FakeTeslaBackend, timers: RecordingTimers, state_store: StateStore
) -> None:
    assert await vehicle.start()

    assert vehicle.ready_to_poll
    assert vehicle.handle is not None
    assert vehicle.handle.vehicle_id == "123"
    assert [t.delay for t in timers.active() if t.daily_at is None] == [60]
    assert vehicle.dispatcher.pending == ["getVehicleDetails", "getServiceData"]

    flags = await vehicle.refresh_status()

    assert flags is not None
    assert flags.locked
    assert vehicle.status_message == "Range: 322 km"
    assert vehicle.vehicle_data is not None
    assert vehicle.service_data is not None
    assert state_store.get_section(backend.vin, StateSection.CHARGE)["battery_level"] == 80
    assert vehicle.poller.state.last_status_timestamp is not None


@pytest.mark.asyncio
async def test_start_with_sleeping_car_does_not_wake_it(vehicle: VehicleSession, backend: FakeTeslaBackend) -> None:
    backend.vehicle_states = deque(["asleep"])

    assert await vehicle.start()

    assert vehicle.dispatcher.queue_length == 0
    assert backend.count("wake_up") == 0
    assert not vehicle.request_status_refresh(False)


@pytest.mark.asyncio
async def test_start_without_credentials_stays_idle(backend: FakeTeslaBackend, clock: FakeClock) -> None:
    vehicle, messages, timers = _session_with_messages(TeslaConfig(), backend, clock)

    assert not await vehicle.start()

    assert messages == [NOT_READY_MESSAGE]
    assert vehicle.status_message == NOT_READY_MESSAGE
    assert timers.active() == []
    assert not vehicle.request_status_refresh(True)


@pytest.mark.asyncio
async def test_start_gives_up_after_login_attempts(backend: FakeTeslaBackend, clock: FakeClock) -> None:
    backend.login_should_fail = True
    config = TeslaConfig(email="user@example.com", password="wrong")
    vehicle, messages, _timers = _session_with_messages(config, backend, clock)

    assert not await vehicle.start()

    assert backend.calls["POST /oauth2/v3/authorize"] == 5
    assert clock.sleeps == [5, 5, 5, 5]
    assert messages[-1] == LOGIN_FAILED_MESSAGE
    assert not vehicle.ready_to_poll


@pytest.mark.asyncio
async def test_action_schedules_follow_up_refresh(vehicle: VehicleSession, timers: RecordingTimers) -> None:
    await vehicle.lock()
    [first] = timers.active()
    assert first.delay == 10

    await vehicle.set_temperature(21)

    assert first.cancelled
    [second] = timers.active()
    assert second.delay == 20


@pytest.mark.asyncio
async def test_follow_up_refresh_queues_status_request(vehicle: VehicleSession, timers: RecordingTimers) -> None:
    assert await vehicle.start()
    await vehicle.refresh_status()
    await vehicle.open_charge_port()
    [follow_up] = [t for t in timers.active() if t.delay == 10]

    follow_up.task()

    assert vehicle.dispatcher.pending == ["getVehicleDetails", "getServiceData"]
    # Already queued, so a second request is dropped.
    assert not vehicle.request_status_refresh(True)
    await vehicle.stop()


@pytest.mark.asyncio
async def test_queries_do_not_schedule_follow_up(vehicle: VehicleSession, timers: RecordingTimers) -> None:
    result = await vehicle.send("getChargeState")

    assert result.success
    assert timers.active() == []


@pytest.mark.asyncio
async def test_user_handlers_see_results(vehicle: VehicleSession) -> None:
    seen: list[tuple[str, bool]] = []

    def record(command: Command, result: CommandResult) -> None:
        seen.append((command.name, result.success))

    vehicle.register_handler("other", record)

    await vehicle.honk_horn()
    await vehicle.refresh_status()

    assert seen == [("honkHorn", True), ("getVehicleDetails", True), ("getServiceData", True)]


@pytest.mark.asyncio
async def test_software_install_is_queued_once(vehicle: VehicleSession) -> None:
    vehicle._auto_install_software()  # noqa: SLF001
    vehicle._auto_install_software()  # noqa: SLF001

    assert vehicle.dispatcher.pending == ["updateSoftware"]
    await vehicle.stop()


@pytest.mark.asyncio
async def test_changed_vehicle_id_is_picked_up(vehicle: VehicleSession, backend: FakeTeslaBackend) -> None:
    await vehicle.resolve_vehicle()
    backend.vehicle_id = "456"

    handle = await vehicle.resolve_vehicle()

    assert handle.vehicle_id == "456"
    assert (await vehicle.lock()).success
    assert backend.count("/api/1/vehicles/456/command/door_lock") == 1


@pytest.mark.asyncio
async def test_reset_revokes_and_forgets(vehicle: VehicleSession, backend: FakeTeslaBackend) -> None:
    assert await vehicle.start()
    await asyncio.sleep(0)

    await vehicle.reset()

    assert backend.calls["POST /oauth/revoke"] == 1
    assert not vehicle.ready_to_poll
    assert vehicle.handle is None
    assert vehicle.status_message == NOT_READY_MESSAGE
    assert not vehicle.poller.running


@pytest.mark.asyncio
async def test_wake_for_failed_command_does_not_keep_car_active(
    vehicle: VehicleSession, backend: FakeTeslaBackend, clock: FakeClock
) -> None:
    vehicle.ready_to_poll = True
    backend.vehicle_states = deque(["asleep", "asleep", "online"])
    backend.script("command/honk_horn", json_response(200, {"response": {"result": False, "reason": "user_present"}}))

    await vehicle.poller.tick()
    result = await vehicle.honk_horn()
    clock.advance(60)
    decision = await vehicle.poller.tick()

    assert not result.success
    assert backend.count("wake_up") == 1
    assert decision is not None
    assert decision.category == PollCategory.IDLE
    assert not decision.forced
    await vehicle.stop()
