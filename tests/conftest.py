from __future__ import annotations

import pytest
from fakes import FakeClock, FakeTeslaBackend, RecordingTimers

from pyteslacar.auth import AuthManager
from pyteslacar.config import TeslaConfig
from pyteslacar.session import MemoryTokenStore
from pyteslacar.state.store import StateStore
from pyteslacar.vehicle import VehicleSession


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(clock: FakeClock) -> FakeTeslaBackend:
    return FakeTeslaBackend(clock=clock)


@pytest.fixture
def config() -> TeslaConfig:
    return TeslaConfig(email="user@example.com", password="secret")


@pytest.fixture
def token_store() -> MemoryTokenStore:
    return MemoryTokenStore()


@pytest.fixture
def auth(config: TeslaConfig, backend: FakeTeslaBackend, token_store: MemoryTokenStore, clock: FakeClock) -> AuthManager:
    return AuthManager(config, backend, token_store, clock=clock)


@pytest.fixture
def timers() -> RecordingTimers:
    return RecordingTimers()


@pytest.fixture
def state_store() -> StateStore:
    return StateStore()


@pytest.fixture
def vehicle(
    config: TeslaConfig,
    backend: FakeTeslaBackend,
    auth: AuthManager,
    timers: RecordingTimers,
    state_store: StateStore,
    clock: FakeClock,
) -> VehicleSession:
    return VehicleSession(
        config,
        backend,
        auth,
        timers=timers,
        state_sink=state_store,
        sleep=clock.sleep,
        clock=clock,
    )


def make_vehicle(
    config: TeslaConfig,
    backend: FakeTeslaBackend,
    clock: FakeClock,
    timers: RecordingTimers | None = None,
) -> VehicleSession:
    """Build a session for a non-default config."""
    auth = AuthManager(config, backend, MemoryTokenStore(), clock=clock)
    return VehicleSession(
        config,
        backend,
        auth,
        timers=timers or RecordingTimers(),
        sleep=clock.sleep,
        clock=clock,
    )
