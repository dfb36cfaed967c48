from __future__ import annotations

import datetime as dt
import itertools

import pytest
from fakes import FakeClock, RecordingTimers

from pyteslacar.config import PollPolicy, TeslaConfig
from pyteslacar.polling import PollCategory, PollingScheduler, decide_poll
from pyteslacar.status import SoftwareStatus, VehicleStatusFlags

POLICY = PollPolicy()

# One flag set per category, highest priority first.
_BY_PRIORITY: list[tuple[PollCategory, VehicleStatusFlags]] = [
    (PollCategory.MOVING, VehicleStatusFlags(moving=True)),
    (PollCategory.ACTIVE, VehicleStatusFlags(locked=False)),
    (PollCategory.CHARGING_LONG, VehicleStatusFlags(charging=True, remaining_charge_hours=2.0)),
    (PollCategory.CHARGING_SHORT, VehicleStatusFlags(charging=True, remaining_charge_hours=0.5)),
]


def _combine(a: VehicleStatusFlags, b: VehicleStatusFlags) -> VehicleStatusFlags:
    return VehicleStatusFlags(
        moving=a.moving or b.moving,
        locked=a.locked and b.locked,
        charging=a.charging or b.charging,
        remaining_charge_hours=max(a.remaining_charge_hours, b.remaining_charge_hours),
    )


@pytest.mark.parametrize(("higher", "lower"), list(itertools.combinations(range(len(_BY_PRIORITY)), 2)))
def test_higher_priority_category_wins(higher: int, lower: int) -> None:
    category, flags = _BY_PRIORITY[higher]
    _other, other_flags = _BY_PRIORITY[lower]
    if category == PollCategory.CHARGING_LONG:
        # Long and short charging differ only in remaining time.
        other_flags = VehicleStatusFlags()

    decision = decide_poll(_combine(flags, other_flags), POLICY, awake=True)

    assert decision.category == category


@pytest.mark.parametrize(
    "flags",
    [
        VehicleStatusFlags(climate_on=True),
        VehicleStatusFlags(sentry_mode=True),
        VehicleStatusFlags(software_status=SoftwareStatus.DOWNLOADING),
        VehicleStatusFlags(locked=False, charging=True, remaining_charge_hours=3.0),
    ],
)
def test_active_conditions(flags: VehicleStatusFlags) -> None:
    decision = decide_poll(flags, POLICY, awake=False)

    assert decision.category == PollCategory.ACTIVE
    assert decision.interval == POLICY.active
    assert decision.forced


def test_charging_with_45_minutes_left_uses_short_interval() -> None:
    flags = VehicleStatusFlags(charging=True, remaining_charge_hours=0.75)

    decision = decide_poll(flags, POLICY, awake=True)

    assert decision.category == PollCategory.CHARGING_SHORT
    assert decision.interval == 5 * 60


def test_recent_spontaneous_wake_counts_as_active() -> None:
    decision = decide_poll(VehicleStatusFlags(), POLICY, awake=True, recently_woke=True)
    assert decision.category == PollCategory.ACTIVE

    decision = decide_poll(None, POLICY, awake=True, recently_woke=True)
    assert decision.category == PollCategory.ACTIVE


def test_idle_and_default_are_not_forced() -> None:
    idle = decide_poll(VehicleStatusFlags(), POLICY, awake=True)
    default = decide_poll(VehicleStatusFlags(), POLICY, awake=False)

    assert (idle.category, idle.interval, idle.forced) == (PollCategory.IDLE, 20 * 60, False)
    assert (default.category, default.interval, default.forced) == (PollCategory.DEFAULT, 15 * 60, False)


def test_zero_interval_falls_back_to_default() -> None:
    policy = PollPolicy(moving=0)

    decision = decide_poll(VehicleStatusFlags(moving=True), policy, awake=True)

    assert decision.category == PollCategory.MOVING
    assert decision.interval == policy.default


# ------------------------------------------------------------------
# Scheduler
# ------------------------------------------------------------------


class _Harness:
    def __init__(self, config: TeslaConfig | None = None) -> None:
        self.clock = FakeClock()
        self.timers = RecordingTimers()
        self.awake = False
        self.flags: VehicleStatusFlags | None = None
        self.ready = True
        self.woke_at: float | None = None
        self.refreshes: list[bool] = []
        self.installs = 0
        self.scheduler = PollingScheduler(
            is_awake=self._is_awake,
            woke_at=lambda: self.woke_at,
            flags=lambda: self.flags,
            refresh=self.refreshes.append,
            install_software=self._install,
            timers=self.timers,
            config=config or TeslaConfig(),
            ready=lambda: self.ready,
            clock=self.clock,
        )

    async def _is_awake(self) -> bool:
        return self.awake

    def _install(self) -> None:
        self.installs += 1


def test_start_arms_tick_and_daily_poll() -> None:
    harness = _Harness()

    harness.scheduler.start()

    tick, daily = harness.timers.active()
    assert tick.delay == 60
    assert daily.daily_at == dt.time(7, 30)

    harness.scheduler.stop()
    assert harness.timers.active() == []


def test_daily_poll_can_be_disabled() -> None:
    harness = _Harness(TeslaConfig(daily_poll_enabled=False))

    harness.scheduler.start()

    assert [t.daily_at for t in harness.timers.active()] == [None]


@pytest.mark.asyncio
async def test_tick_rearms_itself() -> None:
    harness = _Harness()
    harness.scheduler.start()

    await harness.scheduler.tick()

    assert len([t for t in harness.timers.active() if t.daily_at is None]) == 2


@pytest.mark.asyncio
async def test_unforced_refresh_is_skipped_while_asleep() -> None:
    harness = _Harness()
    harness.flags = VehicleStatusFlags()

    decision = await harness.scheduler.tick()

    assert decision is not None
    assert decision.category == PollCategory.DEFAULT
    assert harness.refreshes == []


@pytest.mark.asyncio
async def test_forced_refresh_may_wake_the_car() -> None:
    harness = _Harness()
    harness.flags = VehicleStatusFlags(charging=True, remaining_charge_hours=2.0)

    await harness.scheduler.tick()

    assert harness.refreshes == [True]


@pytest.mark.asyncio
async def test_refresh_waits_for_interval_to_elapse() -> None:
    harness = _Harness()
    harness.awake = True
    harness.scheduler.state.was_awake = True
    harness.flags = VehicleStatusFlags()
    harness.scheduler.note_status()

    harness.clock.advance(10 * 60)
    await harness.scheduler.tick()
    assert harness.refreshes == []
    assert harness.scheduler.state.next_due_at == harness.clock.now + 10 * 60

    harness.clock.advance(10 * 60)
    await harness.scheduler.tick()
    assert harness.refreshes == [False]


@pytest.mark.asyncio
async def test_spontaneous_wake_is_polled_as_active() -> None:
    harness = _Harness()
    harness.flags = VehicleStatusFlags()
    harness.scheduler.note_status()

    await harness.scheduler.tick()
    harness.awake = True
    harness.clock.advance(5 * 60)
    decision = await harness.scheduler.tick()

    assert decision is not None
    assert decision.category == PollCategory.ACTIVE
    assert harness.refreshes == [True]


@pytest.mark.asyncio
async def test_own_wake_request_is_not_counted_as_spontaneous() -> None:
    harness = _Harness()
    harness.flags = VehicleStatusFlags()
    harness.scheduler.note_status()

    await harness.scheduler.tick()
    harness.awake = True
    harness.woke_at = harness.clock()
    harness.clock.advance(60)
    decision = await harness.scheduler.tick()

    assert decision is not None
    assert decision.category == PollCategory.IDLE
    assert harness.scheduler.state.last_wake_timestamp is None
    assert harness.refreshes == []


@pytest.mark.asyncio
async def test_downloaded_update_is_installed_when_enabled() -> None:
    enabled = _Harness(TeslaConfig(auto_software_install=True))
    disabled = _Harness()
    for harness in (enabled, disabled):
        harness.flags = VehicleStatusFlags(software_status=SoftwareStatus.READY)
        await harness.scheduler.tick()

    assert enabled.installs == 1
    assert disabled.installs == 0


@pytest.mark.asyncio
async def test_nothing_happens_when_not_ready() -> None:
    harness = _Harness()
    harness.ready = False
    harness.flags = VehicleStatusFlags(moving=True)

    assert await harness.scheduler.tick() is None
    harness.scheduler.daily_poll()

    assert harness.refreshes == []


def test_daily_poll_forces_refresh() -> None:
    harness = _Harness()

    harness.scheduler.daily_poll()

    assert harness.refreshes == [True]
