"""Adaptive polling: choose how often to refresh based on what the car is doing.

The decision itself (:func:`decide_poll`) is a pure function so every
priority rule can be tested without timers. :class:`PollingScheduler`
wires it to a fixed tick and the daily poll.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from pyteslacar.config import PollPolicy, TeslaConfig
from pyteslacar.exceptions import TeslaError
from pyteslacar.status import SoftwareStatus, VehicleStatusFlags
from pyteslacar.timers import Cancellable, TaskScheduler

_logger = logging.getLogger(__name__)

#: A vehicle that came online by itself within this window counts as active.
RECENT_WAKE_WINDOW_S = 200.0

#: Remaining charge time (hours) separating the long and short charging intervals.
LONG_CHARGE_HOURS = 1.0


class PollCategory(StrEnum):
    MOVING = "moving"
    ACTIVE = "active"
    CHARGING_LONG = "charging_long"
    CHARGING_SHORT = "charging_short"
    IDLE = "idle"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class PollDecision:
    category: PollCategory
    interval: float
    """Seconds that must pass since the last status before refreshing."""
    forced: bool
    """Whether the refresh may wake a sleeping vehicle."""


@dataclass(slots=True)
class SchedulerState:
    last_status_timestamp: float | None = None
    last_wake_timestamp: float | None = None
    next_due_at: float | None = None
    was_awake: bool = False


def decide_poll(
    flags: VehicleStatusFlags | None,
    policy: PollPolicy,
    *,
    awake: bool,
    recently_woke: bool = False,
) -> PollDecision:
    """Pick the polling category; the first matching rule wins.

    1. moving
    2. active: woke up on its own recently, software update pending,
       unlocked, climate on, sentry on
    3. charging with more than an hour left
    4. charging with an hour or less left
    5. awake and idle (not forced)
    6. anything else, default interval (not forced)
    """
    if flags is not None:
        if flags.moving:
            return PollDecision(PollCategory.MOVING, policy.effective(policy.moving), True)
        if (
            (awake and recently_woke)
            or flags.software_pending
            or not flags.locked
            or flags.climate_on
            or flags.sentry_mode
        ):
            return PollDecision(PollCategory.ACTIVE, policy.effective(policy.active), True)
        if flags.charging:
            if flags.remaining_charge_hours > LONG_CHARGE_HOURS:
                return PollDecision(PollCategory.CHARGING_LONG, policy.effective(policy.charging_long), True)
            return PollDecision(PollCategory.CHARGING_SHORT, policy.effective(policy.charging_short), True)
    elif awake and recently_woke:
        return PollDecision(PollCategory.ACTIVE, policy.effective(policy.active), True)

    if awake:
        return PollDecision(PollCategory.IDLE, policy.effective(policy.idle), False)
    return PollDecision(PollCategory.DEFAULT, policy.default, False)


class PollingScheduler:
    """Periodic status refresh driven by a :class:`TaskScheduler`.

    Parameters
    ----------
    is_awake : callable
        Coroutine reporting whether the vehicle is online (never wakes it).
    flags : callable
        Returns the latest known :class:`VehicleStatusFlags`, if any.
    refresh : callable
        Queues a status refresh; the argument says whether it may wake the car.
    install_software : callable
        Queues a software installation.
    timers : TaskScheduler
        Host timer facility.
    config : TeslaConfig
        Poll policy, daily poll and auto-install settings.
    woke_at : callable
        Clock value of the last wake this library caused, if any. Such a
        wake is not counted as the vehicle waking on its own.
    ready : callable
        Whether the session is ready for polling at all.
    clock
        Injected for tests.
    """

    def __init__(
        self,
        *,
        is_awake: Callable[[], Awaitable[bool]],
        flags: Callable[[], VehicleStatusFlags | None],
        refresh: Callable[[bool], object],
        install_software: Callable[[], object],
        timers: TaskScheduler,
        config: TeslaConfig,
        woke_at: Callable[[], float | None] = lambda: None,
        ready: Callable[[], bool] = lambda: True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._is_awake = is_awake
        self._flags = flags
        self._refresh = refresh
        self._install_software = install_software
        self._timers = timers
        self._config = config
        self._woke_at = woke_at
        self._ready = ready
        self._clock = clock
        self.state = SchedulerState()
        self.last_decision: PollDecision | None = None
        self._tick_handle: Cancellable | None = None
        self._daily_handle: Cancellable | None = None
        self._running = False

    @property
    def policy(self) -> PollPolicy:
        return self._config.poll_policy

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Arm the tick and, when enabled, the daily poll."""
        if self._running:
            return
        self._running = True
        self._arm_tick()
        if self._config.daily_poll_enabled:
            self._daily_handle = self._timers.every_day(self._config.daily_poll_time, self.daily_poll)
        _logger.info("Polling started, tick every %ss", self.policy.tick_interval)

    def stop(self) -> None:
        self._running = False
        for handle in (self._tick_handle, self._daily_handle):
            if handle is not None:
                handle.cancel()
        self._tick_handle = None
        self._daily_handle = None

    def note_status(self) -> None:
        """Record that fresh vehicle status just arrived."""
        self.state.last_status_timestamp = self._clock()

    def note_awake(self) -> None:
        """Record an awake vehicle caused by our own traffic (not a spontaneous wake)."""
        self.state.was_awake = True

    def _arm_tick(self) -> None:
        if self._running:
            self._tick_handle = self._timers.after(self.policy.tick_interval, self.tick)

    def _caused_wake(self, now: float) -> bool:
        woke_at = self._woke_at()
        return woke_at is not None and now - woke_at < RECENT_WAKE_WINDOW_S

    def _elapsed(self, now: float) -> float:
        if self.state.last_status_timestamp is None:
            return math.inf
        return now - self.state.last_status_timestamp

    async def tick(self) -> PollDecision | None:
        """One scheduler pass; re-arms itself before doing any work."""
        self._arm_tick()
        if not self._ready():
            _logger.warning("Scheduled poll skipped, not ready for polling")
            return None

        try:
            awake = await self._is_awake()
        except TeslaError as exc:
            _logger.error("Awake state check failed: %s", exc)
            awake = False

        now = self._clock()
        if awake and not self.state.was_awake:
            if self._caused_wake(now):
                _logger.debug("Vehicle awake after our own wake request")
            else:
                self.state.last_wake_timestamp = now
                _logger.debug("Vehicle woke up")
        elif not awake:
            self.state.last_wake_timestamp = None
        self.state.was_awake = awake

        recently_woke = (
            self.state.last_wake_timestamp is not None
            and now - self.state.last_wake_timestamp < RECENT_WAKE_WINDOW_S
        )
        flags = self._flags()
        decision = decide_poll(flags, self.policy, awake=awake, recently_woke=recently_woke)
        self.last_decision = decision

        elapsed = self._elapsed(now)
        if self.state.last_status_timestamp is not None:
            self.state.next_due_at = self.state.last_status_timestamp + decision.interval
        _logger.debug(
            "Poll decision %s: interval %ss, last status %.0fs ago, forced %s",
            decision.category,
            decision.interval,
            elapsed,
            decision.forced,
        )

        if decision.interval <= elapsed:
            if decision.forced or awake:
                self._refresh(decision.forced)
            else:
                _logger.debug("Vehicle asleep, unforced refresh skipped")

        if (
            flags is not None
            and flags.software_status == SoftwareStatus.READY
            and self._config.auto_software_install
        ):
            _logger.info("Software update %s downloaded, scheduling install", flags.software_version or "")
            self._install_software()

        return decision

    def daily_poll(self) -> None:
        """Forced refresh at the configured time of day."""
        if not self._ready():
            _logger.warning("Daily poll skipped, not ready for polling")
            return
        _logger.info("Daily poll")
        self._refresh(True)
