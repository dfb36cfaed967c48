"""Wake-up controller: brings a sleeping vehicle online before commands run."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from pyteslacar.config import TeslaConfig
from pyteslacar.exceptions import TeslaError, TeslaVehicleMissingError
from pyteslacar.models.vehicle import VehicleListing

_logger = logging.getLogger(__name__)


class WakeStage(StrEnum):
    IDLE = "idle"
    WAKING = "waking"
    WOKE_UP = "woke_up"
    GAVE_UP = "gave_up"


@dataclass(frozen=True, slots=True)
class WakeState:
    stage: WakeStage
    attempts_remaining: int

    @property
    def in_progress(self) -> bool:
        return self.stage == WakeStage.WAKING


class WakeController:
    """Run at most one wake sequence at a time.

    Parameters
    ----------
    fetch_state : callable
        Coroutine returning the current vehicle listing. It re-resolves
        the vehicle, so a changed vehicle id is picked up here.
    send_wake : callable
        Coroutine issuing the ``wake_up`` request.
    config : TeslaConfig
        Supplies the check interval, attempt budget, resend period and
        awake cache window.
    sleep, clock
        Injected for tests.
    """

    def __init__(
        self,
        fetch_state: Callable[[], Awaitable[VehicleListing]],
        send_wake: Callable[[], Awaitable[None]],
        config: TeslaConfig,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_state = fetch_state
        self._send_wake = send_wake
        self._config = config
        self._sleep = sleep
        self._clock = clock
        self._stage = WakeStage.IDLE
        self._attempts_remaining = config.max_wake_attempts
        self._awake_confirmed_at: float | None = None
        self._woke_at: float | None = None
        self._current: asyncio.Future[bool] | None = None

    @property
    def state(self) -> WakeState:
        return WakeState(stage=self._stage, attempts_remaining=self._attempts_remaining)

    @property
    def in_progress(self) -> bool:
        return self._stage == WakeStage.WAKING

    @property
    def woke_at(self) -> float | None:
        """Clock value of the last successful wake sequence."""
        return self._woke_at

    def mark_awake(self) -> None:
        """Record that the vehicle just answered, refreshing the awake cache."""
        self._awake_confirmed_at = self._clock()

    def mark_asleep(self) -> None:
        self._awake_confirmed_at = None

    def _cache_valid(self) -> bool:
        if self._awake_confirmed_at is None:
            return False
        return self._clock() - self._awake_confirmed_at < self._config.awake_cache_seconds

    async def is_awake(self) -> bool:
        """Whether the vehicle is online.

        A confirmation younger than ``awake_cache_seconds`` is trusted
        without a network call. A deep-sleep answer (428) counts as asleep;
        other errors propagate to the caller.
        """
        if self._cache_valid():
            return True
        try:
            listing = await self._fetch_state()
        except TeslaVehicleMissingError as exc:
            _logger.debug("Vehicle not listed as online: %s", exc)
            self.mark_asleep()
            return False
        if listing.is_online:
            self.mark_awake()
            return True
        self.mark_asleep()
        return False

    async def wake_up(self) -> bool:
        """Wake the vehicle; ``True`` once it is online, ``False`` on give-up.

        A call made while a sequence is running joins that sequence.
        """
        if self._current is not None and not self._current.done():
            return await asyncio.shield(self._current)
        self._current = asyncio.ensure_future(self._run())
        return await self._current

    async def _send(self) -> None:
        try:
            await self._send_wake()
        except TeslaError as exc:
            _logger.warning("Wake-up request failed: %s", exc)

    async def _run(self) -> bool:
        try:
            return await self._run_sequence()
        finally:
            if self._stage == WakeStage.WAKING:
                self._stage = WakeStage.IDLE

    async def _run_sequence(self) -> bool:
        self._stage = WakeStage.WAKING
        self._attempts_remaining = self._config.max_wake_attempts
        _logger.info("Vehicle asleep, sending wake-up")
        await self._send()

        for attempt in range(1, self._config.max_wake_attempts + 1):
            await self._sleep(self._config.wake_check_interval)
            self._attempts_remaining -= 1
            try:
                online = (await self._fetch_state()).is_online
            except TeslaError as exc:
                _logger.debug("Wake check %d failed: %s", attempt, exc)
                online = False

            if online:
                self._stage = WakeStage.WOKE_UP
                self._woke_at = self._clock()
                self.mark_awake()
                _logger.info("Vehicle woke up after %d checks", attempt)
                return True

            resend_every = self._config.wake_resend_every
            if resend_every > 0 and attempt % resend_every == 0 and attempt < self._config.max_wake_attempts:
                _logger.debug("Still asleep after %d checks, resending wake-up", attempt)
                await self._send()

        self._stage = WakeStage.GAVE_UP
        _logger.error("Vehicle did not wake up after %d checks", self._config.max_wake_attempts)
        return False
