"""Serialized command queue with wake-up orchestration and retries."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from pyteslacar._api._common import decode_body, error_reason, raise_for_status
from pyteslacar._api.commands import VehicleCommand
from pyteslacar._transport import HttpResponse
from pyteslacar.config import TeslaConfig, WakeFailurePolicy
from pyteslacar.exceptions import (
    TeslaApiError,
    TeslaCommandFailedError,
    TeslaError,
    TeslaVehicleUnreachableError,
)
from pyteslacar.models.command import Command, CommandResult
from pyteslacar.retry import Outcome, classify_exception, classify_response, command_reason
from pyteslacar.session import Session
from pyteslacar.wake import WakeController

_logger = logging.getLogger(__name__)

#: Handler key used when no handler is registered for a command name.
DEFAULT_HANDLER = "other"

#: Commands that never trigger a wake-up before being sent.
_NO_WAKE_COMMANDS: frozenset[str] = frozenset({VehicleCommand.LIST_CARS, VehicleCommand.WAKE_UP})

CommandHandler = Callable[[Command, CommandResult], None]


class SessionProvider(Protocol):
    async def ensure_valid_session(self, force_full_login: bool = False) -> Session:
        ...

    def invalidate(self) -> None:
        ...


class CommandDispatcher:
    """FIFO command queue drained by a single task.

    At most one command is in flight. Each submitted command resolves its
    future exactly once and is then handed to the handler registered for
    its name (or the ``"other"`` handler).

    Parameters
    ----------
    auth : SessionProvider
        Supplies a valid session before every attempt.
    wake : WakeController
        Checks the awake state and wakes the vehicle.
    execute : callable
        Coroutine performing the HTTP call for a command.
    config : TeslaConfig
        Retry budget, delays and wake failure policy.
    recheck_vehicle : callable, optional
        Coroutine re-resolving the vehicle after a 404/428.
    on_status : callable, optional
        Receives human readable progress messages.
    sleep
        Injected for tests.
    """

    def __init__(
        self,
        auth: SessionProvider,
        wake: WakeController,
        execute: Callable[[Command], Awaitable[HttpResponse]],
        config: TeslaConfig,
        *,
        recheck_vehicle: Callable[[], Awaitable[None]] | None = None,
        on_status: Callable[[str], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._auth = auth
        self._wake = wake
        self._execute = execute
        self._config = config
        self._recheck_vehicle = recheck_vehicle
        self._on_status = on_status
        self._sleep = sleep
        self._queue: deque[Command] = deque()
        self._handlers: dict[str, CommandHandler] = {}
        self._task: asyncio.Task[None] | None = None
        self._in_flight: Command | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def pending(self) -> list[str]:
        """Names of queued commands, head first."""
        return [cmd.name for cmd in self._queue]

    @property
    def in_flight(self) -> Command | None:
        return self._in_flight

    @property
    def is_draining(self) -> bool:
        return self._task is not None and not self._task.done()

    def register_handler(self, name: str, handler: CommandHandler) -> None:
        """Register *handler* for command *name* (``"other"`` is the fallback)."""
        self._handlers[str(name)] = handler

    def submit(self, name: str, parameters: Any = None) -> asyncio.Future[CommandResult]:
        """Queue a command and return a future resolved with its result."""
        loop = asyncio.get_running_loop()
        command = Command(name=str(name), parameters=parameters, future=loop.create_future())
        self._queue.append(command)
        _logger.debug("Queued %s (queue length %d)", command.name, len(self._queue))
        if not self.is_draining:
            self._task = loop.create_task(self._drain())
        assert command.future is not None  # noqa: S101
        return command.future

    async def close(self) -> None:
        """Stop draining and fail every command still queued."""
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        while self._queue:
            command = self._queue.popleft()
            self._finish(command, self._failure(command, TeslaError("Dispatcher closed")))

    # ------------------------------------------------------------------
    # Drain loop
    # ------------------------------------------------------------------

    def _status(self, message: str) -> None:
        if self._on_status is None:
            return
        try:
            self._on_status(message)
        except Exception:
            _logger.debug("on_status callback failed", exc_info=True)

    async def _drain(self) -> None:
        while self._queue:
            head = self._queue[0]
            try:
                await self._process_head(head)
            except Exception as exc:
                _logger.exception("Unexpected error while sending %s", head.name)
                self._pop_head(head, self._failure(head, TeslaError(f"Unexpected error: {exc}")))
            if self._queue:
                await self._sleep(self._config.send_interval)
        _logger.debug("Command queue drained")

    async def _process_head(self, command: Command) -> None:
        """Run *command* until it reaches a terminal result or the queue is dropped."""
        while True:
            try:
                await self._auth.ensure_valid_session()
            except TeslaError as exc:
                _logger.error("Cannot send %s, no valid session: %s", command.name, exc)
                self._pop_head(command, self._failure(command, exc))
                return

            outcome: Outcome
            error: TeslaError | None = None
            response: HttpResponse | None = None
            body: dict[str, Any] = {}
            try:
                if command.name not in _NO_WAKE_COMMANDS and not await self._wake.is_awake():
                    self._status("Waking up vehicle...")
                    if not await self._wake.wake_up():
                        self._give_up()
                        return
                self._status(f"Sending command {command.name}")
                self._in_flight = command
                response = await self._execute(command)
                body = decode_body(response)
                outcome = classify_response(response.status, body)
            except TeslaError as exc:
                error = exc
                outcome = classify_exception(exc)
            finally:
                self._in_flight = None

            if outcome == Outcome.SUCCESS:
                assert response is not None  # noqa: S101
                self._wake.mark_awake()
                self._pop_head(command, self._success(command, response, body))
                return

            if error is None:
                assert response is not None  # noqa: S101
                error = self._error_for(command, response, body)

            if outcome == Outcome.FATAL:
                _logger.warning("Command %s failed: %s", command.name, error)
                self._pop_head(command, self._failure(command, error))
                return

            if command.retry_count >= self._config.max_retries:
                _logger.error("Command %s failed after %d retries: %s", command.name, command.retry_count, error)
                failed = TeslaCommandFailedError(
                    f"Failed to send command {command.name}",
                    status_code=getattr(error, "status_code", None),
                    endpoint=getattr(error, "endpoint", ""),
                    reason=str(error),
                    retries=command.retry_count,
                )
                self._pop_head(command, self._failure(command, failed))
                return

            command.retry_count += 1
            _logger.warning(
                "Command %s: %s (%s), retry %d/%d in %ss",
                command.name,
                outcome,
                error,
                command.retry_count,
                self._config.max_retries,
                self._config.retry_delay,
            )
            if outcome == Outcome.REAUTH:
                self._auth.invalidate()
            elif outcome == Outcome.VEHICLE_MISSING:
                self._wake.mark_asleep()
                await self._recheck()
            await self._sleep(self._config.retry_delay)

    async def _recheck(self) -> None:
        if self._recheck_vehicle is None:
            return
        try:
            await self._recheck_vehicle()
        except TeslaError as exc:
            _logger.warning("Vehicle re-check failed: %s", exc)

    def _give_up(self) -> None:
        """Fail queued commands after the wake sequence gave up."""
        self._status("Failed to wake vehicle.")
        if self._config.wake_failure_policy == WakeFailurePolicy.DROP_HEAD:
            victims = [self._queue.popleft()]
        else:
            victims = list(self._queue)
            self._queue.clear()
        _logger.error("Vehicle unreachable, dropping %d queued command(s)", len(victims))
        for command in victims:
            error = TeslaVehicleUnreachableError(
                "Failed to wake vehicle.",
                status_code=408,
                endpoint="wake_up",
            )
            self._finish(command, self._failure(command, error))

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    @staticmethod
    def _error_for(command: Command, response: HttpResponse, body: dict[str, Any]) -> TeslaError:
        if response.status != 200:
            try:
                raise_for_status(response, endpoint=command.name)
            except TeslaApiError as exc:
                return exc
        reason = command_reason(body) or error_reason(body)
        return TeslaApiError(
            f"{command.name} rejected: {reason or 'result false'}",
            status_code=response.status,
            endpoint=command.name,
            reason=reason,
        )

    @staticmethod
    def _success(command: Command, response: HttpResponse, body: dict[str, Any]) -> CommandResult:
        return CommandResult(
            command=command.name,
            success=True,
            status_code=response.status,
            data=body.get("response", body),
            message="OK",
            retries=command.retry_count,
        )

    @staticmethod
    def _failure(command: Command, error: TeslaError) -> CommandResult:
        return CommandResult(
            command=command.name,
            success=False,
            status_code=getattr(error, "status_code", None),
            message=str(error),
            error=error,
            retries=command.retry_count,
        )

    def _pop_head(self, command: Command, result: CommandResult) -> None:
        if self._queue and self._queue[0] is command:
            self._queue.popleft()
        self._finish(command, result)

    def _finish(self, command: Command, result: CommandResult) -> None:
        if not command.resolve(result):
            _logger.debug("Result for %s already delivered", command.name)
            return
        handler = self._handlers.get(command.name) or self._handlers.get(DEFAULT_HANDLER)
        if handler is None:
            return
        try:
            handler(command, result)
        except Exception:
            _logger.warning("Handler for %s failed", command.name, exc_info=True)
