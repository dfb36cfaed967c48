"""Per-vehicle session: owns the queue, wake controller, poller and status."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from pyteslacar._api import vehicles as _vehicles_api
from pyteslacar._api._common import build_headers
from pyteslacar._api.commands import CommandContext, VehicleCommand, build_command_request, build_payload, get_spec
from pyteslacar._transport import HttpGateway, HttpResponse
from pyteslacar.auth import AuthManager
from pyteslacar.config import TeslaConfig
from pyteslacar.dispatcher import DEFAULT_HANDLER, CommandDispatcher, CommandHandler
from pyteslacar.exceptions import TeslaConfigError, TeslaError, TeslaVehicleMissingError
from pyteslacar.models.command import Command, CommandResult
from pyteslacar.models.vehicle import ServiceData, VehicleData, VehicleHandle, VehicleListing
from pyteslacar.polling import PollingScheduler
from pyteslacar.state.events import events_from_service_data, events_from_vehicle_data
from pyteslacar.state.store import VehicleStateSink
from pyteslacar.status import NOT_READY_MESSAGE, VehicleStatusFlags, compose_status_message
from pyteslacar.timers import AsyncioTaskScheduler, Cancellable, TaskScheduler
from pyteslacar.wake import WakeController

_logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "Login failed, check credentials."


class VehicleSession:
    """Everything that belongs to one vehicle.

    Usage::

        session = VehicleSession(config, gateway, auth)
        if await session.start():
            result = await session.lock()
            await session.stop()

    Parameters
    ----------
    config : TeslaConfig
        Client configuration (``vin`` selects the vehicle).
    gateway : HttpGateway
        HTTP gateway used for owner API calls.
    auth : AuthManager
        Shared session/auth manager.
    timers : TaskScheduler, optional
        Host timer facility; an asyncio implementation is created when omitted.
    state_sink : VehicleStateSink, optional
        Receives parsed vehicle state.
    on_status : callable, optional
        Called with every new status message.
    sleep, clock
        Injected for tests.
    """

    def __init__(
        self,
        config: TeslaConfig,
        gateway: HttpGateway,
        auth: AuthManager,
        *,
        timers: TaskScheduler | None = None,
        state_sink: VehicleStateSink | None = None,
        on_status: Callable[[str], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._gateway = gateway
        self._auth = auth
        self._owns_timers = timers is None
        self._timers: TaskScheduler = timers if timers is not None else AsyncioTaskScheduler()
        self._state_sink = state_sink
        self._on_status = on_status
        self._sleep = sleep
        self._clock = clock

        self._handle: VehicleHandle | None = None
        self._listing: VehicleListing | None = None
        self._user_handlers: dict[str, CommandHandler] = {}
        self._follow_up: Cancellable | None = None
        self._status_message = NOT_READY_MESSAGE
        self.ready_to_poll = False
        self.flags: VehicleStatusFlags | None = None
        self.vehicle_data: VehicleData | None = None
        self.service_data: ServiceData | None = None

        self.wake = WakeController(
            self._fetch_listing,
            self._send_wake,
            config,
            sleep=sleep,
            clock=clock,
        )
        self.dispatcher = CommandDispatcher(
            auth,
            self.wake,
            self._execute,
            config,
            recheck_vehicle=self._recheck_vehicle,
            on_status=self._set_status,
            sleep=sleep,
        )
        self.poller = PollingScheduler(
            is_awake=self.wake.is_awake,
            woke_at=lambda: self.wake.woke_at,
            flags=lambda: self.flags,
            refresh=self.request_status_refresh,
            install_software=self._auto_install_software,
            timers=self._timers,
            config=config,
            ready=lambda: self.ready_to_poll,
            clock=clock,
        )

        self.dispatcher.register_handler(VehicleCommand.GET_VEHICLE_DETAILS, self._on_vehicle_details)
        self.dispatcher.register_handler(VehicleCommand.GET_SERVICE_DATA, self._on_service_data)
        self.dispatcher.register_handler(VehicleCommand.WAKE_UP, self._on_query)
        self.dispatcher.register_handler(DEFAULT_HANDLER, self._on_other)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def handle(self) -> VehicleHandle | None:
        return self._handle

    @property
    def vin(self) -> str | None:
        return self._handle.vin if self._handle is not None else self._config.vin

    @property
    def status_message(self) -> str:
        if not self.ready_to_poll:
            return NOT_READY_MESSAGE
        return self._status_message

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Authenticate, resolve the vehicle and start polling.

        Returns ``False`` (and stays idle) when configuration is missing or
        every login attempt failed.
        """
        attempts = max(1, self._config.login_attempts)
        for attempt in range(1, attempts + 1):
            try:
                await self._auth.ensure_valid_session()
                await self.resolve_vehicle()
                break
            except TeslaConfigError as exc:
                _logger.error("Not starting vehicle session: %s", exc)
                self._set_status(NOT_READY_MESSAGE)
                return False
            except TeslaError as exc:
                _logger.warning("Start attempt %d/%d failed: %s", attempt, attempts, exc)
                if attempt == attempts:
                    self._set_status(LOGIN_FAILED_MESSAGE)
                    return False
                await self._sleep(self._config.retry_delay)

        self.ready_to_poll = True
        self._set_status("Ready")
        if self._listing is not None and self._listing.is_online:
            self.wake.mark_awake()
            self.poller.note_awake()
        self.poller.start()
        self.request_status_refresh(False)
        _logger.info("Vehicle session started for %s", self.vin)
        return True

    async def stop(self) -> None:
        """Stop polling and fail anything still queued."""
        self.poller.stop()
        self._cancel_follow_up()
        await self.dispatcher.close()
        if self._owns_timers and isinstance(self._timers, AsyncioTaskScheduler):
            self._timers.cancel_all()

    async def reset(self) -> None:
        """Stop, revoke the tokens and forget the vehicle."""
        await self.stop()
        await self._auth.logoff()
        self.ready_to_poll = False
        self.flags = None
        self.vehicle_data = None
        self.service_data = None
        self._handle = None
        self._listing = None
        self._set_status(NOT_READY_MESSAGE)

    # ------------------------------------------------------------------
    # Vehicle resolution
    # ------------------------------------------------------------------

    async def list_vehicles(self) -> list[VehicleListing]:
        """Fetch the account's vehicle list (never wakes a vehicle)."""
        session = await self._auth.ensure_valid_session()
        response = await self._gateway.execute(
            "GET",
            _vehicles_api.vehicles_url(self._config.base_url),
            headers=build_headers(session),
        )
        return _vehicles_api.parse_vehicle_list(response)

    async def resolve_vehicle(self) -> VehicleHandle:
        """Select the configured vehicle; its id may change between calls."""
        listing = _vehicles_api.select_vehicle(await self.list_vehicles(), self._config.vin)
        if self._handle is not None and self._handle.vehicle_id != listing.id_s:
            _logger.info("Vehicle id changed from %s to %s", self._handle.vehicle_id, listing.id_s)
        self._listing = listing
        self._handle = _vehicles_api.to_handle(listing, self._config.base_url)
        return self._handle

    async def _fetch_listing(self) -> VehicleListing:
        await self.resolve_vehicle()
        assert self._listing is not None  # noqa: S101
        return self._listing

    async def _recheck_vehicle(self) -> None:
        """Bounded re-resolution after a 404/428."""
        attempts = max(1, self._config.vehicle_recheck_attempts)
        for attempt in range(1, attempts + 1):
            try:
                await self.resolve_vehicle()
                return
            except TeslaVehicleMissingError as exc:
                _logger.debug("Vehicle re-check %d/%d: %s", attempt, attempts, exc)
                if attempt == attempts:
                    raise
                await self._sleep(self._config.retry_delay)

    async def _require_handle(self) -> VehicleHandle:
        if self._handle is None:
            return await self.resolve_vehicle()
        return self._handle

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    def _context(self) -> CommandContext:
        flags = self.flags
        return CommandContext(
            latitude=flags.latitude if flags is not None else None,
            longitude=flags.longitude if flags is not None else None,
            standard_charge_limit=self._config.standard_charge_limit,
        )

    async def _execute(self, command: Command) -> HttpResponse:
        session = await self._auth.ensure_valid_session()
        handle = await self._require_handle()
        request = build_command_request(handle, command.name, command.parameters, self._context())
        return await self._gateway.execute(
            request.method,
            request.url,
            headers=build_headers(session),
            json_body=request.json_body,
        )

    async def _send_wake(self) -> None:
        session = await self._auth.ensure_valid_session()
        handle = await self._require_handle()
        request = build_command_request(handle, VehicleCommand.WAKE_UP)
        await self._gateway.execute(
            request.method,
            request.url,
            headers=build_headers(session),
            json_body=request.json_body,
        )

    def submit(self, name: str, parameters: Any = None) -> asyncio.Future[CommandResult]:
        """Validate and queue a catalog command.

        Raises :class:`ValueError` for unknown names or invalid parameters
        before anything is queued.
        """
        get_spec(name)
        build_payload(name, parameters, self._context())
        return self.dispatcher.submit(name, parameters)

    async def send(self, name: str, parameters: Any = None) -> CommandResult:
        """Queue a command and wait for its result."""
        return await self.submit(name, parameters)

    def register_handler(self, name: str, handler: CommandHandler) -> None:
        """Call *handler* after every result of *name* (``"other"`` catches the rest)."""
        self._user_handlers[str(name)] = handler

    # ------------------------------------------------------------------
    # Status refresh
    # ------------------------------------------------------------------

    def request_status_refresh(self, force: bool) -> bool:
        """Queue a status refresh unless one is already queued.

        An unforced refresh is skipped while the vehicle is believed asleep.
        """
        if not self.ready_to_poll:
            return False
        if not force and not self.poller.state.was_awake:
            _logger.debug("Vehicle asleep, unforced status refresh skipped")
            return False
        if VehicleCommand.GET_VEHICLE_DETAILS in self.dispatcher.pending:
            return False
        self._set_status("Updating vehicle status...")
        self.dispatcher.submit(VehicleCommand.GET_VEHICLE_DETAILS)
        self.dispatcher.submit(VehicleCommand.GET_SERVICE_DATA)
        return True

    async def refresh_status(self, force: bool = True) -> VehicleStatusFlags | None:
        """Fetch vehicle and service data now and return the new flags."""
        if not force and not await self.wake.is_awake():
            return self.flags
        details = self.dispatcher.submit(VehicleCommand.GET_VEHICLE_DETAILS)
        service = self.dispatcher.submit(VehicleCommand.GET_SERVICE_DATA)
        await asyncio.gather(details, service)
        return self.flags

    def _auto_install_software(self) -> None:
        if VehicleCommand.UPDATE_SOFTWARE in self.dispatcher.pending:
            return
        self.dispatcher.submit(VehicleCommand.UPDATE_SOFTWARE)

    def _follow_up_refresh(self) -> None:
        self._follow_up = None
        self.request_status_refresh(True)

    def _cancel_follow_up(self) -> None:
        if self._follow_up is not None:
            self._follow_up.cancel()
            self._follow_up = None

    def _schedule_follow_up(self, command: Command) -> None:
        """Refresh shortly after an action; a later action supersedes an earlier follow-up."""
        delay = self._config.poll_after_command_delay
        if command.name == VehicleCommand.SET_TEMPERATURE:
            delay *= 2
        self._cancel_follow_up()
        self._follow_up = self._timers.after(delay, self._follow_up_refresh)
        _logger.debug("Status refresh after %s in %ss", command.name, delay)

    # ------------------------------------------------------------------
    # Result handlers
    # ------------------------------------------------------------------

    def _set_status(self, message: str) -> None:
        self._status_message = message
        if self._on_status is not None:
            try:
                self._on_status(message)
            except Exception:
                _logger.debug("on_status callback failed", exc_info=True)

    def _notify(self, command: Command, result: CommandResult) -> None:
        handler = self._user_handlers.get(command.name) or self._user_handlers.get(DEFAULT_HANDLER)
        if handler is not None:
            handler(command, result)

    def _apply_events(self, events: list[Any]) -> None:
        if self._state_sink is None:
            return
        for event in events:
            self._state_sink.apply(event)

    def _on_vehicle_details(self, command: Command, result: CommandResult) -> None:
        if result.success and isinstance(result.data, dict):
            try:
                data = VehicleData.model_validate(result.data)
            except ValidationError:
                _logger.warning("Unexpected vehicle_data payload", exc_info=True)
            else:
                in_service = self.flags.in_service if self.flags is not None else False
                self.vehicle_data = data
                self.flags = VehicleStatusFlags.from_vehicle_data(data, in_service=in_service)
                self.poller.note_status()
                self.poller.note_awake()
                vin = data.vin or self.vin
                if vin:
                    self._apply_events(events_from_vehicle_data(vin, result.data))
                self._set_status(compose_status_message(self.flags))
        elif not result.success:
            self._set_status(result.message)
        self._notify(command, result)

    def _on_service_data(self, command: Command, result: CommandResult) -> None:
        if result.success and isinstance(result.data, dict):
            service = ServiceData.model_validate(result.data)
            self.service_data = service
            if self.flags is not None:
                self.flags = self.flags.with_service(service)
                self._set_status(compose_status_message(self.flags))
            vin = self.vin
            if vin:
                self._apply_events(events_from_service_data(vin, result.data))
        self._notify(command, result)

    def _on_query(self, command: Command, result: CommandResult) -> None:
        if result.success:
            self.poller.note_awake()
        self._notify(command, result)

    def _on_other(self, command: Command, result: CommandResult) -> None:
        if result.success:
            self.poller.note_awake()
            if not get_spec(command.name).query:
                self._schedule_follow_up(command)
            self._set_status(f"{command.name} done")
        else:
            self._set_status(result.message)
        self._notify(command, result)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def wake_up(self) -> CommandResult:
        """Send a wake-up request."""
        return await self.send(VehicleCommand.WAKE_UP)

    async def lock(self) -> CommandResult:
        """Lock the doors."""
        return await self.send(VehicleCommand.LOCK_DOORS)

    async def unlock(self) -> CommandResult:
        """Unlock the doors."""
        return await self.send(VehicleCommand.UNLOCK_DOORS)

    async def honk_horn(self) -> CommandResult:
        return await self.send(VehicleCommand.HONK_HORN)

    async def flash_lights(self) -> CommandResult:
        return await self.send(VehicleCommand.FLASH_LIGHTS)

    async def start_charging(self) -> CommandResult:
        return await self.send(VehicleCommand.START_CHARGE)

    async def stop_charging(self) -> CommandResult:
        return await self.send(VehicleCommand.STOP_CHARGE)

    async def set_charge_limit(self, percent: int) -> CommandResult:
        """Set the charge limit (50-100 %)."""
        return await self.send(VehicleCommand.SET_CHARGE_LIMIT, percent)

    async def set_max_charge_limit(self) -> CommandResult:
        return await self.send(VehicleCommand.SET_MAXIMUM_CHARGE_LIMIT)

    async def set_standard_charge_limit(self) -> CommandResult:
        """Set the charge limit to ``config.standard_charge_limit``."""
        return await self.send(VehicleCommand.SET_STANDARD_CHARGE_LIMIT)

    async def start_climate(self) -> CommandResult:
        return await self.send(VehicleCommand.START_CLIMATE)

    async def stop_climate(self) -> CommandResult:
        return await self.send(VehicleCommand.STOP_CLIMATE)

    async def set_temperature(self, temp_c: float) -> CommandResult:
        """Set driver and passenger temperature in °C."""
        return await self.send(VehicleCommand.SET_TEMPERATURE, temp_c)

    async def open_frunk(self) -> CommandResult:
        return await self.send(VehicleCommand.UNLOCK_FRUNK)

    async def open_trunk(self) -> CommandResult:
        return await self.send(VehicleCommand.UNLOCK_TRUNK)

    async def close_trunk(self) -> CommandResult:
        return await self.send(VehicleCommand.LOCK_TRUNK)

    async def open_charge_port(self) -> CommandResult:
        return await self.send(VehicleCommand.OPEN_CHARGE_PORT)

    async def close_charge_port(self) -> CommandResult:
        return await self.send(VehicleCommand.CLOSE_CHARGE_PORT)

    async def vent_windows(self) -> CommandResult:
        return await self.send(VehicleCommand.VENT_WINDOWS)

    async def close_windows(self) -> CommandResult:
        return await self.send(VehicleCommand.CLOSE_WINDOWS)

    async def vent_sunroof(self) -> CommandResult:
        return await self.send(VehicleCommand.VENT_SUNROOF)

    async def close_sunroof(self) -> CommandResult:
        return await self.send(VehicleCommand.CLOSE_SUNROOF)

    async def set_sentry_mode(self, enabled: bool) -> CommandResult:
        return await self.send(VehicleCommand.SET_SENTRY_MODE, enabled)

    async def schedule_software_update(self) -> CommandResult:
        """Install a downloaded software update in two minutes."""
        return await self.send(VehicleCommand.UPDATE_SOFTWARE)
