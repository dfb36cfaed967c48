"""High-level async client for the Tesla owner API."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

import aiohttp

from pyteslacar._api import vehicles as _vehicles_api
from pyteslacar._api._common import build_headers
from pyteslacar._transport import AiohttpGateway, HttpGateway
from pyteslacar.auth import AuthManager
from pyteslacar.config import TeslaConfig
from pyteslacar.exceptions import TeslaError
from pyteslacar.models.vehicle import VehicleListing
from pyteslacar.session import JsonFileTokenStore, MemoryTokenStore, Session, TokenStore
from pyteslacar.state.store import VehicleStateSink
from pyteslacar.timers import TaskScheduler
from pyteslacar.vehicle import VehicleSession

_logger = logging.getLogger(__name__)


class TeslaClient:
    """Async client for the Tesla owner API.

    Usage::

        async with TeslaClient(TeslaConfig.from_env()) as client:
            vehicle = client.vehicle()
            if await vehicle.start():
                await vehicle.lock()
    """

    def __init__(
        self,
        config: TeslaConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        gateway: HttpGateway | None = None,
        token_store: TokenStore | None = None,
        state_sink: VehicleStateSink | None = None,
        timers: TaskScheduler | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._gateway = gateway
        self._external_gateway = gateway is not None
        self._token_store = token_store
        self._state_sink = state_sink
        self._timers = timers
        self._auth: AuthManager | None = None
        self._vehicles: dict[str, VehicleSession] = {}

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TeslaClient:
        if self._gateway is None:
            if self._http_session is None:
                # Cookies are managed by the gateway itself.
                self._http_session = aiohttp.ClientSession(cookie_jar=aiohttp.DummyCookieJar())
            self._gateway = AiohttpGateway(self._http_session, timeout=self._config.http_timeout)
        if self._token_store is None:
            if self._config.token_store_path:
                self._token_store = JsonFileTokenStore(self._config.token_store_path)
            else:
                self._token_store = MemoryTokenStore()
        self._auth = AuthManager(self._config, self._gateway, self._token_store)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        for vehicle in self._vehicles.values():
            await vehicle.stop()
        self._vehicles.clear()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_gateway:
            self._gateway = None
        self._auth = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_auth(self) -> AuthManager:
        if self._auth is None:
            raise TeslaError("Client not initialized. Use 'async with TeslaClient(...) as client:'")
        return self._auth

    def _require_gateway(self) -> HttpGateway:
        if self._gateway is None:
            raise TeslaError("Client not initialized. Use 'async with TeslaClient(...) as client:'")
        return self._gateway

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def auth(self) -> AuthManager:
        return self._require_auth()

    async def login(self) -> Session:
        """Ensure a valid session, logging in if needed."""
        return await self._require_auth().ensure_valid_session()

    async def logoff(self) -> None:
        """Revoke the tokens and stop every vehicle session."""
        for vehicle in self._vehicles.values():
            await vehicle.stop()
        self._vehicles.clear()
        await self._require_auth().logoff()

    async def get_vehicles(self) -> list[VehicleListing]:
        """Fetch all vehicles associated with the account."""
        auth = self._require_auth()
        session = await auth.ensure_valid_session()
        response = await self._require_gateway().execute(
            "GET",
            _vehicles_api.vehicles_url(self._config.base_url),
            headers=build_headers(session),
        )
        return _vehicles_api.parse_vehicle_list(response)

    def vehicle(self, vin: str | None = None) -> VehicleSession:
        """Return the (cached) :class:`VehicleSession` for *vin* or the configured vehicle."""
        key = vin or self._config.vin or ""
        existing = self._vehicles.get(key)
        if existing is not None:
            return existing
        config = dataclasses.replace(self._config, vin=vin) if vin else self._config
        vehicle = VehicleSession(
            config,
            self._require_gateway(),
            self._require_auth(),
            timers=self._timers,
            state_sink=self._state_sink,
        )
        self._vehicles[key] = vehicle
        return vehicle
