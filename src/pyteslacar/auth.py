"""Session/auth manager: keeps a valid owner API access token at hand."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from pyteslacar._api import login as _login_api
from pyteslacar._api._common import build_headers
from pyteslacar._constants import AUTHORIZE_PATH, REVOKE_PATH, TOKEN_PATH
from pyteslacar._transport import HttpGateway
from pyteslacar.config import TeslaConfig
from pyteslacar.exceptions import TeslaAuthenticationError, TeslaConfigError, TeslaTransportError
from pyteslacar.models.token import TokenResponse
from pyteslacar.session import Session, TokenStore

_logger = logging.getLogger(__name__)

MISSING_CREDENTIALS_MESSAGE = "Missing email and/or password"


class AuthManager:
    """Obtain, refresh and persist the OAuth session.

    ``ensure_valid_session`` is the only entry point the dispatcher uses.
    A valid cached token costs no network call; an expired one is
    refreshed; a failed refresh falls back to a full login. Every
    successful change is written to the token store.
    """

    def __init__(
        self,
        config: TeslaConfig,
        gateway: HttpGateway,
        store: TokenStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._gateway = gateway
        self._store = store
        self._clock = clock
        self._lock = asyncio.Lock()
        self._session: Session | None = store.get()
        if self._session is None and config.refresh_token:
            self._session = Session(refresh_token=config.refresh_token, client_id=config.client_id, created_at=clock())

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def has_valid_token(self) -> bool:
        return self._session is not None and not self._session.is_expired(self._clock())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ensure_valid_session(self, force_full_login: bool = False) -> Session:
        """Return a session with a usable access token.

        Raises
        ------
        TeslaAuthenticationError
            Refresh and login were both rejected.
        TeslaConfigError
            A full login is needed but no credentials are configured.
        TeslaTransportError
            The identity provider could not be reached.
        """
        async with self._lock:
            session = self._session
            if not force_full_login and session is not None and not session.is_expired(self._clock()):
                return session

            if not force_full_login and session is not None and session.refresh_token:
                try:
                    return await self._refresh(session.refresh_token)
                except TeslaAuthenticationError as exc:
                    _logger.warning("Token refresh rejected, falling back to full login: %s", exc)

            return await self._login()

    async def login(self) -> Session:
        """Force a full credentials login."""
        async with self._lock:
            return await self._login()

    def invalidate(self) -> None:
        """Drop the access token; the next call refreshes it."""
        if self._session is not None:
            self._session = self._session.without_access_token()
            self._store.set(self._session)

    async def logoff(self) -> None:
        """Revoke the access token and forget the session."""
        session = self._session
        self._clear()
        if session is None or not session.access_token:
            return
        url = f"{self._config.base_url.rstrip('/')}{REVOKE_PATH}"
        try:
            response = await self._gateway.execute(
                "POST",
                url,
                headers=build_headers(session),
                json_body=_login_api.build_revoke_body(session.access_token),
            )
        except TeslaTransportError:
            _logger.warning("Token revoke request failed", exc_info=True)
            return
        if response.status != 200:
            _logger.warning("Token revoke returned HTTP %d", response.status)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _auth_url(self, path: str) -> str:
        return f"{self._config.auth_base_url.rstrip('/')}{path}"

    def _clear(self) -> None:
        self._session = None
        self._store.set(None)

    def _store_tokens(self, token: TokenResponse, previous_refresh: str = "") -> Session:
        issued_at = token.created_at if token.created_at is not None else self._clock()
        margin = min(self._config.token_expiry_margin, token.expires_in / 2)
        session = Session(
            access_token=token.access_token,
            refresh_token=token.refresh_token or previous_refresh,
            token_type=token.token_type,
            expires_at=issued_at + token.expires_in - margin,
            created_at=issued_at,
            client_id=self._config.client_id,
        )
        self._session = session
        self._store.set(session)
        _logger.debug("Access token valid until %.0f", session.expires_at)
        return session

    async def _refresh(self, refresh_token: str) -> Session:
        _logger.debug("Refreshing access token")
        response = await self._gateway.execute(
            "POST",
            self._auth_url(TOKEN_PATH),
            headers=build_headers(),
            json_body=_login_api.build_refresh_body(self._config, refresh_token),
        )
        token = _login_api.parse_token_response(response, endpoint=TOKEN_PATH)
        _logger.info("Access token refreshed")
        return self._store_tokens(token, previous_refresh=refresh_token)

    async def _login(self) -> Session:
        if not self._config.has_credentials:
            self._clear()
            raise TeslaConfigError(MISSING_CREDENTIALS_MESSAGE)

        try:
            session = await self._authorization_code_login()
        except (TeslaAuthenticationError, TeslaTransportError):
            self._clear()
            raise
        _logger.info("Logged in as %s", self._config.email)
        return session

    async def _authorization_code_login(self) -> Session:
        pkce = _login_api.generate_pkce()
        params = _login_api.build_authorize_params(self._config, pkce)
        authorize_url = self._auth_url(AUTHORIZE_PATH)

        page = await self._gateway.execute("GET", authorize_url, params=params)
        if page.status != 200:
            raise TeslaAuthenticationError(
                f"Login page request failed: HTTP {page.status}",
                status_code=page.status,
                endpoint=AUTHORIZE_PATH,
            )
        hidden = _login_api.parse_hidden_inputs(page.text)

        redirect = await self._gateway.execute(
            "POST",
            authorize_url,
            params=params,
            form=_login_api.build_credentials_form(self._config, hidden),
            allow_redirects=False,
        )
        code = _login_api.extract_authorization_code(redirect, pkce)

        response = await self._gateway.execute(
            "POST",
            self._auth_url(TOKEN_PATH),
            headers=build_headers(),
            json_body=_login_api.build_code_exchange_body(self._config, pkce, code),
        )
        token = _login_api.parse_token_response(response, endpoint=TOKEN_PATH)
        return self._store_tokens(token)
