"""HTTP gateway with cookie management and timeout handling."""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Mapping
from http.cookies import SimpleCookie
from typing import Any, Protocol

import aiohttp

from pyteslacar._redact import redact_url
from pyteslacar.exceptions import TeslaTransportError

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class HttpResponse:
    """Status, body and headers of a completed request."""

    status: int
    text: str = ""
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)

    def json(self) -> Any:
        """Decode the body as JSON; an empty body decodes to ``{}``."""
        if not self.text.strip():
            return {}
        return json.loads(self.text)

    @property
    def location(self) -> str | None:
        """The ``Location`` header of a redirect, if any."""
        for key, value in self.headers.items():
            if key.lower() == "location":
                return value
        return None


class HttpGateway(Protocol):
    """Structural HTTP interface used by the auth manager and the dispatcher.

    Any object with a matching ``execute`` coroutine can stand in, which is
    how tests drive the whole engine against an in-process fake backend.
    Implementations raise :class:`TeslaTransportError` for network failures
    and timeouts; HTTP error statuses are returned, not raised.
    """

    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json_body: Mapping[str, Any] | None = None,
        form: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        allow_redirects: bool = True,
    ) -> HttpResponse:
        ...


class AiohttpGateway:
    """:class:`HttpGateway` backed by an :class:`aiohttp.ClientSession`.

    Cookies are captured from ``Set-Cookie`` and replayed by hand so the
    login flow keeps its state across the authorize/credentials steps
    even when redirects are not followed.
    """

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float = 60) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._cookies: dict[str, str] = {}
        self._cookie_header: str = ""

    def _update_cookies(self, headers: Any) -> None:
        """Extract Set-Cookie headers and store them."""
        changed = False
        for raw in headers.getall("Set-Cookie", []):
            cookie: SimpleCookie = SimpleCookie()
            cookie.load(raw)
            for key, morsel in cookie.items():
                if self._cookies.get(key) != morsel.value:
                    self._cookies[key] = morsel.value
                    changed = True

        if changed:
            self._cookie_header = "; ".join(f"{k}={v}" for k, v in self._cookies.items())

    def clear_cookies(self) -> None:
        """Forget captured cookies (between login attempts)."""
        self._cookies.clear()
        self._cookie_header = ""

    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json_body: Mapping[str, Any] | None = None,
        form: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        allow_redirects: bool = True,
    ) -> HttpResponse:
        request_headers: dict[str, str] = {"accept-encoding": "gzip, deflate"}
        if headers:
            request_headers.update(headers)
        if self._cookie_header:
            request_headers["cookie"] = self._cookie_header

        kwargs: dict[str, Any] = {
            "headers": request_headers,
            "params": dict(params) if params else None,
            "allow_redirects": allow_redirects,
            "timeout": self._timeout,
        }
        if json_body is not None:
            kwargs["json"] = dict(json_body)
        elif form is not None:
            kwargs["data"] = dict(form)

        _logger.debug("%s %s", method, redact_url(url))

        try:
            async with self._http.request(method, url, **kwargs) as resp:
                self._update_cookies(resp.headers)
                text = await resp.text()
                response = HttpResponse(
                    status=resp.status,
                    text=text,
                    headers={k: v for k, v in resp.headers.items()},
                )
        except TimeoutError as exc:
            raise TeslaTransportError(
                f"{method} {redact_url(url)} timed out after {self._timeout.total}s",
                endpoint=redact_url(url),
            ) from exc
        except aiohttp.ClientError as exc:
            raise TeslaTransportError(
                f"Request to {redact_url(url)} failed: {exc}",
                endpoint=redact_url(url),
            ) from exc

        _logger.debug("%s %s -> HTTP %d", method, redact_url(url), response.status)
        return response
