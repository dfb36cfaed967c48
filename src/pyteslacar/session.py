"""Session state and durable token storage."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

_logger = logging.getLogger(__name__)


class Session(BaseModel):
    """OAuth session for the owner API.

    Parameters
    ----------
    access_token : str
        Bearer token sent with every owner API call. Empty once
        invalidated (e.g. after a 401); the refresh token is kept.
    refresh_token : str
        Token used to obtain a new access token without credentials.
    token_type : str
        Authorization scheme, normally ``"bearer"``.
    expires_at : float
        Wall-clock epoch seconds after which the access token is no
        longer used. Already includes the safety margin.
    created_at : float
        Wall-clock epoch seconds when the tokens were issued.
    client_id : str
        OAuth client the tokens belong to.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    access_token: str = ""
    refresh_token: str = ""
    token_type: str = "bearer"
    expires_at: float = 0.0
    created_at: float = Field(default_factory=time.time)
    client_id: str = ""

    def is_expired(self, now: float | None = None) -> bool:
        """Whether the access token is missing or past ``expires_at``."""
        if not self.access_token:
            return True
        current = time.time() if now is None else now
        return current >= self.expires_at

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        scheme = self.token_type.capitalize() if self.token_type else "Bearer"
        return f"{scheme} {self.access_token}"

    def without_access_token(self) -> Session:
        """Copy with the access token cleared but the refresh token kept."""
        return self.model_copy(update={"access_token": "", "expires_at": 0.0})


class TokenStore(Protocol):
    """Durable key/value storage for the session."""

    def get(self) -> Session | None:
        ...

    def set(self, session: Session | None) -> None:
        ...


class MemoryTokenStore:
    """Process-local :class:`TokenStore`."""

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    def get(self) -> Session | None:
        return self._session

    def set(self, session: Session | None) -> None:
        self._session = session


class JsonFileTokenStore:
    """:class:`TokenStore` persisting the session as a JSON document.

    An unreadable or corrupt file is treated as empty storage so a fresh
    login can recover from it.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> Session | None:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            _logger.warning("Could not read token store %s", self._path, exc_info=True)
            return None
        try:
            return Session.model_validate_json(text)
        except ValidationError:
            _logger.warning("Ignoring corrupt token store %s", self._path)
            return None

    def set(self, session: Session | None) -> None:
        if session is None:
            self._path.unlink(missing_ok=True)
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(session.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self._path)
