"""OAuth token response model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    """Body of a successful ``/oauth2/v3/token`` exchange.

    Parameters
    ----------
    access_token : str
        Bearer token for the owner API.
    refresh_token : str
        Token for later refresh exchanges. Some refresh responses omit
        it, in which case the previous one stays valid.
    token_type : str
        Authorization scheme.
    expires_in : int
        Lifetime of ``access_token`` in seconds.
    created_at : float or None
        Issue time in epoch seconds, when the server reports it.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(min_length=1)
    refresh_token: str = ""
    token_type: str = "bearer"
    expires_in: int = 8 * 3600
    created_at: float | None = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
