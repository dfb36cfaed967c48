"""Custom exception hierarchy for pyteslacar."""

from __future__ import annotations


class TeslaError(Exception):
    """Base exception for all pyteslacar errors."""


class TeslaConfigError(TeslaError):
    """Invalid or missing configuration (e.g. no credentials)."""


class TeslaTransportError(TeslaError):
    """HTTP-level failure (network, timeout, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class TeslaApiError(TeslaError):
    """The owner API answered with an error status or a failed result."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        reason: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(message)


class TeslaAuthenticationError(TeslaApiError):
    """Login, token refresh or token exchange failed."""


class TeslaTransientApiError(TeslaApiError):
    """Retryable API failure (408/502/504, ``could_not_wake_buses``)."""


class TeslaVehicleMissingError(TeslaTransientApiError):
    """Vehicle list empty (404) or unavailable because the car is in deep sleep (428)."""


class TeslaVehicleUnreachableError(TeslaApiError):
    """The vehicle did not come online within the wake-up budget."""


class TeslaCommandFailedError(TeslaApiError):
    """A command exhausted its retry budget.

    ``retries`` holds the number of retries consumed before giving up.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        reason: str = "",
        retries: int = 0,
    ) -> None:
        self.retries = retries
        super().__init__(message, status_code=status_code, endpoint=endpoint, reason=reason)
