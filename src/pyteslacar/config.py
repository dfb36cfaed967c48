"""Client configuration for pyteslacar."""

from __future__ import annotations

import dataclasses
import datetime as dt
import os
from enum import StrEnum
from typing import Any

from pyteslacar._constants import AUTH_BASE_URL, BASE_URL, OAUTH_CLIENT_ID
from pyteslacar.exceptions import TeslaConfigError

#: Legacy comma-joined poll settings: daily flag, then idle, charging long,
#: charging short, active and moving intervals in minutes.
DEFAULT_POLL_SETTINGS = "1,20,15,5,5,1"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def parse_time_of_day(value: str) -> dt.time:
    """Parse ``"H:MM"`` (24h) into a :class:`datetime.time`.

    Raises :class:`TeslaConfigError` on malformed input.
    """
    try:
        hours_text, minutes_text = value.strip().split(":", 1)
        return dt.time(int(hours_text), int(minutes_text))
    except ValueError as exc:
        raise TeslaConfigError(f"Invalid time of day {value!r}, expected H:MM") from exc


class WakeFailurePolicy(StrEnum):
    """What happens to queued commands when the vehicle cannot be woken."""

    DROP_QUEUE = "drop_queue"
    DROP_HEAD = "drop_head"


@dataclasses.dataclass(frozen=True)
class PollPolicy:
    """Polling intervals in seconds per vehicle activity category.

    Parameters
    ----------
    idle : float
        Vehicle awake but otherwise inactive.
    charging_long : float
        Charging with more than an hour remaining.
    charging_short : float
        Charging with an hour or less remaining.
    active : float
        Recently woken, unlocked, climate/sentry on or software pending.
    moving : float
        Shift state is not park.
    default : float
        Fallback when no category applies or a configured interval is 0.
    tick_interval : float
        Period of the scheduler tick.
    """

    idle: float = 20 * 60
    charging_long: float = 15 * 60
    charging_short: float = 5 * 60
    active: float = 5 * 60
    moving: float = 1 * 60
    default: float = 15 * 60
    tick_interval: float = 60

    def effective(self, interval: float) -> float:
        """Return *interval*, or :attr:`default` when it is not positive."""
        return interval if interval > 0 else self.default


def parse_poll_settings(value: str) -> tuple[bool, PollPolicy]:
    """Convert the legacy ``"1,20,15,5,5,1"`` string into ``(daily, PollPolicy)``.

    Empty or missing fields keep their defaults. Non-numeric fields raise
    :class:`TeslaConfigError`.
    """
    parts = [p.strip() for p in value.split(",")]
    try:
        numbers = [int(p) if p else None for p in parts]
    except ValueError as exc:
        raise TeslaConfigError(f"Invalid poll settings {value!r}") from exc

    daily = bool(numbers[0]) if numbers[0] is not None else True
    names = ("idle", "charging_long", "charging_short", "active", "moving")
    kwargs: dict[str, float] = {}
    for name, minute_value in zip(names, numbers[1:], strict=False):
        if minute_value is not None:
            kwargs[name] = float(minute_value * 60)
    return daily, dataclasses.replace(PollPolicy(), **kwargs)


def format_poll_settings(daily: bool, policy: PollPolicy) -> str:
    """Inverse of :func:`parse_poll_settings`."""
    minutes = [
        policy.idle,
        policy.charging_long,
        policy.charging_short,
        policy.active,
        policy.moving,
    ]
    return ",".join([str(int(daily))] + [str(int(m // 60)) for m in minutes])


@dataclasses.dataclass(frozen=True)
class TeslaConfig:
    """Client configuration.

    Parameters
    ----------
    email : str
        Tesla account email. Required for a full login.
    password : str
        Tesla account password. Required for a full login.
    refresh_token : str or None
        Pre-obtained refresh token used to seed an empty token store.
    vin : str or None
        Vehicle to control. The first listed vehicle is used when unset.
    base_url : str
        Owner API base URL.
    auth_base_url : str
        Identity provider base URL (``/oauth2/v3`` lives below it).
    client_id : str
        OAuth client id for the v3 authorization-code flow.
    token_expiry_margin : float
        Seconds subtracted from ``expires_in`` so tokens are renewed early.
    retry_delay : float
        Seconds between retries of a transient failure.
    max_retries : int
        Retries per command before it is failed.
    wake_check_interval : float
        Seconds between vehicle state checks while waking.
    max_wake_attempts : int
        State checks before the wake sequence gives up.
    wake_resend_every : int
        Re-send the wake request every N state checks.
    send_interval : float
        Pause between consecutive commands of one drain run.
    http_timeout : float
        Total timeout for a single HTTP request.
    awake_cache_seconds : float
        How long a confirmed "online" state is trusted without re-checking.
    vehicle_recheck_attempts : int
        Vehicle list lookups after a 404/428 before the car counts as gone.
    login_attempts : int
        Start-up authentication attempts before the session stays idle.
    wake_failure_policy : WakeFailurePolicy
        Whether a failed wake-up drops the whole queue or just its head.
    poll_policy : PollPolicy
        Adaptive polling intervals.
    daily_poll_enabled : bool
        Poll once a day at ``daily_poll_time`` even when asleep.
    daily_poll_time : datetime.time
        Local time of the daily poll.
    poll_after_command_delay : float
        Delay before the follow-up status refresh after an action command.
    standard_charge_limit : int
        Percent used by the ``setStandardChargeLimit`` command.
    auto_software_install : bool
        Schedule a downloaded software update automatically.
    token_store_path : str or None
        JSON file used to persist the session across restarts.
    """

    email: str = ""
    password: str = ""
    refresh_token: str | None = None
    vin: str | None = None
    base_url: str = BASE_URL
    auth_base_url: str = AUTH_BASE_URL
    client_id: str = OAUTH_CLIENT_ID
    token_expiry_margin: float = 3600
    retry_delay: float = 5
    max_retries: int = 10
    wake_check_interval: float = 10
    max_wake_attempts: int = 25
    wake_resend_every: int = 5
    send_interval: float = 1
    http_timeout: float = 60
    awake_cache_seconds: float = 50
    vehicle_recheck_attempts: int = 3
    login_attempts: int = 5
    wake_failure_policy: WakeFailurePolicy = WakeFailurePolicy.DROP_QUEUE
    poll_policy: PollPolicy = dataclasses.field(default_factory=PollPolicy)
    daily_poll_enabled: bool = True
    daily_poll_time: dt.time = dt.time(7, 30)
    poll_after_command_delay: float = 10
    standard_charge_limit: int = 90
    auto_software_install: bool = False
    token_store_path: str | None = None

    def __post_init__(self) -> None:
        if not 50 <= self.standard_charge_limit <= 100:
            raise TeslaConfigError(
                f"standard_charge_limit must be between 50 and 100, got {self.standard_charge_limit}"
            )

    @property
    def has_credentials(self) -> bool:
        """Whether email and password are both set."""
        return bool(self.email and self.password)

    @classmethod
    def from_env(cls, **overrides: Any) -> TeslaConfig:
        """Create configuration from environment variables.

        Reads ``TESLA_EMAIL``, ``TESLA_PASSWORD`` and the optional
        ``TESLA_*`` variables below. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TeslaConfig
            Populated configuration.
        """
        env = os.environ
        kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "TESLA_EMAIL": "email",
            "TESLA_PASSWORD": "password",
            "TESLA_REFRESH_TOKEN": "refresh_token",
            "TESLA_VIN": "vin",
            "TESLA_BASE_URL": "base_url",
            "TESLA_AUTH_BASE_URL": "auth_base_url",
            "TESLA_CLIENT_ID": "client_id",
            "TESLA_TOKEN_STORE": "token_store_path",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val:
                kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "TESLA_RETRY_DELAY": "retry_delay",
            "TESLA_WAKE_CHECK_INTERVAL": "wake_check_interval",
            "TESLA_SEND_INTERVAL": "send_interval",
            "TESLA_HTTP_TIMEOUT": "http_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                kwargs[field_name] = float(val)

        _ENV_INT_MAP = {
            "TESLA_MAX_RETRIES": "max_retries",
            "TESLA_MAX_WAKE_ATTEMPTS": "max_wake_attempts",
            "TESLA_STANDARD_CHARGE_LIMIT": "standard_charge_limit",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                kwargs[field_name] = int(val)

        poll_settings = env.get("TESLA_POLL_SETTINGS")
        if poll_settings:
            daily, policy = parse_poll_settings(poll_settings)
            kwargs["daily_poll_enabled"] = daily
            kwargs["poll_policy"] = policy

        daily_time = env.get("TESLA_DAILY_POLL_TIME")
        if daily_time:
            kwargs["daily_poll_time"] = parse_time_of_day(daily_time)

        wake_policy = env.get("TESLA_WAKE_FAILURE_POLICY")
        if wake_policy:
            try:
                kwargs["wake_failure_policy"] = WakeFailurePolicy(wake_policy.strip().lower())
            except ValueError as exc:
                raise TeslaConfigError(f"Unknown wake failure policy {wake_policy!r}") from exc

        kwargs["auto_software_install"] = _env_bool(env.get("TESLA_AUTO_SOFTWARE_INSTALL"), False)

        kwargs.update(overrides)
        return cls(**kwargs)
