"""pyteslacar - Async Python client for the Tesla owner API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyteslacar")
except PackageNotFoundError:
    __version__ = "0+local"
from pyteslacar._api.commands import VehicleCommand
from pyteslacar._transport import AiohttpGateway, HttpGateway, HttpResponse
from pyteslacar.auth import AuthManager
from pyteslacar.client import TeslaClient
from pyteslacar.config import PollPolicy, TeslaConfig, WakeFailurePolicy, format_poll_settings, parse_poll_settings
from pyteslacar.dispatcher import CommandDispatcher
from pyteslacar.exceptions import (
    TeslaApiError,
    TeslaAuthenticationError,
    TeslaCommandFailedError,
    TeslaConfigError,
    TeslaError,
    TeslaTransientApiError,
    TeslaTransportError,
    TeslaVehicleMissingError,
    TeslaVehicleUnreachableError,
)
from pyteslacar.models import (
    Command,
    CommandResult,
    OnlineState,
    VehicleData,
    VehicleHandle,
    VehicleListing,
)
from pyteslacar.polling import PollCategory, PollDecision, PollingScheduler, decide_poll
from pyteslacar.retry import Outcome, classify_exception, classify_response
from pyteslacar.session import JsonFileTokenStore, MemoryTokenStore, Session, TokenStore
from pyteslacar.state import IngestionEvent, StateSection, StateStore, VehicleStateSink
from pyteslacar.status import SoftwareStatus, VehicleStatusFlags, compose_status_message
from pyteslacar.timers import AsyncioTaskScheduler, TaskScheduler
from pyteslacar.vehicle import VehicleSession
from pyteslacar.wake import WakeController, WakeStage

__all__ = [
    "__version__",
    "AiohttpGateway",
    "AsyncioTaskScheduler",
    "AuthManager",
    "Command",
    "CommandDispatcher",
    "CommandResult",
    "HttpGateway",
    "HttpResponse",
    "IngestionEvent",
    "JsonFileTokenStore",
    "MemoryTokenStore",
    "OnlineState",
    "Outcome",
    "PollCategory",
    "PollDecision",
    "PollPolicy",
    "PollingScheduler",
    "Session",
    "SoftwareStatus",
    "StateSection",
    "StateStore",
    "TaskScheduler",
    "TeslaApiError",
    "TeslaAuthenticationError",
    "TeslaClient",
    "TeslaCommandFailedError",
    "TeslaConfig",
    "TeslaConfigError",
    "TeslaError",
    "TeslaTransientApiError",
    "TeslaTransportError",
    "TeslaVehicleMissingError",
    "TeslaVehicleUnreachableError",
    "TokenStore",
    "VehicleCommand",
    "VehicleData",
    "VehicleHandle",
    "VehicleListing",
    "VehicleSession",
    "VehicleStateSink",
    "VehicleStatusFlags",
    "WakeController",
    "WakeFailurePolicy",
    "WakeStage",
    "classify_exception",
    "classify_response",
    "compose_status_message",
    "decide_poll",
    "format_poll_settings",
    "parse_poll_settings",
]
