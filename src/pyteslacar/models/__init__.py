"""Data models for owner API responses and queued commands."""

from pyteslacar.models._base import TeslaBaseModel, TeslaEnum
from pyteslacar.models.command import Command, CommandResult
from pyteslacar.models.token import TokenResponse
from pyteslacar.models.vehicle import (
    MILES_TO_KM,
    ChargeState,
    ChargingState,
    ClimateState,
    DriveState,
    GuiSettings,
    OnlineState,
    ServiceData,
    SoftwareUpdate,
    VehicleData,
    VehicleHandle,
    VehicleListing,
    VehicleState,
)

__all__ = [
    "MILES_TO_KM",
    "ChargeState",
    "ChargingState",
    "ClimateState",
    "Command",
    "CommandResult",
    "DriveState",
    "GuiSettings",
    "OnlineState",
    "ServiceData",
    "SoftwareUpdate",
    "TeslaBaseModel",
    "TeslaEnum",
    "TokenResponse",
    "VehicleData",
    "VehicleHandle",
    "VehicleListing",
    "VehicleState",
]
