"""Status flags derived from ``vehicle_data`` and the human readable status line."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

from pyteslacar.models.vehicle import MILES_TO_KM, ChargingState, ServiceData, SoftwareUpdate, VehicleData

NOT_READY_MESSAGE = "Not ready for polling. Check settings."


class SoftwareStatus(enum.IntEnum):
    NONE = 0
    DOWNLOADING = 1
    READY = 2
    """Downloaded and waiting to be installed."""
    SCHEDULED = 3
    INSTALLING = 4

    @classmethod
    def from_update(cls, update: SoftwareUpdate) -> SoftwareStatus:
        status = update.status.lower()
        if status == "available":
            return cls.READY if update.download_perc >= 100 else cls.DOWNLOADING
        if status == "downloading":
            return cls.DOWNLOADING
        if status == "scheduled":
            return cls.SCHEDULED
        if status == "installing":
            return cls.INSTALLING
        return cls.NONE


@dataclass(frozen=True, slots=True)
class VehicleStatusFlags:
    """What the poller and the status line need to know about the car."""

    moving: bool = False
    locked: bool = True
    climate_on: bool = False
    sentry_mode: bool = False
    charging: bool = False
    remaining_charge_hours: float = 0.0
    software_status: SoftwareStatus = SoftwareStatus.NONE
    software_version: str = ""
    doors_open: bool = False
    windows_open: bool = False
    sunroof_open: bool = False
    battery_level: int | None = None
    battery_range: float | None = None
    """Range in ``distance_units``."""
    distance_units: str = "km"
    latitude: float | None = None
    longitude: float | None = None
    in_service: bool = False

    @property
    def software_pending(self) -> bool:
        return self.software_status != SoftwareStatus.NONE

    @classmethod
    def from_vehicle_data(cls, data: VehicleData, *, in_service: bool = False) -> VehicleStatusFlags:
        charge = data.charge_state
        vehicle = data.vehicle_state
        uses_miles = data.gui_settings.uses_miles
        charging = charge.charging_state == ChargingState.CHARGING

        battery_range = charge.battery_range
        if battery_range is not None and not uses_miles:
            battery_range = battery_range * MILES_TO_KM

        return cls(
            moving=data.drive_state.is_moving,
            locked=vehicle.locked,
            climate_on=data.climate_state.is_climate_on,
            sentry_mode=vehicle.sentry_mode,
            charging=charging,
            remaining_charge_hours=charge.time_to_full_charge if charging else 0.0,
            software_status=SoftwareStatus.from_update(vehicle.software_update),
            software_version=vehicle.software_update.version,
            doors_open=vehicle.doors_open,
            windows_open=vehicle.windows_open,
            sunroof_open=vehicle.sunroof_open,
            battery_level=charge.battery_level,
            battery_range=battery_range,
            distance_units="mi" if uses_miles else "km",
            latitude=data.drive_state.latitude,
            longitude=data.drive_state.longitude,
            in_service=in_service,
        )

    def with_service(self, service: ServiceData) -> VehicleStatusFlags:
        return replace(self, in_service=service.in_service)


def compose_status_message(flags: VehicleStatusFlags | None, *, ready: bool = True) -> str:
    """Synthesize the one-line status.

    The first matching condition wins: moving, charging, climate, doors,
    windows, unlocked, sunroof. Otherwise the remaining range is shown.
    """
    if not ready:
        return NOT_READY_MESSAGE
    if flags is None:
        return "Status unknown"

    checks = (
        (flags.moving, "Moving"),
        (flags.charging, "Charging On"),
        (flags.climate_on, "Climatizing On"),
        (flags.doors_open, "Doors Open"),
        (flags.windows_open, "Windows Open"),
        (not flags.locked, "Car Unlocked"),
        (flags.sunroof_open, "Sunroof Open"),
    )
    for active, message in checks:
        if active:
            return message
    if flags.battery_range is None:
        return "Range: unknown"
    return f"Range: {flags.battery_range:.0f} {flags.distance_units}"
