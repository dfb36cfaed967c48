"""Vehicle list and vehicle data models.

Only the subset of ``vehicle_data`` needed for status flags and polling
decisions is modelled. Everything else stays available through ``raw``.
"""

from __future__ import annotations

from pydantic import Field

from pyteslacar.models._base import TeslaBaseModel, TeslaEnum

MILES_TO_KM = 1.609344


class OnlineState(TeslaEnum):
    """Network state reported in the vehicle list."""

    ONLINE = "online"
    ASLEEP = "asleep"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class ChargingState(TeslaEnum):
    CHARGING = "charging"
    COMPLETE = "complete"
    STOPPED = "stopped"
    DISCONNECTED = "disconnected"
    NO_POWER = "nopower"
    STARTING = "starting"
    UNKNOWN = "unknown"


class VehicleListing(TeslaBaseModel):
    """One entry of ``GET /api/1/vehicles``."""

    id_s: str = ""
    """String form of the vehicle id used in URLs."""
    vehicle_id: int | None = None
    vin: str = ""
    display_name: str = ""
    state: OnlineState = OnlineState.UNKNOWN

    @property
    def is_online(self) -> bool:
        return self.state == OnlineState.ONLINE


class VehicleHandle(TeslaBaseModel):
    """The vehicle the session talks to.

    The id may change between vehicle list calls, so the handle is
    re-resolved whenever the awake state is checked.
    """

    vehicle_id: str
    vin: str = ""
    api_base_url: str

    @property
    def vehicle_url(self) -> str:
        """Base URL of per-vehicle endpoints, with trailing slash."""
        return f"{self.api_base_url.rstrip('/')}/api/1/vehicles/{self.vehicle_id}/"


class ChargeState(TeslaBaseModel):
    charging_state: ChargingState = ChargingState.UNKNOWN
    battery_level: int | None = None
    battery_range: float | None = None
    """Rated range in miles."""
    charge_limit_soc: int | None = None
    time_to_full_charge: float = 0.0
    """Hours until the charge limit is reached."""
    charge_port_door_open: bool = False
    charger_power: float | None = None
    timestamp: int | None = None


class ClimateState(TeslaBaseModel):
    is_climate_on: bool = False
    inside_temp: float | None = None
    outside_temp: float | None = None
    driver_temp_setting: float | None = None
    passenger_temp_setting: float | None = None
    min_avail_temp: float | None = None
    max_avail_temp: float | None = None
    is_preconditioning: bool = False
    timestamp: int | None = None


class DriveState(TeslaBaseModel):
    shift_state: str | None = None
    speed: float | None = None
    latitude: float | None = None
    longitude: float | None = None
    heading: int | None = None
    timestamp: int | None = None

    @property
    def is_moving(self) -> bool:
        """Any shift state other than park counts as moving."""
        return bool(self.shift_state) and self.shift_state != "P"


class SoftwareUpdate(TeslaBaseModel):
    status: str = ""
    download_perc: int = 0
    install_perc: int = 0
    version: str = ""


class VehicleState(TeslaBaseModel):
    locked: bool = True
    sentry_mode: bool = False
    odometer: float | None = None
    car_version: str = ""
    api_version: int | None = None
    is_user_present: bool = False
    df: int = 0
    dr: int = 0
    pf: int = 0
    pr: int = 0
    ft: int = 0
    rt: int = 0
    fd_window: int = 0
    fp_window: int = 0
    rd_window: int = 0
    rp_window: int = 0
    sun_roof_state: str = ""
    sun_roof_percent_open: int | None = None
    software_update: SoftwareUpdate = Field(default_factory=SoftwareUpdate)
    timestamp: int | None = None

    @property
    def doors_open(self) -> bool:
        return any((self.df, self.dr, self.pf, self.pr))

    @property
    def windows_open(self) -> bool:
        return any((self.fd_window, self.fp_window, self.rd_window, self.rp_window))

    @property
    def sunroof_open(self) -> bool:
        if self.sun_roof_percent_open is not None:
            return self.sun_roof_percent_open > 0
        return self.sun_roof_state.lower() not in ("", "closed", "unknown")


class GuiSettings(TeslaBaseModel):
    gui_distance_units: str = "km/hr"
    gui_temperature_units: str = "C"
    gui_range_display: str = ""

    @property
    def uses_miles(self) -> bool:
        return self.gui_distance_units.startswith("mi")


class VehicleData(TeslaBaseModel):
    """``GET vehicle_data`` response body (inside ``response``)."""

    id_s: str = ""
    vin: str = ""
    display_name: str = ""
    state: OnlineState = OnlineState.UNKNOWN
    charge_state: ChargeState = Field(default_factory=ChargeState)
    climate_state: ClimateState = Field(default_factory=ClimateState)
    drive_state: DriveState = Field(default_factory=DriveState)
    vehicle_state: VehicleState = Field(default_factory=VehicleState)
    gui_settings: GuiSettings = Field(default_factory=GuiSettings)


class ServiceData(TeslaBaseModel):
    """``GET service_data`` response body."""

    service_status: str = ""
    service_etc: str = ""

    @property
    def in_service(self) -> bool:
        return self.service_status == "in_service"
