"""Vehicle list endpoint.

Endpoint:
  - GET /api/1/vehicles
"""

from __future__ import annotations

import logging

from pyteslacar._api._common import raise_for_status
from pyteslacar._constants import VEHICLES_PATH
from pyteslacar._transport import HttpResponse
from pyteslacar.exceptions import TeslaVehicleMissingError
from pyteslacar.models.vehicle import VehicleHandle, VehicleListing

_logger = logging.getLogger(__name__)


def vehicles_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}{VEHICLES_PATH}"


def parse_vehicle_list(response: HttpResponse) -> list[VehicleListing]:
    """Decode the vehicle list.

    Raises
    ------
    TeslaVehicleMissingError
        ``status_code=404`` when the account has no vehicles,
        ``status_code=428`` when ``count`` is absent, which the API does
        while the car is in deep sleep.
    """
    body = raise_for_status(response, endpoint=VEHICLES_PATH)
    count = body.get("count")
    if count is None:
        raise TeslaVehicleMissingError(
            "Vehicle in deep sleep.",
            status_code=428,
            endpoint=VEHICLES_PATH,
        )
    entries = body.get("response") or []
    _logger.debug("Vehicle list returned %s entries", count)
    if count == 0 or not entries:
        raise TeslaVehicleMissingError(
            "No vehicles found.",
            status_code=404,
            endpoint=VEHICLES_PATH,
        )
    return [VehicleListing.model_validate(entry) for entry in entries if isinstance(entry, dict)]


def select_vehicle(listings: list[VehicleListing], vin: str | None) -> VehicleListing:
    """Pick the listing matching *vin*, or the first one when no VIN is configured."""
    if not listings:
        raise TeslaVehicleMissingError("No vehicles found.", status_code=404, endpoint=VEHICLES_PATH)
    if not vin:
        return listings[0]
    wanted = vin.strip().upper()
    for listing in listings:
        if listing.vin.upper() == wanted:
            return listing
    raise TeslaVehicleMissingError(
        f"Vehicle with VIN {vin} not found on account",
        status_code=404,
        endpoint=VEHICLES_PATH,
    )


def to_handle(listing: VehicleListing, base_url: str) -> VehicleHandle:
    return VehicleHandle(vehicle_id=listing.id_s, vin=listing.vin, api_base_url=base_url)
