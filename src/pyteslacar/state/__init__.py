"""State/store layer.

Handlers turn owner API responses into :class:`IngestionEvent` patches; the
store merges them into a per-vehicle snapshot, keeping newer data when
responses arrive out of order.
"""

from pyteslacar.state.events import IngestionEvent, StateSection, events_from_service_data, events_from_vehicle_data
from pyteslacar.state.store import StateStore, VehicleStateSink

__all__ = [
    "IngestionEvent",
    "StateSection",
    "StateStore",
    "VehicleStateSink",
    "events_from_service_data",
    "events_from_vehicle_data",
]
