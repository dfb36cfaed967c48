"""Normalized ingestion events."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Owner API section timestamps are epoch milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


class StateSection(StrEnum):
    CHARGE = "charge_state"
    CLIMATE = "climate_state"
    DRIVE = "drive_state"
    VEHICLE = "vehicle_state"
    GUI = "gui_settings"
    SERVICE = "service"


class IngestionEvent(BaseModel):
    """A normalized update to apply to the state store."""

    model_config = ConfigDict(frozen=True)

    vin: str = Field(..., description="Vehicle VIN")
    section: StateSection
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    payload_timestamp: float | None = Field(
        default=None,
        description="Timestamp (epoch seconds) from the payload, if any.",
    )
    data: dict[str, Any] = Field(default_factory=dict, description="Normalized patch data")

    @field_validator("vin")
    @classmethod
    def _normalize_vin(cls, value: str) -> str:
        vin = value.strip()
        if not vin:
            raise ValueError("vin must be non-empty")
        return vin

    @field_validator("payload_timestamp", mode="before")
    @classmethod
    def _to_seconds(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and value >= _MS_THRESHOLD:
            return value / 1000
        return value


def _prune(section: dict[str, Any]) -> dict[str, Any]:
    """Drop ``None`` and the ``<invalid>`` placeholder so they never overwrite known values."""
    return {k: v for k, v in section.items() if v is not None and v != "<invalid>"}


def events_from_vehicle_data(vin: str, response: dict[str, Any]) -> list[IngestionEvent]:
    """Split a ``vehicle_data`` response into one event per section present."""
    events: list[IngestionEvent] = []
    for section in (
        StateSection.CHARGE,
        StateSection.CLIMATE,
        StateSection.DRIVE,
        StateSection.VEHICLE,
        StateSection.GUI,
    ):
        payload = response.get(section.value)
        if not isinstance(payload, dict):
            continue
        events.append(
            IngestionEvent(
                vin=vin,
                section=section,
                payload_timestamp=payload.get("timestamp"),
                data=_prune(payload),
            )
        )
    return events


def events_from_service_data(vin: str, response: dict[str, Any]) -> list[IngestionEvent]:
    if not response:
        return []
    return [IngestionEvent(vin=vin, section=StateSection.SERVICE, data=_prune(response))]
