"""Deterministic in-memory state store.

This is the default :class:`VehicleStateSink`. Given the same sequence of
events it produces the same snapshots.
"""

from __future__ import annotations

import copy
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from pyteslacar.state.events import IngestionEvent, StateSection
from pyteslacar.state.policy import should_accept_update, should_overwrite


class VehicleStateSink(Protocol):
    """Receives parsed vehicle state from command handlers."""

    def apply(self, event: IngestionEvent) -> None:
        ...


def _merge_patch(target: dict[str, Any], patch: dict[str, Any]) -> None:
    """Keys in the patch overwrite; missing keys mean "no update"."""
    if patch:
        target.update(copy.deepcopy(patch))


def _merge_patch_fill_missing(target: dict[str, Any], patch: dict[str, Any]) -> None:
    """Apply a patch without overwriting existing keys.

    Older updates may carry fields we have not seen yet, but must not
    revert already-known values.
    """
    for key, value in patch.items():
        if key not in target:
            target[key] = copy.deepcopy(value)


class SectionSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data: dict[str, Any] = Field(default_factory=dict)
    payload_timestamp: float | None = None


class StateStore:
    """In-memory store for merged vehicle state, keyed by VIN."""

    def __init__(self, *, skew_allowance_seconds: float = 60.0) -> None:
        self._skew_allowance_seconds = skew_allowance_seconds
        self._vehicles: dict[str, dict[StateSection, SectionSnapshot]] = {}

    def apply(self, event: IngestionEvent) -> None:
        """Apply a normalized ingestion event."""
        sections = self._vehicles.setdefault(event.vin, {})
        snapshot = sections.setdefault(event.section, SectionSnapshot())
        incoming_ts = event.payload_timestamp

        if not should_accept_update(
            cached_payload_ts=snapshot.payload_timestamp,
            incoming_payload_ts=incoming_ts,
            skew_allowance_seconds=self._skew_allowance_seconds,
        ):
            return

        if should_overwrite(cached_payload_ts=snapshot.payload_timestamp, incoming_payload_ts=incoming_ts):
            _merge_patch(snapshot.data, event.data)
        else:
            _merge_patch_fill_missing(snapshot.data, event.data)

        # Never move the timestamp backwards.
        if incoming_ts is not None:
            snapshot.payload_timestamp = max(snapshot.payload_timestamp or incoming_ts, incoming_ts)

    def get_section(self, vin: str, section: StateSection) -> dict[str, Any]:
        """Copy of the merged view of one section (empty when unknown)."""
        snapshot = self._vehicles.get(vin, {}).get(section)
        return copy.deepcopy(snapshot.data) if snapshot is not None else {}

    def snapshot(self, vin: str) -> dict[str, dict[str, Any]]:
        """All known sections of *vin*, keyed by section name."""
        return {str(section): copy.deepcopy(snap.data) for section, snap in self._vehicles.get(vin, {}).items()}

    def clear(self, vin: str | None = None) -> None:
        if vin is None:
            self._vehicles.clear()
        else:
            self._vehicles.pop(vin, None)
