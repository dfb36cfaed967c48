"""Deterministic state merge policy."""

from __future__ import annotations


def should_accept_update(
    *,
    cached_payload_ts: float | None,
    incoming_payload_ts: float | None,
    skew_allowance_seconds: float,
) -> bool:
    """Decide whether an incoming event should be applied.

    With both timestamps known, accept when the incoming one is newer or
    within the skew allowance. Without a timestamp the update is accepted.
    """
    if incoming_payload_ts is not None and cached_payload_ts is not None:
        return incoming_payload_ts >= (cached_payload_ts - skew_allowance_seconds)
    return True


def should_overwrite(*, cached_payload_ts: float | None, incoming_payload_ts: float | None) -> bool:
    """Older (but accepted) updates only fill keys that are still missing."""
    if incoming_payload_ts is None or cached_payload_ts is None:
        return True
    return incoming_payload_ts >= cached_payload_ts
