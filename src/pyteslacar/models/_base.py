"""Base model and enum for owner API responses.

Every response model inherits from :class:`TeslaBaseModel` which
provides:

* A ``model_validator(mode="before")`` that strips Tesla sentinel
  values (``""``, ``"<invalid>"``, NaN) so the field default is used.
* A ``raw`` dict that captures the original payload.

String enums inherit from :class:`TeslaEnum` which resolves any value
without a mapped member to ``UNKNOWN`` instead of raising.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Sentinel strings the owner API uses for "not available".
_SENTINELS = frozenset({"", "<invalid>", "NaN", "nan"})


class TeslaEnum(StrEnum):
    """Base for owner API string enums.

    Every subclass **must** define ``UNKNOWN``.
    """

    @classmethod
    def _missing_(cls, value: object) -> TeslaEnum:
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        unknown: TeslaEnum = cls["UNKNOWN"]
        return unknown


class TeslaBaseModel(BaseModel):
    """Base for owner API response models.

    Handles:
    * Tesla sentinel values → dropped so the field default is used instead
    * Stashes the original API dict in ``raw``
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original API response dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        """Strip sentinel values from *values*."""
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_tesla_values(cls, values: Any) -> Any:
        """Strip sentinel values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = TeslaBaseModel._clean_dict(values)
        # Keep an explicitly passed raw= untouched.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
