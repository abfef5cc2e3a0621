"""Pydantic models for the internal representation of Mixpanel objects.

These models define the logical structure of what the relay sends to Mixpanel
before the client serializes it into ingestion API payloads. They are the target
data structures of the `mapper` module and the input of the `shipper`.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class IdentityDecision(BaseModel):
    """Outcome of identity resolution for one postback.

    `distinct_id` keys the Mixpanel profile. `device_id` is resolved from the
    device fields only, so that an alias merges the device identity into the
    user identity rather than aliasing an id to itself.
    """

    model_config = ConfigDict(frozen=True)

    distinct_id: str
    device_id: Optional[str] = None
    needs_alias: bool = False

    @model_validator(mode="after")
    def _alias_requires_device(self) -> "IdentityDecision":
        if self.needs_alias and not self.device_id:
            raise ValueError("needs_alias requires a device_id")
        return self


class CanonicalEvent(BaseModel):
    """A single Mixpanel event ready for delivery.

    The same `properties` are used for the profile `$set` and the tracked event.
    """

    name: str
    distinct_id: str
    properties: Dict[str, Any] = Field(default_factory=dict)


class DeliveryReport(BaseModel):
    """Returned by a successful delivery."""

    attempts: int
    aliased: bool
    dry_run: bool = False
