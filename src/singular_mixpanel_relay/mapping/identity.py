"""Identity resolution with fixed first-match precedence.

Determines which identifier keys the Mixpanel profile and whether a device
identity must be merged into a user identity first:

1. distinct_id: first present value among the user field, then the device
   fields in priority order (aifa, idfa, gaid, idfv).
2. device_id: first present device field only, independent of the user field.
3. needs_alias: a user id and a device id are both present.

"Present" means truthy: an empty string or a zero does not count as an
identifier. Values are stringified so numeric ids survive query-string and JSON
postbacks alike.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..errors import ValidationError
from ..models.mixpanel import IdentityDecision
from ..models.postback import InboundRecord
from .tables import IdentityFields

logger = logging.getLogger(__name__)

__all__ = ["resolve_identity", "first_present"]


def first_present(record: InboundRecord, fields: tuple[str, ...]) -> Optional[str]:
    """Return the first truthy value among `fields`, stringified."""
    for name in fields:
        value: Any = record.get(name)
        if value:
            return str(value)
    return None


def resolve_identity(record: InboundRecord, fields: IdentityFields) -> IdentityDecision:
    """Resolve the distinct id, the device id to merge, and the alias decision.

    Raises:
        ValidationError: no user or device identifier is present.
    """
    user_id = first_present(record, (fields.user_field,))
    device_id = first_present(record, fields.device_fields)
    distinct_id = user_id or device_id
    if distinct_id is None:
        raise ValidationError("No user identifier")
    needs_alias = user_id is not None and device_id is not None
    logger.debug(
        "Resolved identity distinct_id=%s device_id=%s needs_alias=%s",
        distinct_id,
        device_id,
        needs_alias,
    )
    return IdentityDecision(distinct_id=distinct_id, device_id=device_id, needs_alias=needs_alias)
