"""Public facade for Singular postback to Mixpanel event mapping.

This module provides the stable public API for converting one extracted
postback record into the identity decision and canonical event the shipper
delivers. The work is delegated to the pure helpers in the
singular_mixpanel_relay.mapping package.

Public Functions:
    map_postback: Resolve identity, classify the event and map properties

Internal Re-exports:
    resolve_identity, classify_event, map_properties (test usage)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .mapping.events import classify_event
from .mapping.identity import resolve_identity
from .mapping.properties import map_properties
from .mapping.tables import MappingTables
from .models.mixpanel import CanonicalEvent, IdentityDecision
from .models.postback import InboundRecord

__all__ = [
    "MappedPostback",
    "map_postback",
    "resolve_identity",
    "classify_event",
    "map_properties",
]


@dataclass
class MappedPostback:
    decision: IdentityDecision
    event: CanonicalEvent


def map_postback(
    record: InboundRecord,
    tables: Optional[MappingTables] = None,
    *,
    now: Optional[datetime] = None,
) -> MappedPostback:
    """Convert a postback record into an identity decision and canonical event.

    Identity is resolved first so a record without any identifier fails before
    any further work. Event classification and property mapping are independent
    of each other and of the identity decision.

    Args:
        record: Flat postback extracted from the inbound request.
        tables: Injected mapping tables; defaults to the built-in tables.
        now: Clock reading for the attribution timestamp (tests).

    Returns:
        MappedPostback holding the decision and the event.

    Raises:
        ValidationError: the record carries no user or device identifier.
    """
    tables = tables or MappingTables()
    decision = resolve_identity(record, tables.identity)
    name = classify_event(record, tables.events)
    properties = map_properties(record, tables.fields, tables.properties, now=now)
    event = CanonicalEvent(name=name, distinct_id=decision.distinct_id, properties=properties)
    return MappedPostback(decision=decision, event=event)
