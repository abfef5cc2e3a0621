"""Internal mapping subpackage for decomposed transformation logic.

This package contains the core implementation of Singular postback to Mixpanel
event mapping, decomposed into focused, single-responsibility modules. All
functions within this package are pure (no network I/O) and deterministic for a
given record and clock reading.

The public API remains in the top-level `mapper.py` facade. Callers should not
import directly from this package unless accessing internal helpers for testing
purposes.

Modules:
    tables: Immutable field, identity and event-name tables
    identity: Distinct id / device id resolution and alias decision
    events: Singular event name to canonical event name classification
    properties: Projection of the flat postback onto Mixpanel properties
    time_utils: Epoch conversion and ISO-8601 UTC formatting

Design Invariants:
    - No network calls permitted
    - Input records are never mutated
    - Table iteration order is the mapping order
    - Timezone-aware UTC timestamps only
"""
from __future__ import annotations

from . import tables as tables  # noqa: F401
from . import time_utils as time_utils  # noqa: F401

__all__ = ["tables", "time_utils"]
