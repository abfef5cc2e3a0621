"""Singular event name to canonical Mixpanel event name classification.

Rules, evaluated in order:

1. Session start (`__start__`, compared case-insensitively) becomes
   `reengagement` when the reengagement flag strictly equals 1, else `install`.
2. Login completed (`login_completed_event`, compared case-sensitively) becomes
   `attribution_received`.
3. Any other non-empty name passes through unchanged; a missing or empty name
   becomes `unknown_event`.

The case-sensitivity differs between rules 1 and 2. Existing Mixpanel reports
depend on the current behavior, so it is kept as-is and pinned by tests.
"""
from __future__ import annotations

from typing import Any

from ..models.postback import InboundRecord
from .tables import EventNameTable

__all__ = ["classify_event", "is_flag_set"]


def is_flag_set(value: Any, expected: int = 1) -> bool:
    """Strict flag check: numeric equality to `expected`, never truthiness.

    Booleans and strings (including "1") are not set.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value == expected


def classify_event(record: InboundRecord, table: EventNameTable) -> str:
    raw = record.get(table.event_field)
    raw_name = str(raw) if raw else ""

    if raw_name.lower() == table.session_start:
        if is_flag_set(record.get(table.reengagement_field), table.reengagement_value):
            return table.reengagement_name
        return table.install_name

    if raw_name == table.login_completed:
        return table.login_name

    return raw_name or table.unknown_name
