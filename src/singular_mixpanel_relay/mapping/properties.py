"""Projection of a flat Singular postback onto Mixpanel properties.

Steps, in output order:

1. Table fields: every (source, destination) pair whose source value is not
   None is copied under the destination name.
2. `install_utc_timestamp` (epoch seconds) becomes `install_time`, an ISO-8601
   UTC string. Zero/empty values and unparseable values are skipped.
3. `is_viewthrough` becomes `attribution_touch`: "view" when the flag strictly
   equals 1, otherwise "click". The key is omitted only when the field is absent.
4. Every other postback key is kept under the provider namespace
   (`$singular_<key>`) so Mixpanel's canonical property names stay clean.
5. `$attribution_source` and `$attribution_timestamp` are always stamped.

The mapper never raises and never mutates the record.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ..models.postback import InboundRecord
from .events import is_flag_set
from .tables import FieldMappingTable, PropertyRules
from .time_utils import epoch_seconds_to_dt, parse_epoch_seconds, to_iso_z, utc_now

logger = logging.getLogger(__name__)

__all__ = ["map_properties", "convert_install_time", "touch_type"]


def convert_install_time(value: Any) -> Optional[str]:
    """Convert an epoch-seconds install timestamp to ISO-8601 UTC, or None."""
    if not value:
        return None
    seconds = parse_epoch_seconds(value)
    if seconds is None:
        logger.debug("Ignoring non-numeric install timestamp %r", value)
        return None
    try:
        return to_iso_z(epoch_seconds_to_dt(seconds))
    except (OverflowError, OSError, ValueError):
        logger.debug("Ignoring out-of-range install timestamp %r", value)
        return None


def touch_type(flag: Any) -> str:
    return "view" if is_flag_set(flag) else "click"


def map_properties(
    record: InboundRecord,
    fields: FieldMappingTable,
    rules: PropertyRules,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Build the Mixpanel property dict for one postback.

    Args:
        record: Flat postback key/values (read-only).
        fields: Ordered Singular -> Mixpanel field table.
        rules: Special-cased fields, extra-field prefix and metadata names.
        now: Clock reading for `$attribution_timestamp`; defaults to the
            current UTC time.

    Returns:
        A new dict; safe for the caller to modify.
    """
    props: Dict[str, Any] = {}

    for source, dest in fields:
        value = record.get(source)
        if value is not None:
            props[dest] = value

    install_time = convert_install_time(record.get(rules.install_timestamp_field))
    if install_time is not None:
        props[rules.install_time_property] = install_time

    if rules.viewthrough_field in record:
        props[rules.touch_property] = touch_type(record[rules.viewthrough_field])

    special = rules.special_fields
    for key, value in record.items():
        if key in fields or key in special:
            continue
        props[f"{rules.extra_prefix}{key}"] = value

    props[rules.source_property] = rules.attribution_source
    props[rules.timestamp_property] = to_iso_z(now or utc_now())
    return props
