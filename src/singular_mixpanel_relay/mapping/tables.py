"""Immutable configuration tables for postback mapping.

Tables are constructed once at process start by `build_tables` and injected
into the pure mapping functions. They are frozen dataclasses over tuples, so a
request can never alter what the next request sees.

Field Mapping Order:
    `FieldMappingTable` is an ordered sequence of (source, destination) pairs
    and mapping follows that order. Two Singular fields (`aifa`, `idfa`) share
    the `idfa` destination; when both are present the later pair wins.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Iterator, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..config import Settings

__all__ = [
    "FieldMappingTable",
    "IdentityFields",
    "EventNameTable",
    "PropertyRules",
    "MappingTables",
    "DEFAULT_FIELD_MAPPING",
    "build_tables",
]

DEFAULT_FIELD_MAPPING: Tuple[Tuple[str, str], ...] = (
    ("campaign", "mp_campaign"),
    ("network", "mp_source"),
    ("site", "mp_site"),
    ("tracker_name", "mp_tracker"),
    ("aifa", "idfa"),
    ("idfa", "idfa"),
    ("idfv", "idfv"),
    ("gaid", "gaid"),
    ("platform", "platform"),
    ("os_version", "os_version"),
    ("device_brand", "device_brand"),
    ("device_model", "device_model"),
    ("city", "city"),
    ("country", "country"),
    ("app_name", "app_name"),
    ("app_version", "app_version"),
)


@dataclass(frozen=True)
class FieldMappingTable:
    """Ordered Singular field -> Mixpanel property name pairs."""

    pairs: Tuple[Tuple[str, str], ...] = DEFAULT_FIELD_MAPPING
    sources: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pairs", tuple((s, d) for s, d in self.pairs))
        object.__setattr__(self, "sources", frozenset(s for s, _ in self.pairs))

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    def __contains__(self, source: object) -> bool:
        return source in self.sources

    def extended(self, extra: Iterable[Tuple[str, str]]) -> "FieldMappingTable":
        """Return a new table with `extra` pairs appended after the existing ones."""
        return FieldMappingTable(pairs=self.pairs + tuple(extra))


@dataclass(frozen=True)
class IdentityFields:
    """User-level id field plus device-level id fields in priority order."""

    user_field: str = "user_id"
    device_fields: Tuple[str, ...] = ("aifa", "idfa", "gaid", "idfv")


@dataclass(frozen=True)
class EventNameTable:
    """Singular event names and flags recognized by the classifier."""

    event_field: str = "event_name"
    session_start: str = "__start__"
    login_completed: str = "login_completed_event"
    reengagement_field: str = "is_reengagement"
    reengagement_value: int = 1
    install_name: str = "install"
    reengagement_name: str = "reengagement"
    login_name: str = "attribution_received"
    unknown_name: str = "unknown_event"


@dataclass(frozen=True)
class PropertyRules:
    """Special-cased postback fields and metadata stamped on every event."""

    install_timestamp_field: str = "install_utc_timestamp"
    install_time_property: str = "install_time"
    viewthrough_field: str = "is_viewthrough"
    touch_property: str = "attribution_touch"
    extra_prefix: str = "$singular_"
    attribution_source: str = "singular"
    source_property: str = "$attribution_source"
    timestamp_property: str = "$attribution_timestamp"

    @property
    def special_fields(self) -> frozenset[str]:
        return frozenset({self.install_timestamp_field, self.viewthrough_field})


@dataclass(frozen=True)
class MappingTables:
    fields: FieldMappingTable = field(default_factory=FieldMappingTable)
    identity: IdentityFields = field(default_factory=IdentityFields)
    events: EventNameTable = field(default_factory=EventNameTable)
    properties: PropertyRules = field(default_factory=PropertyRules)


def build_tables(settings: Optional[Settings] = None) -> MappingTables:
    """Build the process-wide tables, applying settings overrides when given.

    Without settings the built-in defaults are returned.
    """
    if settings is None:
        return MappingTables()
    fields = FieldMappingTable()
    extra = settings.extra_mapping_pairs()
    if extra:
        fields = fields.extended(extra)
    rules = PropertyRules(
        extra_prefix=settings.EXTRA_FIELD_PREFIX,
        attribution_source=settings.ATTRIBUTION_SOURCE,
    )
    return MappingTables(fields=fields, properties=rules)
