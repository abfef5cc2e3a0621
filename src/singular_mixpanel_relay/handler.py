"""Request handler: one Singular postback in, one status/body response out.

Pipeline:
1.  Load settings and check configuration (valid settings, Mixpanel token).
2.  Extract the flat postback record (singular_mixpanel_relay.extractor).
3.  Resolve identity, classify the event and map properties
    (singular_mixpanel_relay.mapper).
4.  Deliver alias/set/track with retry (singular_mixpanel_relay.shipper).

Configuration and validation failures short-circuit before any outbound call.
The response is an API-Gateway style dict: `statusCode` plus a JSON `body`.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from .config import Settings, get_settings
from .errors import ConfigurationError, DeliveryError, ValidationError
from .extractor import extract_record
from .mapper import MappedPostback, map_postback
from .mapping.tables import MappingTables, build_tables
from .mixpanel_client import MixpanelClient
from .models.mixpanel import DeliveryReport
from .models.postback import InboundRecord
from .shipper import IngestionClient, deliver

logger = logging.getLogger(__name__)

__all__ = ["handle_postback", "prepare_postback", "handler", "get_tables"]


def _response(status: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {"statusCode": status, "body": json.dumps(body)}


def _log_context(record: Optional[InboundRecord], mapped: Optional[MappedPostback]) -> Dict[str, Any]:
    record = record or {}
    ctx: Dict[str, Any] = {
        "event": mapped.event.name if mapped else record.get("event_name"),
        "distinct_id": mapped.decision.distinct_id if mapped else None,
        "user_id": record.get("user_id") or None,
        "device_id": mapped.decision.device_id if mapped else None,
        "will_alias": mapped.decision.needs_alias if mapped else False,
        "campaign": record.get("campaign") or "none",
        "network": record.get("network") or "none",
    }
    return ctx


def _load_settings() -> Settings:
    try:
        return get_settings()
    except PydanticValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "settings" for err in e.errors()})
        raise ConfigurationError(f"Invalid configuration: {', '.join(fields)}") from e


@lru_cache(maxsize=1)
def get_tables() -> MappingTables:
    """Return the process-wide mapping tables built from the cached settings."""
    return build_tables(_load_settings())


def prepare_postback(
    event: Mapping[str, Any], tables: Optional[MappingTables] = None
) -> tuple[InboundRecord, MappedPostback]:
    """Extract and map a postback without delivering it.

    Raises:
        ValidationError: the request carries no usable payload or identifier.
    """
    record = extract_record(event)
    return record, map_postback(record, tables)


def handle_postback(
    event: Mapping[str, Any],
    *,
    settings: Optional[Settings] = None,
    client: Optional[IngestionClient] = None,
    tables: Optional[MappingTables] = None,
    dry_run: Optional[bool] = None,
    sleep: Any = None,
) -> Dict[str, Any]:
    """Process one postback and return the response for the invoking layer.

    Args:
        event: Invoking event with `body` and/or `queryStringParameters`.
        settings: Settings override; defaults to the cached process settings.
            Invalid process settings are reported as a configuration error.
        client: Ingestion client override; defaults to a `MixpanelClient`
            built from settings and closed after delivery.
        tables: Mapping tables override; defaults to the cached process
            tables, or to tables built from `settings` when it is given.
        dry_run: Overrides `settings.DRY_RUN` when not None.
        sleep: Retry sleep override (tests).

    Returns:
        `{"statusCode": int, "body": str}`.
    """
    record: Optional[InboundRecord] = None
    mapped: Optional[MappedPostback] = None
    try:
        if settings is None:
            settings = _load_settings()
            tables = tables or get_tables()
        if not settings.MIXPANEL_TOKEN:
            raise ConfigurationError("Token not configured")

        record = extract_record(event)
        mapped = map_postback(record, tables or build_tables(settings))
        logger.info(json.dumps(_log_context(record, mapped), default=str))

        effective_dry_run = settings.DRY_RUN if dry_run is None else dry_run
        if effective_dry_run:
            logger.info(
                "Dry-run delivery: event=%s distinct_id=%s alias=%s properties=%d",
                mapped.event.name,
                mapped.decision.distinct_id,
                mapped.decision.needs_alias,
                len(mapped.event.properties),
            )
            report = DeliveryReport(attempts=0, aliased=mapped.decision.needs_alias, dry_run=True)
        else:
            report = _deliver(mapped, settings, client, sleep)

    except ConfigurationError as e:
        logger.error("Configuration error: %s", e.message)
        return _response(e.status_code, {"error": e.message})
    except ValidationError as e:
        logger.error("Rejected postback: %s context=%s", e.message, _log_context(record, mapped))
        return _response(e.status_code, {"error": e.message})
    except DeliveryError as e:
        logger.error(
            "Delivery failed after %d attempt(s): %s context=%s",
            e.attempts,
            e.message,
            _log_context(record, mapped),
        )
        return _response(e.status_code, {"success": False, "error": e.message})
    except Exception as e:
        logger.exception("Unexpected error context=%s", _log_context(record, mapped))
        return _response(500, {"success": False, "error": str(e)})

    body: Dict[str, Any] = {
        "success": True,
        "event": mapped.event.name,
        "distinct_id": mapped.decision.distinct_id,
        "aliased": report.aliased,
    }
    if report.dry_run:
        body["dry_run"] = True
    return _response(200, body)


def _deliver(
    mapped: MappedPostback,
    settings: Settings,
    client: Optional[IngestionClient],
    sleep: Any,
) -> DeliveryReport:
    kwargs: Dict[str, Any] = {
        "max_attempts": settings.MAX_RETRIES,
        "base_delay_s": settings.retry_delay_seconds,
    }
    if sleep is not None:
        kwargs["sleep"] = sleep
    if client is not None:
        return deliver(mapped.decision, mapped.event, client, **kwargs)
    with MixpanelClient(
        token=settings.MIXPANEL_TOKEN,
        host=settings.MIXPANEL_API_HOST,
        timeout=settings.MIXPANEL_TIMEOUT,
    ) as mp_client:
        return deliver(mapped.decision, mapped.event, mp_client, **kwargs)


def handler(event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
    """Serverless entry point; `context` is accepted and ignored.

    Settings and tables come from the per-process caches.
    """
    return handle_postback(event)
