"""Shipper: delivers a mapped postback to Mixpanel with bounded retry.

This module sequences the outbound calls for one postback:

1. alias the device id into the user id (only when the decision needs it),
2. `$set` the mapped properties on the profile,
3. track the canonical event.

The three calls form one unit. If any of them raises `DeliveryError` the whole
sequence is retried from step 1, up to `max_attempts` times, waiting
`attempt_number * base_delay_s` between attempts. Alias and `$set` are
overwrites, so repeating them is harmless; a retry after a failed-but-received
track call can duplicate the event in Mixpanel. That risk is accepted rather
than hidden: there is no partial-success reporting and no resume point.

Only `DeliveryError` is retried; anything else is a bug and propagates at once.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Protocol

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from .errors import DeliveryError
from .models.mixpanel import CanonicalEvent, DeliveryReport, IdentityDecision

logger = logging.getLogger(__name__)

__all__ = ["IngestionClient", "deliver", "deliver_once"]

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_S = 1.0


class IngestionClient(Protocol):
    def alias(self, device_id: str, user_id: str) -> None: ...

    def set_properties(self, distinct_id: str, properties: Dict[str, Any]) -> None: ...

    def track_event(
        self, distinct_id: str, event_name: str, properties: Dict[str, Any]
    ) -> None: ...


def deliver_once(
    decision: IdentityDecision, event: CanonicalEvent, client: IngestionClient
) -> None:
    """Run the alias/set/track sequence a single time."""
    if decision.needs_alias and decision.device_id:
        client.alias(decision.device_id, decision.distinct_id)
    client.set_properties(event.distinct_id, event.properties)
    client.track_event(event.distinct_id, event.name, event.properties)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    sleep_s = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "Delivery attempt %d failed (%s); retrying full sequence in %.2fs",
        retry_state.attempt_number,
        exc,
        sleep_s,
    )


def deliver(
    decision: IdentityDecision,
    event: CanonicalEvent,
    client: IngestionClient,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_s: float = DEFAULT_BASE_DELAY_S,
    sleep: Callable[[float], None] = time.sleep,
) -> DeliveryReport:
    """Deliver one postback, retrying the whole sequence on failure.

    Args:
        decision: Identity decision (drives the alias step).
        event: Canonical event with mapped properties.
        client: Ingestion client implementing alias/set_properties/track_event.
        max_attempts: Ceiling on full-sequence attempts (>= 1).
        base_delay_s: Linear backoff base; attempt N waits N * base_delay_s.
        sleep: Blocking sleep function (injected by tests).

    Returns:
        DeliveryReport with the number of attempts used.

    Raises:
        DeliveryError: every attempt failed; `attempts` records how many ran.
    """
    retrying = Retrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_incrementing(start=base_delay_s, increment=base_delay_s),
        retry=retry_if_exception_type(DeliveryError),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    attempts = 0
    try:
        for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                deliver_once(decision, event, client)
    except DeliveryError as e:
        raise DeliveryError(
            str(e), endpoint=e.endpoint, status=e.status, attempts=attempts
        ) from e
    return DeliveryReport(attempts=attempts, aliased=decision.needs_alias)
