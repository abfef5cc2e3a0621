from __future__ import annotations

import pytest

from conftest import FailingAttemptsClient, RecordingClient
from singular_mixpanel_relay.errors import DeliveryError
from singular_mixpanel_relay.models.mixpanel import CanonicalEvent, IdentityDecision
from singular_mixpanel_relay.shipper import deliver, deliver_once

ALIASED = IdentityDecision(distinct_id="u1", device_id="d1", needs_alias=True)
PLAIN = IdentityDecision(distinct_id="d1", device_id="d1", needs_alias=False)


def _event(distinct_id: str = "u1") -> CanonicalEvent:
    return CanonicalEvent(name="install", distinct_id=distinct_id, properties={"mp_campaign": "c1"})


def test_sequence_order_with_alias(recording_client):
    deliver_once(ALIASED, _event(), recording_client)
    assert recording_client.names == ["alias", "set_properties", "track_event"]
    assert recording_client.calls[0] == ("alias", ("d1", "u1"))
    assert recording_client.calls[1] == ("set_properties", ("u1", {"mp_campaign": "c1"}))
    assert recording_client.calls[2] == ("track_event", ("u1", "install", {"mp_campaign": "c1"}))


def test_no_alias_when_not_needed(recording_client):
    report = deliver(PLAIN, _event("d1"), recording_client, sleep=lambda s: None)
    assert recording_client.names == ["set_properties", "track_event"]
    assert report.attempts == 1
    assert report.aliased is False


def test_fail_twice_then_succeed(no_sleep):
    client = FailingAttemptsClient(failures=2)
    report = deliver(ALIASED, _event(), client, base_delay_s=1.0, sleep=no_sleep)
    assert report.attempts == 3
    assert report.aliased is True
    # Every attempt restarts from the alias step.
    assert client.names == ["alias", "set_properties", "track_event"] * 3
    # Linear backoff: attempt N waits N * base delay.
    assert no_sleep.waits == [1.0, 2.0]


def test_exhaustion_surfaces_delivery_error(no_sleep):
    client = FailingAttemptsClient(failures=10)
    with pytest.raises(DeliveryError) as exc:
        deliver(ALIASED, _event(), client, max_attempts=3, base_delay_s=0.5, sleep=no_sleep)
    assert exc.value.attempts == 3
    assert exc.value.status == 503
    assert client.names.count("alias") == 3
    assert client.track_calls == 3
    assert no_sleep.waits == [0.5, 1.0]


def test_failure_in_first_step_restarts_whole_sequence(no_sleep):
    client = RecordingClient(fail_on={0: DeliveryError("Mixpanel track error: 500")})
    deliver(ALIASED, _event(), client, sleep=no_sleep)
    assert client.names == ["alias", "alias", "set_properties", "track_event"]


def test_single_attempt_ceiling(no_sleep):
    client = FailingAttemptsClient(failures=1)
    with pytest.raises(DeliveryError) as exc:
        deliver(PLAIN, _event("d1"), client, max_attempts=1, sleep=no_sleep)
    assert exc.value.attempts == 1
    assert no_sleep.waits == []


def test_non_delivery_errors_are_not_retried(no_sleep):
    client = RecordingClient(fail_on={0: KeyError("bug")})
    with pytest.raises(KeyError):
        deliver(PLAIN, _event("d1"), client, sleep=no_sleep)
    assert client.names == ["set_properties"]
    assert no_sleep.waits == []
