import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Ensure the `src` directory is on sys.path for tests when not installed editable.
SRC = Path(__file__).resolve().parent.parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from singular_mixpanel_relay.errors import DeliveryError  # noqa: E402


class RecordingClient:
    """In-memory ingestion client recording every call.

    `fail_on` maps a call index (0-based, across all calls) to the error to
    raise instead of recording success.
    """

    def __init__(self, fail_on: Optional[Dict[int, Exception]] = None):
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail_on = fail_on or {}

    def _record(self, name: str, *args: Any) -> None:
        idx = len(self.calls)
        self.calls.append((name, args))
        if idx in self.fail_on:
            raise self.fail_on[idx]

    def alias(self, device_id: str, user_id: str) -> None:
        self._record("alias", device_id, user_id)

    def set_properties(self, distinct_id: str, properties: Dict[str, Any]) -> None:
        self._record("set_properties", distinct_id, properties)

    def track_event(self, distinct_id: str, event_name: str, properties: Dict[str, Any]) -> None:
        self._record("track_event", distinct_id, event_name, properties)

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.calls]


class FailingAttemptsClient(RecordingClient):
    """Fails the track step of the first `failures` attempts."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.track_calls = 0

    def track_event(self, distinct_id: str, event_name: str, properties: Dict[str, Any]) -> None:
        self.calls.append(("track_event", (distinct_id, event_name, properties)))
        self.track_calls += 1
        if self.track_calls <= self.failures:
            raise DeliveryError("Mixpanel track error: 503", endpoint="track", status=503)


@pytest.fixture
def recording_client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def no_sleep():
    waits: List[float] = []

    def _sleep(seconds: float) -> None:
        waits.append(seconds)

    _sleep.waits = waits  # type: ignore[attr-defined]
    return _sleep
