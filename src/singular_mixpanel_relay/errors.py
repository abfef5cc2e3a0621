"""Error taxonomy for the relay pipeline.

Each error carries the HTTP status the handler answers with:

* `ConfigurationError` (500) - the relay itself is misconfigured, e.g. no
  Mixpanel token. Never retried.
* `ValidationError` (400) - the postback is malformed or lacks an identifier.
  Never retried.
* `DeliveryError` (500) - a Mixpanel call failed. Retried by the shipper; only
  the final exhaustion reaches the handler.

Configuration and validation failures are raised before any outbound call.
"""
from __future__ import annotations

from typing import Optional

__all__ = [
    "RelayError",
    "ConfigurationError",
    "ValidationError",
    "DeliveryError",
]


class RelayError(Exception):
    """Base class for all errors surfaced by the relay."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(RelayError):
    status_code = 500


class ValidationError(RelayError):
    status_code = 400


class DeliveryError(RelayError):
    """An outbound Mixpanel call failed.

    `endpoint` and `status` describe the failing request when known; `attempts`
    is filled in by the shipper once the retry budget is spent.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        endpoint: Optional[str] = None,
        status: Optional[int] = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status
        self.attempts = attempts
