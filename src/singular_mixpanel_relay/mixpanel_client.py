"""Mixpanel ingestion API client.

Implements the three outbound operations the shipper sequences:

* `alias` - `$create_alias` event on `/track`, merging a device-scoped
  distinct id into a user-scoped one.
* `set_properties` - `$set` profile update on `/engage` (overwrite semantics).
* `track_event` - regular event on `/track`.

Every call is a `GET /<endpoint>?data=<base64 JSON>` request. HTTP 200 is
success; any other status or transport failure raises `DeliveryError`, which
the shipper retries. The client itself never retries.
"""
from __future__ import annotations

import base64
import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .errors import DeliveryError

logger = logging.getLogger(__name__)

__all__ = ["MixpanelClient", "encode_data"]


def encode_data(data: Dict[str, Any]) -> str:
    """Serialize a payload the way the ingestion API expects in `data=`."""
    raw = json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


class MixpanelClient:
    def __init__(
        self,
        *,
        token: str,
        host: str = "https://api.mixpanel.com",
        timeout: int = 10,
        http_client: Optional[httpx.Client] = None,
    ):
        if host.endswith("/"):
            host = host[:-1]
        self.base = host
        self.token = token
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def __enter__(self) -> "MixpanelClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def _call(self, endpoint: str, data: Dict[str, Any]) -> None:
        url = f"{self.base}/{endpoint}"
        try:
            resp = self._http.get(url, params={"data": encode_data(data)}, timeout=self.timeout)
        except httpx.RequestError as e:
            raise DeliveryError(
                f"Mixpanel {endpoint} request failed: {e}", endpoint=endpoint
            ) from e
        if resp.status_code != 200:
            raise DeliveryError(
                f"Mixpanel {endpoint} error: {resp.status_code}",
                endpoint=endpoint,
                status=resp.status_code,
            )
        logger.debug("Mixpanel %s accepted (body=%s)", endpoint, resp.text[:100])

    def alias(self, device_id: str, user_id: str) -> None:
        self._call(
            "track",
            {
                "event": "$create_alias",
                "properties": {
                    "token": self.token,
                    "distinct_id": device_id,
                    "alias": user_id,
                },
            },
        )

    def set_properties(self, distinct_id: str, properties: Dict[str, Any]) -> None:
        self._call(
            "engage",
            {
                "$token": self.token,
                "$distinct_id": distinct_id,
                "$set": properties,
            },
        )

    def track_event(self, distinct_id: str, event_name: str, properties: Dict[str, Any]) -> None:
        """Track one event; `time` defaults to now unless `properties` carries one."""
        self._call(
            "track",
            {
                "event": event_name,
                "properties": {
                    "token": self.token,
                    "distinct_id": distinct_id,
                    "time": int(time.time()),
                    **properties,
                },
            },
        )
