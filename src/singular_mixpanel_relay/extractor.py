"""Payload extraction: the inbound request to a flat postback record.

Singular delivers postbacks either as a JSON POST body or as GET query-string
parameters. The invoking layer hands us an API-Gateway style event; the body
may still be a JSON string or may already be decoded.

Precedence:
    1. A non-empty `body` wins. String bodies are JSON-decoded and must decode
       to an object.
    2. Otherwise non-empty `queryStringParameters` are used.
    3. Otherwise the request carries no payload.
"""
from __future__ import annotations

import json
import logging
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models.postback import InboundRecord, InboundRequest

logger = logging.getLogger(__name__)

__all__ = ["extract_record"]


def _decode_body(body: str | dict[str, Any]) -> dict[str, Any]:
    if isinstance(body, dict):
        return body
    try:
        decoded = json.loads(body)
    except json.JSONDecodeError as e:
        logger.debug("Failed to json.loads postback body: %s", e)
        raise ValidationError("Malformed payload") from e
    if not isinstance(decoded, dict):
        logger.debug("Postback body decoded to %s, expected object", type(decoded).__name__)
        raise ValidationError("Malformed payload")
    return decoded


def extract_record(event: Mapping[str, Any] | InboundRequest) -> InboundRecord:
    """Produce a read-only flat record from the inbound request.

    Raises:
        ValidationError: "No payload" when neither body nor query parameters
            are present; "Malformed payload" when the body cannot be decoded
            to a JSON object or the event has an unexpected shape.
    """
    if isinstance(event, InboundRequest):
        request = event
    else:
        try:
            request = InboundRequest.model_validate(dict(event))
        except (PydanticValidationError, TypeError, ValueError) as e:
            raise ValidationError("Malformed payload") from e

    if request.body is not None and request.body != "":
        payload = _decode_body(request.body)
    elif request.queryStringParameters:
        payload = request.queryStringParameters
    else:
        raise ValidationError("No payload")

    return MappingProxyType(dict(payload))
