"""Pydantic models for representing the raw Singular postback request.

The relay is invoked with an API-Gateway style event: the postback arrives
either as a JSON body (string, or already decoded by the invoking layer) or as
query-string parameters for GET postbacks. `InboundRequest` gives that event a
typed shape; `InboundRecord` is the flat key/value view the mapping package
consumes.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

# Read-only flat view of a single postback. Built by the extractor as a
# MappingProxyType over a private copy, so mapping code cannot mutate it.
InboundRecord = Mapping[str, Any]


class InboundRequest(BaseModel):
    """The subset of the invoking event that carries the postback."""

    model_config = ConfigDict(extra="ignore")

    body: Optional[Union[str, Dict[str, Any]]] = None
    queryStringParameters: Optional[Dict[str, Any]] = None
