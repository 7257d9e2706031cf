"""Request models for the four meta-operations.

The operations form a closed tagged union discriminated on ``op``, which
is filled from the MCP tool name. Parsing happens before the catalog or
the sandbox is touched, so malformed calls fail fast.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, StrictStr, TypeAdapter, ValidationError, field_validator

from mcp_hub.constants import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT
from mcp_hub.errors import InvalidArgumentError

DISCOVER = "discover"
INSPECT = "inspect"
INVOKE = "invoke"
ORCHESTRATE = "orchestrate"

OPERATION_NAMES = (DISCOVER, INSPECT, INVOKE, ORCHESTRATE)


def _finite_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


class DiscoverRequest(BaseModel):
    """Page through the catalog. Bad paging values are clamped, never rejected."""

    op: Literal["discover"] = DISCOVER
    limit: int = DEFAULT_LIST_LIMIT
    offset: int = 0

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, v: Any) -> int:
        number = _finite_number(v)
        if number is None:
            return DEFAULT_LIST_LIMIT
        return min(max(1, math.floor(number)), MAX_LIST_LIMIT)

    @field_validator("offset", mode="before")
    @classmethod
    def _clamp_offset(cls, v: Any) -> int:
        number = _finite_number(v)
        if number is None:
            return 0
        return max(0, math.floor(number))


class InspectRequest(BaseModel):
    op: Literal["inspect"] = INSPECT
    name: StrictStr = Field(min_length=1)


class InvokeRequest(BaseModel):
    op: Literal["invoke"] = INVOKE
    name: StrictStr = Field(min_length=1)
    params: Optional[Dict[str, Any]] = None


class OrchestrateRequest(BaseModel):
    op: Literal["orchestrate"] = ORCHESTRATE
    code: StrictStr = Field(min_length=1)


MetaRequest = Annotated[
    Union[DiscoverRequest, InspectRequest, InvokeRequest, OrchestrateRequest],
    Field(discriminator="op"),
]

_REQUEST_ADAPTER: TypeAdapter = TypeAdapter(MetaRequest)

_ARGUMENT_MESSAGES = {
    "name": "name parameter is required and must be a string",
    "code": "code parameter is required and must be a string",
    "params": "params parameter must be an object",
}


def _format_validation_error(exc: ValidationError) -> str:
    messages = []
    for err in exc.errors():
        loc = err.get("loc") or ()
        field = next((str(part) for part in loc if str(part) in _ARGUMENT_MESSAGES), None)
        message = _ARGUMENT_MESSAGES.get(field) if field else None
        if message is None:
            where = ".".join(str(part) for part in loc) or "arguments"
            message = f"{where}: {err.get('msg', 'invalid value')}"
        if message not in messages:
            messages.append(message)
    return "; ".join(messages)


def parse_request(name: str, arguments: Optional[Mapping[str, Any]]) -> Any:
    """Validate a meta-tool call into one of the request models.

    Raises :class:`InvalidArgumentError` for an unknown operation or
    missing / malformed arguments. ``None`` arguments count as ``{}``.
    """
    if name not in OPERATION_NAMES:
        raise InvalidArgumentError(f"Unknown tool: {name}")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        raise InvalidArgumentError("arguments must be an object")

    payload = dict(arguments)
    payload["op"] = name
    try:
        return _REQUEST_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise InvalidArgumentError(_format_validation_error(exc)) from None
