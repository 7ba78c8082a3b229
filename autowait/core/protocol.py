"""
Wire envelopes exchanged with the driver, plus error mapping.

Commands go out as ``CommandEnvelope``; everything that comes back is parsed
into ``Message``, which is either a response (``id`` set) or an event
(``guid`` + ``method``). ``__create__`` / ``__dispose__`` are events addressed
to the parent / disposed object respectively.
"""
# @file purpose: Define protocol envelopes and driver error mapping.

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from . import errors

CREATE_METHOD = "__create__"
DISPOSE_METHOD = "__dispose__"


class CommandEnvelope(BaseModel):
    """One outgoing call. ``id`` is unique among in-flight calls on a connection."""

    id: int
    guid: str
    method: str
    params: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SerializedErrorDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = "Error"
    message: str = ""
    stack: Optional[str] = None


class SerializedError(BaseModel):
    model_config = ConfigDict(extra="ignore")

    error: Optional[SerializedErrorDetail] = None
    value: Any = None


class Message(BaseModel):
    """Incoming envelope: a response to a command, or an unsolicited event."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    guid: Optional[str] = None
    method: Optional[str] = None
    params: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    error: Optional[SerializedError] = None


class CreatePayload(BaseModel):
    """``params`` of a ``__create__`` event."""

    model_config = ConfigDict(extra="ignore")

    type: str
    guid: str
    initializer: dict[str, Any] = Field(default_factory=dict)


# driver error name -> local exception type
_ERROR_TYPES: dict[str, type[errors.AutowaitError]] = {
    "TimeoutError": errors.TimeoutError,
    "TargetClosedError": errors.TargetClosedError,
    "ElementNotAttachedError": errors.ElementDetachedError,
    "ElementNotActionableError": errors.NotActionableError,
}


def parse_error(error: SerializedError) -> errors.AutowaitError:
    """Map a serialized driver error to the matching local exception."""
    if error.error is None:
        return errors.DriverError("Error", repr(error.value))
    detail = error.error
    exc_type = _ERROR_TYPES.get(detail.name)
    if exc_type is None:
        return errors.DriverError(detail.name, detail.message, detail.stack)
    return exc_type(detail.message)
