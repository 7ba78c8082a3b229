"""
Option records for engine operations (Pydantic v2, frozen).

One immutable record per operation kind, with typed optional fields and
documented defaults:
- timeout: ms before the operation times out (None: page default, 0: unbounded)
- force: skip readiness checks
- no_wait_after: skip waiting for navigations the action started
- trial: run readiness checks only, do not act
- position: action point relative to the element's top-left corner
- modifiers: keys held during pointer actions
"""
# @file purpose: Define immutable per-operation option records.

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

TimeoutMs = Annotated[float, Field(ge=0)]
MouseButton = Literal["left", "right", "middle"]
KeyboardModifier = Literal["Alt", "Control", "ControlOrMeta", "Meta", "Shift"]
LoadState = Literal["commit", "domcontentloaded", "load", "networkidle"]
LocatorState = Literal["attached", "detached", "visible", "hidden"]
ElementState = Literal["visible", "hidden", "stable", "enabled", "disabled", "editable"]

O = TypeVar("O", bound="_Options")


class _Options(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Position(_Options):
    x: float
    y: float


class TimeoutOptions(_Options):
    timeout: Optional[TimeoutMs] = None


class ActionOptions(TimeoutOptions):
    force: bool = False
    no_wait_after: bool = False


class PointerOptions(ActionOptions):
    trial: bool = False
    position: Optional[Position] = None
    modifiers: tuple[KeyboardModifier, ...] = ()


class ClickOptions(PointerOptions):
    button: MouseButton = "left"
    click_count: Annotated[int, Field(ge=1)] = 1
    delay: TimeoutMs = 0


class DblclickOptions(PointerOptions):
    button: MouseButton = "left"
    delay: TimeoutMs = 0


class HoverOptions(PointerOptions):
    pass


class TapOptions(PointerOptions):
    pass


class CheckOptions(PointerOptions):
    pass


class FillOptions(ActionOptions):
    pass


class SelectOptionOptions(ActionOptions):
    pass


class SetInputFilesOptions(ActionOptions):
    pass


class KeyboardOptions(TimeoutOptions):
    delay: TimeoutMs = 0
    no_wait_after: bool = False


class WaitForOptions(TimeoutOptions):
    state: LocatorState = "visible"


class NavigationOptions(TimeoutOptions):
    wait_until: LoadState = "load"


def coerce_options(cls: Type[O], options: Optional[O], overrides: dict[str, Any]) -> O:
    """
    Accept a ready-made record, keyword fields, or both (keywords win).
        await locator.click(timeout=500)
        await locator.click(ClickOptions(timeout=500))
    """
    if options is None:
        return cls(**overrides)
    if isinstance(options, cls) and not overrides:
        return options
    return cls(**{**options.model_dump(exclude_unset=True), **overrides})
