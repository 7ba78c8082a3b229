"""
ElementHandle: a fixed reference to one DOM element.

Unlike a Locator, a handle never re-resolves: every action runs the same
readiness checks, but detachment of the referenced element is fatal
(ElementDetachedError) instead of a reason to query again.
"""
# @file purpose: Proxy for driver-side element handles.

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple, Union

from ..core import errors
from ..core.actionability import HandleTarget, Point, Target
from ..core.objects import Handle, remote_type
from ..core.options import (
    CheckOptions,
    ClickOptions,
    DblclickOptions,
    ElementState,
    FillOptions,
    HoverOptions,
    KeyboardOptions,
    PointerOptions,
    SelectOptionOptions,
    SetInputFilesOptions,
    TapOptions,
    TimeoutOptions,
    coerce_options,
)

if TYPE_CHECKING:
    from ..core.actionability import ActionabilityEngine
    from .frame import Frame
    from .page import Page

logger = logging.getLogger(__name__)

BoundingBox = Dict[str, float]
FilePaths = Union[str, Path, Sequence[Union[str, Path]]]


@remote_type("ElementHandle")
class ElementHandle(Handle):
    def __repr__(self) -> str:
        state = " disposed" if self.is_disposed else ""
        return f"<ElementHandle {self.preview}{state}>"

    @property
    def preview(self) -> str:
        return self.initializer.get("preview") or f"<element {self.guid}>"

    @property
    def node_key(self) -> str:
        """Driver node identity (stable across handles to the same node)."""
        return str(self.initializer.get("nodeId", self.guid))

    @property
    def owner_frame(self) -> "Frame":
        from .frame import Frame

        node = self.parent
        while node is not None and not isinstance(node, Frame):
            node = node.parent
        if node is None:
            raise errors.TargetClosedError(f"{self.preview} is not owned by a frame")
        return node

    @property
    def page(self) -> "Page":
        return self.owner_frame.page

    # ---------------- driver primitives ----------------

    async def _query_all(self, selector: str) -> List["ElementHandle"]:
        result = await self._send("querySelectorAll", {"selector": selector})
        return list(result.get("elements") or [])

    async def _element_state(self, state: str) -> bool:
        result = await self._send("elementState", {"state": state})
        return bool(result.get("value"))

    async def _bounding_box(self) -> Optional[BoundingBox]:
        result = await self._send("boundingBox")
        return result.get("value")

    async def _scroll_into_view_if_needed(self) -> None:
        await self._send("scrollIntoViewIfNeeded")

    async def _check_hit_target(self, point: Point) -> Tuple[bool, Optional[str]]:
        result = await self._send("checkHitTarget", {"x": point.x, "y": point.y})
        return bool(result.get("value")), result.get("hitTargetDescription")

    async def _text_content(self) -> Optional[str]:
        result = await self._send("textContent")
        return result.get("value")

    async def _read(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        result = await self._send(method, params)
        return result.get("value")

    async def _click_at(self, point: Optional[Point], options: PointerOptions, click_count: int = 1) -> None:
        at = _require_point(point)
        await self._send(
            "click",
            {
                "x": at.x,
                "y": at.y,
                "button": getattr(options, "button", "left"),
                "clickCount": getattr(options, "click_count", click_count),
                "modifiers": list(options.modifiers),
                "delay": getattr(options, "delay", 0),
            },
        )

    async def _hover_at(self, point: Optional[Point], options: PointerOptions) -> None:
        at = _require_point(point)
        await self._send("hover", {"x": at.x, "y": at.y, "modifiers": list(options.modifiers)})

    async def _tap_at(self, point: Optional[Point], options: PointerOptions) -> None:
        at = _require_point(point)
        await self._send("tap", {"x": at.x, "y": at.y, "modifiers": list(options.modifiers)})

    async def _select_option(self, values: Sequence[str]) -> List[str]:
        result = await self._send("selectOption", {"options": [{"value": v} for v in values]})
        return list(result.get("values") or [])

    async def _set_checked(self, point: Optional[Point], checked: bool, options: PointerOptions) -> None:
        if await self._element_state("checked") == checked:
            return
        await self._click_at(point, options)
        if await self._element_state("checked") != checked:
            raise errors.CheckStateError("Clicking the checkbox did not change its state")

    # ---------------- actions ----------------

    @property
    def _engine(self) -> "ActionabilityEngine":
        return self.page._engine

    def _target(self) -> Target:
        return HandleTarget(self)

    async def click(self, options: Optional[ClickOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(ClickOptions, options, kwargs)
        await self._engine.perform(self._target(), "click", opts, lambda h, p: h._click_at(p, opts))

    async def dblclick(self, options: Optional[DblclickOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(DblclickOptions, options, kwargs)
        await self._engine.perform(self._target(), "dblclick", opts, lambda h, p: h._click_at(p, opts, 2))

    async def hover(self, options: Optional[HoverOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(HoverOptions, options, kwargs)
        await self._engine.perform(self._target(), "hover", opts, lambda h, p: h._hover_at(p, opts))

    async def tap(self, options: Optional[TapOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(TapOptions, options, kwargs)
        await self._engine.perform(self._target(), "tap", opts, lambda h, p: h._tap_at(p, opts))

    async def check(self, options: Optional[CheckOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(CheckOptions, options, kwargs)
        await self._engine.perform(self._target(), "check", opts, lambda h, p: h._set_checked(p, True, opts))

    async def uncheck(self, options: Optional[CheckOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(CheckOptions, options, kwargs)
        await self._engine.perform(self._target(), "uncheck", opts, lambda h, p: h._set_checked(p, False, opts))

    async def fill(self, value: str, options: Optional[FillOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(FillOptions, options, kwargs)
        await self._engine.perform(self._target(), "fill", opts, lambda h, p: h._send("fill", {"value": value}))

    async def type(self, text: str, options: Optional[KeyboardOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(KeyboardOptions, options, kwargs)
        await self._engine.perform(
            self._target(), "type", opts, lambda h, p: h._send("type", {"text": text, "delay": opts.delay})
        )

    async def press(self, key: str, options: Optional[KeyboardOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(KeyboardOptions, options, kwargs)
        await self._engine.perform(
            self._target(), "press", opts, lambda h, p: h._send("press", {"key": key, "delay": opts.delay})
        )

    async def select_option(
        self, values: Union[str, Sequence[str]], options: Optional[SelectOptionOptions] = None, **kwargs: Any
    ) -> List[str]:
        opts = coerce_options(SelectOptionOptions, options, kwargs)
        wanted = [values] if isinstance(values, str) else list(values)
        result = await self._engine.perform(self._target(), "select_option", opts, lambda h, p: h._select_option(wanted))
        return result or []

    async def set_input_files(
        self, files: FilePaths, options: Optional[SetInputFilesOptions] = None, **kwargs: Any
    ) -> None:
        opts = coerce_options(SetInputFilesOptions, options, kwargs)
        paths = _local_paths(files)
        await self._engine.perform(
            self._target(), "set_input_files", opts, lambda h, p: h._send("setInputFiles", {"localPaths": paths})
        )

    async def focus(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        await self._engine.perform(self._target(), "focus", opts, lambda h, p: h._send("focus"))

    async def dispatch_event(
        self, type: str, event_init: Optional[Dict[str, Any]] = None, options: Optional[TimeoutOptions] = None, **kwargs: Any
    ) -> None:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        await self._engine.perform(
            self._target(),
            "dispatch_event",
            opts,
            lambda h, p: h._send("dispatchEvent", {"type": type, "eventInit": event_init or {}}),
        )

    async def select_text(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        await self._engine.perform(self._target(), "select_text", opts, lambda h, p: h._send("selectText"))

    async def scroll_into_view_if_needed(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        await self._engine.perform(
            self._target(), "scroll_into_view", opts, lambda h, p: h._scroll_into_view_if_needed()
        )

    # ---------------- reads ----------------

    async def text_content(self) -> Optional[str]:
        return await self._text_content()

    async def inner_text(self) -> str:
        return await self._read("innerText") or ""

    async def input_value(self) -> str:
        return await self._read("inputValue") or ""

    async def get_attribute(self, name: str) -> Optional[str]:
        return await self._read("getAttribute", {"name": name})

    async def bounding_box(self) -> Optional[BoundingBox]:
        return await self._bounding_box()

    async def is_visible(self) -> bool:
        try:
            return await self._element_state("visible")
        except errors.ElementDetachedError:
            return False

    async def is_hidden(self) -> bool:
        return not await self.is_visible()

    async def is_enabled(self) -> bool:
        return await self._element_state("enabled")

    async def is_checked(self) -> bool:
        return await self._element_state("checked")

    async def is_editable(self) -> bool:
        return await self._element_state("editable")

    async def query_selector(self, selector: str) -> Optional["ElementHandle"]:
        handles = await self._query_all(selector)
        for extra in handles[1:]:
            extra._release()
        return handles[0] if handles else None

    async def query_selector_all(self, selector: str) -> List["ElementHandle"]:
        return await self._query_all(selector)

    async def wait_for_element_state(
        self, state: ElementState, options: Optional[TimeoutOptions] = None, **kwargs: Any
    ) -> None:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        await self._engine.wait_for_state(self._target(), state, opts.timeout)


def _local_paths(files: FilePaths) -> List[str]:
    if isinstance(files, (str, Path)):
        files = [files]
    paths = []
    for f in files:
        path = Path(f).expanduser().resolve()
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        paths.append(str(path))
    return paths


def _require_point(point: Optional[Point]) -> Point:
    if point is None:
        raise errors.NotActionableError("Element has no point to act on")
    return point
