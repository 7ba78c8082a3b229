"""
Locator: an immutable, lazily resolved element query.

    page.locator("#list").locator("li").filter(has_text="Done").first()

A Locator holds (frame, stages) and nothing else. It never resolves at build
time and never caches: every action resolves from scratch, retries through
detachment and enforces strict single-element matching.
"""
# @file purpose: Lazy, strict, re-resolving element locator.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple, Union

from ..core import errors
from ..core.actionability import LocatorTarget
from ..core.options import (
    CheckOptions,
    ClickOptions,
    DblclickOptions,
    FillOptions,
    HoverOptions,
    KeyboardOptions,
    SelectOptionOptions,
    SetInputFilesOptions,
    TapOptions,
    TimeoutOptions,
    WaitForOptions,
    coerce_options,
)
from ..core.resolver import (
    AndStage,
    FilterStage,
    IndexStage,
    OrStage,
    QueryStage,
    Stage,
    TextMatch,
    _release_all,
    describe_chain,
    resolve,
)
from .element_handle import FilePaths, _local_paths

if TYPE_CHECKING:
    from ..core.actionability import ActionabilityEngine
    from .element_handle import ElementHandle
    from .frame import Frame
    from .page import Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Locator:
    frame: "Frame"
    stages: Tuple[Stage, ...]

    def __repr__(self) -> str:
        return f"<Locator {self.description}>"

    @property
    def description(self) -> str:
        return describe_chain(self.stages)

    @property
    def page(self) -> "Page":
        return self.frame.page

    @property
    def _engine(self) -> "ActionabilityEngine":
        return self.frame.page._engine

    def _target(self) -> LocatorTarget:
        return LocatorTarget(self.frame, self.stages)

    def _with(self, stage: Stage) -> "Locator":
        return Locator(self.frame, self.stages + (stage,))

    # ---------------- chaining ----------------

    def locator(self, selector: str) -> "Locator":
        return self._with(QueryStage(selector))

    def filter(
        self,
        has_text: Optional[TextMatch] = None,
        has_not_text: Optional[TextMatch] = None,
        has: Optional["Locator"] = None,
        has_not: Optional["Locator"] = None,
        visible: Optional[bool] = None,
    ) -> "Locator":
        for inner in (has, has_not):
            if inner is not None and inner.frame is not self.frame:
                raise ValueError('Inner "has" or "has_not" locator must belong to the same frame.')
        return self._with(
            FilterStage(
                has_text=has_text,
                has_not_text=has_not_text,
                has=has.stages if has is not None else None,
                has_not=has_not.stages if has_not is not None else None,
                visible=visible,
            )
        )

    def and_(self, locator: "Locator") -> "Locator":
        """Elements matched by both this locator and `locator`."""
        return self._with(AndStage(self._same_frame(locator, "and_")))

    def or_(self, locator: "Locator") -> "Locator":
        """Elements matched by either locator: this one's matches first, then the rest."""
        return self._with(OrStage(self._same_frame(locator, "or_")))

    def _same_frame(self, other: "Locator", method: str) -> Tuple[Stage, ...]:
        if other.frame is not self.frame:
            raise ValueError(f"Locators passed to {method}() must belong to the same frame.")
        return other.stages

    def first(self) -> "Locator":
        return self._with(IndexStage(0))

    def last(self) -> "Locator":
        return self._with(IndexStage(-1))

    def nth(self, index: int) -> "Locator":
        return self._with(IndexStage(index))

    # ---------------- resolution ----------------

    async def count(self) -> int:
        handles = await resolve(self.frame, self.stages)
        _release_all(handles)
        return len(handles)

    async def all(self) -> List["Locator"]:
        """Snapshot: one nth() locator per element matched right now."""
        return [self.nth(i) for i in range(await self.count())]

    async def element_handles(self) -> List["ElementHandle"]:
        """Current matches; the caller owns (and should dispose) the handles."""
        return await resolve(self.frame, self.stages)

    async def element_handle(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> "ElementHandle":
        opts = coerce_options(TimeoutOptions, options, kwargs)
        handle = await self._engine.wait_for_state(self._target(), "attached", opts.timeout)
        if handle is None:
            raise errors.ElementDetachedError(f"{self.description} resolved to no element")
        return handle

    async def wait_for(self, options: Optional[WaitForOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(WaitForOptions, options, kwargs)
        handle = await self._engine.wait_for_state(self._target(), opts.state, opts.timeout)
        if handle is not None:
            handle._release()

    # ---------------- actions ----------------

    async def _perform(self, action: str, options: Any, act: Any) -> Any:
        return await self._engine.perform(self._target(), action, options, act)

    async def click(self, options: Optional[ClickOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(ClickOptions, options, kwargs)
        await self._perform("click", opts, lambda h, p: h._click_at(p, opts))

    async def dblclick(self, options: Optional[DblclickOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(DblclickOptions, options, kwargs)
        await self._perform("dblclick", opts, lambda h, p: h._click_at(p, opts, 2))

    async def hover(self, options: Optional[HoverOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(HoverOptions, options, kwargs)
        await self._perform("hover", opts, lambda h, p: h._hover_at(p, opts))

    async def tap(self, options: Optional[TapOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(TapOptions, options, kwargs)
        await self._perform("tap", opts, lambda h, p: h._tap_at(p, opts))

    async def check(self, options: Optional[CheckOptions] = None, **kwargs: Any) -> None:
        await self.set_checked(True, options, **kwargs)

    async def uncheck(self, options: Optional[CheckOptions] = None, **kwargs: Any) -> None:
        await self.set_checked(False, options, **kwargs)

    async def set_checked(self, checked: bool, options: Optional[CheckOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(CheckOptions, options, kwargs)
        await self._perform("check" if checked else "uncheck", opts, lambda h, p: h._set_checked(p, checked, opts))

    async def fill(self, value: str, options: Optional[FillOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(FillOptions, options, kwargs)
        await self._perform("fill", opts, lambda h, p: h._send("fill", {"value": value}))

    async def clear(self, options: Optional[FillOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(FillOptions, options, kwargs)
        await self._perform("clear", opts, lambda h, p: h._send("fill", {"value": ""}))

    async def type(self, text: str, options: Optional[KeyboardOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(KeyboardOptions, options, kwargs)
        await self._perform("type", opts, lambda h, p: h._send("type", {"text": text, "delay": opts.delay}))

    async def press(self, key: str, options: Optional[KeyboardOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(KeyboardOptions, options, kwargs)
        await self._perform("press", opts, lambda h, p: h._send("press", {"key": key, "delay": opts.delay}))

    async def select_option(
        self, values: Union[str, Sequence[str]], options: Optional[SelectOptionOptions] = None, **kwargs: Any
    ) -> List[str]:
        opts = coerce_options(SelectOptionOptions, options, kwargs)
        wanted = [values] if isinstance(values, str) else list(values)
        result = await self._perform("select_option", opts, lambda h, p: h._select_option(wanted))
        return result or []

    async def set_input_files(
        self, files: FilePaths, options: Optional[SetInputFilesOptions] = None, **kwargs: Any
    ) -> None:
        opts = coerce_options(SetInputFilesOptions, options, kwargs)
        paths = _local_paths(files)
        await self._perform("set_input_files", opts, lambda h, p: h._send("setInputFiles", {"localPaths": paths}))

    async def focus(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        await self._perform("focus", opts, lambda h, p: h._send("focus"))

    async def dispatch_event(
        self, type: str, event_init: Optional[Dict[str, Any]] = None, options: Optional[TimeoutOptions] = None, **kwargs: Any
    ) -> None:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        await self._perform(
            "dispatch_event", opts, lambda h, p: h._send("dispatchEvent", {"type": type, "eventInit": event_init or {}})
        )

    async def scroll_into_view_if_needed(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        await self._perform("scroll_into_view", opts, lambda h, p: h._scroll_into_view_if_needed())

    async def select_text(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> None:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        await self._perform("select_text", opts, lambda h, p: h._send("selectText"))

    # ---------------- reads ----------------

    async def _read(self, options: Optional[TimeoutOptions], kwargs: Dict[str, Any], method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        return await self._perform("read", opts, lambda h, p: h._read(method, params))

    async def text_content(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> Optional[str]:
        return await self._read(options, kwargs, "textContent")

    async def inner_text(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> str:
        return await self._read(options, kwargs, "innerText") or ""

    async def input_value(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> str:
        return await self._read(options, kwargs, "inputValue") or ""

    async def get_attribute(self, name: str, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> Optional[str]:
        return await self._read(options, kwargs, "getAttribute", {"name": name})

    async def _read_all(self, method: str) -> List[str]:
        # no waiting and no strictness; elements detached mid-read are skipped
        handles = await resolve(self.frame, self.stages)
        texts: List[str] = []
        try:
            for handle in handles:
                try:
                    value = await handle._read(method)
                except errors.ElementDetachedError:
                    continue
                texts.append(value or "")
        finally:
            _release_all(handles)
        return texts

    async def all_text_contents(self) -> List[str]:
        return await self._read_all("textContent")

    async def all_inner_texts(self) -> List[str]:
        return await self._read_all("innerText")

    async def _state(self, state: str, options: Optional[TimeoutOptions], kwargs: Dict[str, Any]) -> bool:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        return bool(await self._perform("read", opts, lambda h, p: h._element_state(state)))

    async def is_enabled(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> bool:
        return await self._state("enabled", options, kwargs)

    async def is_disabled(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> bool:
        return not await self._state("enabled", options, kwargs)

    async def is_checked(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> bool:
        return await self._state("checked", options, kwargs)

    async def is_editable(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> bool:
        return await self._state("editable", options, kwargs)

    async def is_visible(self) -> bool:
        """Immediate check: no waiting, zero matches is simply not visible."""
        handles = await resolve(self.frame, self.stages)
        try:
            if len(handles) > 1:
                raise errors.StrictModeViolationError(self.description, len(handles), [h.preview for h in handles[:10]])
            if not handles:
                return False
            try:
                return await handles[0]._element_state("visible")
            except errors.ElementDetachedError:
                return False
        finally:
            _release_all(handles)

    async def is_hidden(self) -> bool:
        return not await self.is_visible()

    async def bounding_box(self, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> Optional[Dict[str, float]]:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        return await self._perform("read", opts, lambda h, p: h._bounding_box())
