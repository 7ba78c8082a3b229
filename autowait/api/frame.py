"""
Frame proxy and navigation tracking.

状态机 ATTACHED -> (NAVIGATING -> COMMITTED)* -> DETACHED，由 driver 事件驱动：
- navigating {url}            -> NAVIGATING
- navigated {url, name, ...}  -> COMMITTED（error 存在时回到 COMMITTED 且等待方得到 NavigationError）
- loadstate {add | remove}    -> 维护已到达的 load state 集合
- page 的 frameDetached       -> DETACHED（终态）

Navigation waits are Waiter-based: each rejects on frame detach, page close and
connection close, and is bounded by the page's navigation timeout.
"""
# @file purpose: Frame proxy, frame state machine and navigation waits.

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from ..core import errors
from ..core.actionability import LocatorTarget
from ..core.objects import Handle, remote_type
from ..core.options import (
    ClickOptions,
    FillOptions,
    LoadState,
    NavigationOptions,
    TimeoutOptions,
    WaitForOptions,
    coerce_options,
)
from ..core.resolver import QueryStage
from ..core.url_matcher import URLMatch, URLMatcher
from ..core.waiter import Waiter

if TYPE_CHECKING:
    from .element_handle import ElementHandle
    from .locator import Locator
    from .network import Response
    from .page import Page

logger = logging.getLogger(__name__)


class FrameState(str, Enum):
    ATTACHED = "attached"
    NAVIGATING = "navigating"
    COMMITTED = "committed"
    DETACHED = "detached"


DETACHED_EVENT = "detached"


@remote_type("Frame")
class Frame(Handle):
    def __init__(self, *args: Any) -> None:
        super().__init__(*args)
        init = self.initializer
        self._url: str = init.get("url", "")
        self._name: str = init.get("name", "")
        self._load_states: Set[str] = set(init.get("loadStates") or [])
        self._state = FrameState.ATTACHED
        self._page: Optional["Page"] = None
        self._child_frames: List["Frame"] = []
        # page navigation counter value when the current navigation started
        self._navigation_seq = 0
        self._parent_frame: Optional[Frame] = None
        parent_ref = init.get("parentFrame")
        if parent_ref:
            parent = self._connection.objects.lookup(parent_ref["guid"])
            if isinstance(parent, Frame):
                self._parent_frame = parent
                parent._child_frames.append(self)

    def __repr__(self) -> str:
        return f"<Frame name={self._name!r} url={self._url!r} state={self._state.value}>"

    # ---------------- properties ----------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> FrameState:
        return self._state

    @property
    def load_states(self) -> Set[str]:
        return set(self._load_states)

    @property
    def parent_frame(self) -> Optional["Frame"]:
        return self._parent_frame

    @property
    def child_frames(self) -> List["Frame"]:
        return list(self._child_frames)

    @property
    def is_detached(self) -> bool:
        return self._state == FrameState.DETACHED

    @property
    def page(self) -> "Page":
        if self._page is None:
            raise errors.TargetClosedError(f"{self!r} is not attached to a page")
        return self._page

    # ---------------- driver events ----------------

    def _on_event(self, event: str, params: Dict[str, Any]) -> None:
        if self.is_detached:
            return
        if event == "navigating":
            self._state = FrameState.NAVIGATING
            if self._page is not None:
                self._navigation_seq = self._page._next_navigation()
            logger.debug("frame %s navigating to %s", self.guid, params.get("url"))
        elif event == "navigated":
            self._state = FrameState.COMMITTED
            if not params.get("error"):
                self._url = params.get("url", self._url)
                self._name = params.get("name", self._name)
                if self._page is not None:
                    self._page._emit("framenavigated", {"frame": self})
        elif event == "loadstate":
            added = params.get("add")
            removed = params.get("remove")
            if added:
                self._load_states.add(added)
                if self._page is not None and self._parent_frame is None and added in ("domcontentloaded", "load"):
                    self._page._emit(added, {})
            if removed:
                self._load_states.discard(removed)

    def _on_detached(self) -> None:
        if self.is_detached:
            return
        self._state = FrameState.DETACHED
        if self._parent_frame is not None and self in self._parent_frame._child_frames:
            self._parent_frame._child_frames.remove(self)
        self._emit(DETACHED_EVENT)

    def _on_dispose(self) -> None:
        # disposed without a preceding frameDetached: still leave the frame tree
        if self._page is not None and not self._page.is_closed:
            self._page._on_frame_detached(self)
        self._on_detached()

    async def _send(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if self.is_detached:
            raise errors.FrameDetachedError(f"Frame {self._url!r} was detached")
        return await super()._send(method, params)

    # ---------------- driver primitives ----------------

    async def _query_all(self, selector: str) -> List["ElementHandle"]:
        result = await self._send("querySelectorAll", {"selector": selector})
        return list(result.get("elements") or [])

    async def _wait_for_animation_frame(self) -> None:
        await self._send("waitForAnimationFrame")

    # ---------------- locators ----------------

    def locator(self, selector: str) -> "Locator":
        from .locator import Locator

        return Locator(self, (QueryStage(selector),))

    async def query_selector(self, selector: str) -> Optional["ElementHandle"]:
        handles = await self._query_all(selector)
        for extra in handles[1:]:
            extra._release()
        return handles[0] if handles else None

    async def query_selector_all(self, selector: str) -> List["ElementHandle"]:
        return await self._query_all(selector)

    async def wait_for_selector(
        self, selector: str, options: Optional[WaitForOptions] = None, **kwargs: Any
    ) -> Optional["ElementHandle"]:
        opts = coerce_options(WaitForOptions, options, kwargs)
        target = LocatorTarget(self, (QueryStage(selector),), strict=False)
        return await self.page._engine.wait_for_state(target, opts.state, opts.timeout)

    async def click(self, selector: str, options: Optional[ClickOptions] = None, **kwargs: Any) -> None:
        await self.locator(selector).click(options, **kwargs)

    async def fill(self, selector: str, value: str, options: Optional[FillOptions] = None, **kwargs: Any) -> None:
        await self.locator(selector).fill(value, options, **kwargs)

    async def text_content(self, selector: str, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> Optional[str]:
        return await self.locator(selector).text_content(options, **kwargs)

    # ---------------- navigation ----------------

    async def goto(
        self, url: str, options: Optional[NavigationOptions] = None, **kwargs: Any
    ) -> Optional["Response"]:
        opts = coerce_options(NavigationOptions, options, kwargs)
        timeout = self.page._timeouts.navigation_timeout(opts.timeout)
        result = await self._send("goto", {"url": url, "waitUntil": opts.wait_until, "timeout": timeout})
        return result.get("response")

    def _waiter(self, timeout_ms: float, description: str) -> Waiter:
        waiter = Waiter(timeout_ms, description)
        waiter.reject_on(self, DETACHED_EVENT, lambda: errors.FrameDetachedError("Navigating frame was detached!"))
        if self._page is not None:
            waiter.reject_on(self._page, "close", lambda: errors.TargetClosedError("Page closed"))
        waiter.reject_on_connection_close(self)
        return waiter

    def _check_waitable(self) -> None:
        if self.is_detached:
            raise errors.FrameDetachedError("Navigating frame was detached!")
        if self.page.is_closed:
            raise errors.TargetClosedError("Page closed")

    async def wait_for_load_state(
        self, state: LoadState = "load", options: Optional[TimeoutOptions] = None, **kwargs: Any
    ) -> None:
        opts = coerce_options(TimeoutOptions, options, kwargs)
        if state == "commit" or state in self._load_states:
            return
        self._check_waitable()
        timeout = self.page._timeouts.navigation_timeout(opts.timeout)
        with self._waiter(timeout, f"waiting for load state {state!r}") as waiter:
            await self._wait_load_state_in(waiter, state)

    async def _wait_load_state_in(self, waiter: Waiter, state: str) -> None:
        if state == "commit" or state in self._load_states:
            return
        waiter.log(f'  waiting for "{state}" event')
        await waiter.wait_for_event(self, "loadstate", lambda p: p.get("add") == state)

    async def wait_for_navigation(
        self,
        url: Optional[URLMatch] = None,
        options: Optional[NavigationOptions] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Wait for the next committed navigation whose URL matches `url`, then for
        the `wait_until` load state. Returns the `navigated` event params.
        """
        opts = coerce_options(NavigationOptions, options, kwargs)
        self._check_waitable()
        matcher = URLMatcher(url)
        timeout = self.page._timeouts.navigation_timeout(opts.timeout)
        with self._waiter(timeout, f"waiting for navigation to {matcher!r}") as waiter:
            params = await waiter.wait_for_event(
                self, "navigated", lambda p: bool(p.get("error")) or matcher.matches(p.get("url", ""))
            )
            if params.get("error"):
                raise errors.NavigationError(params["error"])
            waiter.log(f'  navigated to "{params.get("url")}"')
            await self._wait_load_state_in(waiter, opts.wait_until)
            return params

    async def wait_for_url(
        self, url: URLMatch, options: Optional[NavigationOptions] = None, **kwargs: Any
    ) -> None:
        opts = coerce_options(NavigationOptions, options, kwargs)
        if URLMatcher(url).matches(self._url):
            await self.wait_for_load_state(opts.wait_until, TimeoutOptions(timeout=opts.timeout))
            return
        await self.wait_for_navigation(url, opts)

    async def _wait_for_commit(self, timeout_ms: float) -> None:
        if self._state != FrameState.NAVIGATING:
            return
        with self._waiter(timeout_ms, "waiting for navigation to commit") as waiter:
            await waiter.wait_for_event(self, "navigated")

