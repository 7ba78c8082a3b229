"""
Page proxy: frame tree owner, public page events and the per-page engine.

- 维护 frame 树（main_frame 为根；frameAttached / frameDetached 事件增删）
- 公共事件通过 Subscription 令牌订阅：page.on(PageEvent.LOAD, cb)
- 每个 Page 持有自己的 TimeoutSettings 与 ActionabilityEngine
- 大部分操作委托给 main_frame
"""
# @file purpose: Page proxy with frame tree, events, timeouts and delegation.

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from ..core import errors
from ..core.actionability import ActionabilityEngine
from ..core.dispatcher import Listener, Subscription
from ..core.objects import Handle, remote_type
from ..core.options import (
    ClickOptions,
    FillOptions,
    LoadState,
    NavigationOptions,
    TimeoutOptions,
    WaitForOptions,
)
from ..core.timeouts import TimeoutSettings
from ..core.url_matcher import URLMatch
# importing registers the remote types a page hands out
from .browser import Browser
from .element_handle import ElementHandle
from .frame import Frame, FrameState
from .network import Response

if TYPE_CHECKING:
    from .locator import Locator

logger = logging.getLogger(__name__)


class PageEvent(str, Enum):
    CLOSE = "close"
    FRAME_ATTACHED = "frameattached"
    FRAME_DETACHED = "framedetached"
    FRAME_NAVIGATED = "framenavigated"
    DOMCONTENTLOADED = "domcontentloaded"
    LOAD = "load"


@remote_type("Page")
class Page(Handle):
    def __init__(self, *args: Any) -> None:
        super().__init__(*args)
        main_ref = self.initializer.get("mainFrame") or {}
        main_frame = self._connection.objects.lookup(main_ref.get("guid", ""))
        if not isinstance(main_frame, Frame):
            raise errors.DriverError("ProtocolError", f"Page {self.guid!r} announced without a known main frame")
        self._main_frame: Frame = main_frame
        main_frame._page = self
        self._frames: List[Frame] = [main_frame]
        self._closed = False
        self._navigation_counter = 0
        parent_timeouts = getattr(self.parent, "_timeouts", None)
        self._timeouts = TimeoutSettings(parent_timeouts, settings=self._connection.settings)
        self._engine = ActionabilityEngine(self._timeouts, settings=self._connection.settings)

    def __repr__(self) -> str:
        return f"<Page url={self.url!r}{' closed' if self._closed else ''}>"

    # ---------------- properties ----------------

    @property
    def main_frame(self) -> Frame:
        return self._main_frame

    @property
    def frames(self) -> List[Frame]:
        return list(self._frames)

    @property
    def url(self) -> str:
        return self._main_frame.url

    @property
    def is_closed(self) -> bool:
        return self._closed

    def frame(self, name: Optional[str] = None, url: Optional[str] = None) -> Optional[Frame]:
        from ..core.url_matcher import URLMatcher

        matcher = URLMatcher(url) if url is not None else None
        for f in self._frames:
            if name is not None and f.name != name:
                continue
            if matcher is not None and not matcher.matches(f.url):
                continue
            return f
        return None

    # ---------------- events ----------------

    def on(self, event: Union[PageEvent, str], listener: Listener) -> Subscription:
        """Subscribe to a public page event; returns the token used to unsubscribe."""
        return super().on(PageEvent(event).value, listener)

    def _on_event(self, event: str, params: Dict[str, Any]) -> None:
        if event in ("frameAttached", "frameDetached"):
            frame = params.get("frame")
            if not isinstance(frame, Frame):
                logger.warning("page %s: %s for unknown frame %r ignored", self.guid, event, frame)
            elif event == "frameAttached":
                self._on_frame_attached(frame)
            else:
                self._on_frame_detached(frame)
        elif event == "close":
            # the connection delivers "close" to listeners right after this hook
            self._mark_closed(emit=False)

    def _on_frame_attached(self, frame: Frame) -> None:
        if frame in self._frames:
            return
        frame._page = self
        self._frames.append(frame)
        self._emit(PageEvent.FRAME_ATTACHED.value, {"frame": frame})

    def _on_frame_detached(self, frame: Frame) -> None:
        if frame not in self._frames:
            return
        self._frames.remove(frame)
        frame._on_detached()
        self._emit(PageEvent.FRAME_DETACHED.value, {"frame": frame})

    def _mark_closed(self, emit: bool) -> None:
        if self._closed:
            return
        self._closed = True
        logger.debug("page %s closed", self.guid)
        if isinstance(self.parent, Browser):
            self.parent._forget_page(self)
        if emit:
            self._emit(PageEvent.CLOSE.value)

    def _on_dispose(self) -> None:
        self._mark_closed(emit=True)

    # ---------------- navigation bookkeeping ----------------

    def _next_navigation(self) -> int:
        self._navigation_counter += 1
        return self._navigation_counter

    def _navigation_mark(self) -> int:
        return self._navigation_counter

    def _frames_navigating_since(self, mark: int) -> List[Frame]:
        return [
            f for f in self._frames
            if f.state == FrameState.NAVIGATING and f._navigation_seq > mark
        ]

    # ---------------- timeouts ----------------

    def set_default_timeout(self, timeout: Optional[float]) -> None:
        self._timeouts.set_default_timeout(timeout)

    def set_default_navigation_timeout(self, timeout: Optional[float]) -> None:
        self._timeouts.set_default_navigation_timeout(timeout)

    # ---------------- delegation to the main frame ----------------

    def locator(self, selector: str) -> "Locator":
        return self._main_frame.locator(selector)

    async def goto(self, url: str, options: Optional[NavigationOptions] = None, **kwargs: Any) -> Optional["Response"]:
        return await self._main_frame.goto(url, options, **kwargs)

    async def query_selector(self, selector: str) -> Optional["ElementHandle"]:
        return await self._main_frame.query_selector(selector)

    async def query_selector_all(self, selector: str) -> List["ElementHandle"]:
        return await self._main_frame.query_selector_all(selector)

    async def wait_for_selector(
        self, selector: str, options: Optional[WaitForOptions] = None, **kwargs: Any
    ) -> Optional["ElementHandle"]:
        return await self._main_frame.wait_for_selector(selector, options, **kwargs)

    async def click(self, selector: str, options: Optional[ClickOptions] = None, **kwargs: Any) -> None:
        await self._main_frame.click(selector, options, **kwargs)

    async def fill(self, selector: str, value: str, options: Optional[FillOptions] = None, **kwargs: Any) -> None:
        await self._main_frame.fill(selector, value, options, **kwargs)

    async def text_content(self, selector: str, options: Optional[TimeoutOptions] = None, **kwargs: Any) -> Optional[str]:
        return await self._main_frame.text_content(selector, options, **kwargs)

    async def wait_for_load_state(
        self, state: LoadState = "load", options: Optional[TimeoutOptions] = None, **kwargs: Any
    ) -> None:
        await self._main_frame.wait_for_load_state(state, options, **kwargs)

    async def wait_for_navigation(
        self, url: Optional[URLMatch] = None, options: Optional[NavigationOptions] = None, **kwargs: Any
    ) -> Dict[str, Any]:
        return await self._main_frame.wait_for_navigation(url, options, **kwargs)

    async def wait_for_url(self, url: URLMatch, options: Optional[NavigationOptions] = None, **kwargs: Any) -> None:
        await self._main_frame.wait_for_url(url, options, **kwargs)

    async def wait_for_timeout(self, timeout: float) -> None:
        await asyncio.sleep(timeout / 1000)

    # ---------------- lifecycle ----------------

    async def close(self) -> None:
        if self._closed:
            return
        try:
            await self._send("close")
        except errors.TargetClosedError:
            pass
        self._mark_closed(emit=True)
