"""
Playwright / Browser proxies: launch a browser and open pages.
"""
# @file purpose: Root Playwright proxy and Browser proxy.

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Optional

from ..core import errors
from ..core.objects import Handle, remote_type
from ..core.timeouts import TimeoutSettings

if TYPE_CHECKING:
    from .page import Page

logger = logging.getLogger(__name__)


@remote_type("Playwright")
class Playwright(Handle):
    async def launch(self, browser_name: str = "chromium", headless: Optional[bool] = None) -> "Browser":
        if headless is None:
            headless = self._connection.settings.headless
        result = await self._send("launch", {"browserName": browser_name, "headless": headless})
        return result["browser"]


@remote_type("Browser")
class Browser(Handle):
    def __init__(self, *args: Any) -> None:
        super().__init__(*args)
        # pages inherit these defaults
        self._timeouts = TimeoutSettings(settings=self._connection.settings)
        self._pages: List["Page"] = []
        self._closed = False

    @property
    def name(self) -> str:
        return self.initializer.get("name", "")

    @property
    def version(self) -> str:
        return self.initializer.get("version", "")

    @property
    def pages(self) -> List["Page"]:
        return list(self._pages)

    @property
    def is_connected(self) -> bool:
        return not self._closed and not self._connection.is_closed

    def set_default_timeout(self, timeout: Optional[float]) -> None:
        self._timeouts.set_default_timeout(timeout)

    def set_default_navigation_timeout(self, timeout: Optional[float]) -> None:
        self._timeouts.set_default_navigation_timeout(timeout)

    async def new_page(self) -> "Page":
        result = await self._send("newPage")
        page = result["page"]
        if not page.is_closed and page not in self._pages:
            self._pages.append(page)
        return page

    def _forget_page(self, page: "Page") -> None:
        if page in self._pages:
            self._pages.remove(page)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._send("close")
        except errors.TargetClosedError:
            logger.debug("browser %s already closed", self.guid)

    def _on_dispose(self) -> None:
        self._closed = True
