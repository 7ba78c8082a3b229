"""
Session: driver process + connection + browser, started and stopped together.

    async with Session() as session:
        page = await session.new_page()
        await page.goto("https://example.com")
        await page.locator("text=More information").click()

A Session may also wrap an already-open transport (tests, remote drivers).
"""
# @file purpose: Lifecycle wrapper bundling driver, connection and browser.

from __future__ import annotations

import logging
from typing import Any, Optional

from ..core import errors
from ..core.connection import Connection
from ..core.settings import Settings, settings as default_settings
from ..io.driver import DriverProcess
from .browser import Browser, Playwright
from .page import Page

logger = logging.getLogger(__name__)


class Session:
    def __init__(
        self,
        *,
        browser_name: str = "chromium",
        headless: Optional[bool] = None,
        transport: Any = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.browser_name = browser_name
        self.headless = self.settings.headless if headless is None else headless
        self._transport = transport
        self._driver: Optional[DriverProcess] = None
        self.connection: Optional[Connection] = None
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    # ---------------- lifecycle ----------------

    async def start(self) -> None:
        """Spawn the driver (unless a transport was given), handshake, launch the browser."""
        if self.browser is not None:
            return
        transport = self._transport
        if transport is None:
            self._driver = DriverProcess(settings=self.settings)
            transport = await self._driver.start()
        self.connection = Connection(transport, settings=self.settings)
        self.playwright = await self.connection.initialize()
        self.browser = await self.playwright.launch(self.browser_name, headless=self.headless)
        logger.info("launched %s (headless=%s)", self.browser_name, self.headless)

    async def stop(self) -> None:
        try:
            if self.browser is not None and self.browser.is_connected:
                await self.browser.close()
        except errors.ConnectionClosedError as e:
            logger.debug("browser close skipped: %s", e)
        finally:
            if self.connection is not None:
                await self.connection.close()
            if self._driver is not None:
                await self._driver.stop()
            self.browser = None

    async def new_page(self) -> Page:
        if self.browser is None:
            raise RuntimeError("Session not started. Call start() first.")
        return await self.browser.new_page()

    async def __aenter__(self) -> "Session":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
