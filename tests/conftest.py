"""Shared fixtures: a fake driver wired to a real Session / Connection."""

from __future__ import annotations

from typing import AsyncIterator

import pytest
import pytest_asyncio

from autowait.api.page import Page
from autowait.api.session import Session
from autowait.core.settings import Settings
from fake_driver import FakeDriver


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        default_timeout_ms=2_000,
        poll_interval_ms=20,
        settle_timeout_ms=500,
        debug_protocol=True,
    )


@pytest_asyncio.fixture
async def driver() -> FakeDriver:
    return FakeDriver()


@pytest_asyncio.fixture
async def session(driver: FakeDriver, test_settings: Settings) -> AsyncIterator[Session]:
    s = Session(transport=driver, settings=test_settings)
    await s.start()
    try:
        yield s
    finally:
        await s.stop()


@pytest_asyncio.fixture
async def page(session: Session) -> Page:
    return await session.new_page()
