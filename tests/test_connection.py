import asyncio
import logging

import pytest

from autowait.api.browser import Playwright
from autowait.core.connection import Connection
from autowait.core.errors import ConnectionClosedError, DriverError, TimeoutError as AwTimeoutError
from autowait.core.protocol import SerializedError, parse_error
from fake_driver import FakeDriver, FakeElement


@pytest.mark.asyncio
async def test_initialize_handshake_creates_root_object() -> None:
    driver = FakeDriver()
    conn = Connection(driver)
    playwright = await conn.initialize()
    try:
        assert isinstance(playwright, Playwright)
        assert driver.commands[0]["guid"] == ""
        assert driver.commands[0]["method"] == "initialize"
    finally:
        await conn.close()


@pytest.mark.asyncio
async def test_events_for_unknown_guid_are_dropped(page, driver: FakeDriver, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="autowait.core.connection")
    driver.event("nobody@1", "navigated", {"url": "x"})
    await page.wait_for_timeout(10)
    assert "dropped" in caplog.text
    # connection still serves calls
    assert await page.locator("button").count() == 0


@pytest.mark.asyncio
async def test_response_for_unknown_id_is_ignored(page, driver: FakeDriver) -> None:
    driver.push({"id": 424242, "result": {}})
    await page.wait_for_timeout(10)
    assert await page.locator("button").count() == 0


@pytest.mark.asyncio
async def test_driver_errors_are_mapped_to_local_types(page) -> None:
    # unknown method on the frame -> generic DriverError
    with pytest.raises(DriverError) as info:
        await page.main_frame._send("noSuchMethod")
    assert info.value.name == "Error"

    err = parse_error(SerializedError.model_validate({"error": {"name": "TimeoutError", "message": "slow"}}))
    assert isinstance(err, AwTimeoutError)


@pytest.mark.asyncio
async def test_pipe_closure_fails_pending_and_later_calls(page, driver: FakeDriver, session) -> None:
    driver.response_delays["querySelectorAll"] = 10
    closed: list[dict] = []
    session.connection.on_close(closed.append)

    pending = asyncio.ensure_future(page.locator("button").count())
    await asyncio.sleep(0.01)
    driver.disconnect()

    with pytest.raises(ConnectionClosedError):
        await pending
    with pytest.raises(ConnectionClosedError):
        await page.locator("button").count()
    assert closed and "reason" in closed[0]


@pytest.mark.asyncio
async def test_bad_frame_reference_does_not_stop_the_reader(page, driver: FakeDriver, session, caplog) -> None:
    driver.event(page.guid, "frameAttached", {"frame": {"guid": "frame@unknown"}})
    driver.event(page.guid, "frameDetached", {"frame": {"guid": "frame@unknown"}})
    await page.wait_for_timeout(10)

    assert "unknown frame" in caplog.text
    assert page.frames == [page.main_frame]
    assert await asyncio.wait_for(page.locator("button").count(), 1) == 0
    assert not session.connection.is_closed


@pytest.mark.asyncio
async def test_failing_create_is_logged_and_reading_continues(page, driver: FakeDriver, session, caplog) -> None:
    # a page announced without a main frame cannot be built
    driver.push(
        {
            "guid": driver.browser_guid,
            "method": "__create__",
            "params": {"type": "Page", "guid": "Page@broken", "initializer": {}},
        }
    )
    await page.wait_for_timeout(10)

    assert "failed to dispatch message" in caplog.text
    assert session.connection.objects.lookup("Page@broken") is None
    assert await asyncio.wait_for(page.locator("button").count(), 1) == 0
    assert session.connection._reader is not None and not session.connection._reader.done()


@pytest.mark.asyncio
async def test_elements_in_an_abandoned_response_are_released(page, driver: FakeDriver, session) -> None:
    driver.body().add(FakeElement("button", text="a"), FakeElement("button", text="b"))
    driver.response_delays["querySelectorAll"] = 0.05
    live = len(session.connection.objects)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(page.main_frame._query_all("button"), 0.01)
    await asyncio.sleep(0.1)

    assert len(session.connection.objects) == live
    assert driver.handles == {}
