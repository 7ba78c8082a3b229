import asyncio
import re

import pytest

from autowait.core.errors import TimeoutError as AwTimeoutError
from autowait.core.resolver import AndStage, FilterStage, IndexStage, OrStage, QueryStage, describe_chain, text_matches
from fake_driver import FakeDriver, FakeElement


def _todo_list(driver: FakeDriver) -> None:
    ul = FakeElement("ul", id="todos")
    ul.add(
        FakeElement("li", classes=("item",), text="Buy  milk"),
        FakeElement("li", classes=("item", "done"), text="Write tests").add(FakeElement("input", attrs={"type": "checkbox"})),
        FakeElement("li", classes=("item",), text="Ship it", visible=False),
    )
    driver.body().add(ul)


def test_describe_chain() -> None:
    stages = (QueryStage("#list"), QueryStage("li"), FilterStage(has_text="Done"), IndexStage(0))
    assert describe_chain(stages) == "locator('#list').locator('li').filter(has_text='Done').first"
    assert describe_chain((QueryStage("a"), IndexStage(-1))) == "locator('a').last"
    assert describe_chain((QueryStage("a"), IndexStage(2))) == "locator('a').nth(2)"
    assert (
        describe_chain((QueryStage("a"), AndStage((QueryStage(".x"),)), OrStage((QueryStage("b"),))))
        == "locator('a').and_(locator('.x')).or_(locator('b'))"
    )


def test_text_matching_rules() -> None:
    assert text_matches("Buy   Milk\n", "buy milk")
    assert not text_matches("Buy milk", "bread")
    assert text_matches("Order #42", re.compile(r"#\d+"))
    assert not text_matches(None, "x")


@pytest.mark.asyncio
async def test_locator_is_lazy_and_equal_by_value(page, driver: FakeDriver) -> None:
    a = page.locator("#todos").locator("li").first()
    b = page.locator("#todos").locator("li").first()
    assert a == b
    assert driver.frame_queries() == 0


@pytest.mark.asyncio
async def test_chained_queries_and_index(page, driver: FakeDriver) -> None:
    _todo_list(driver)
    items = page.locator("#todos").locator("li")
    assert await items.count() == 3
    assert await items.first().text_content() == "Buy  milk"
    assert await items.last().text_content() == "Ship it"
    assert await items.nth(1).text_content() == "Write tests"
    assert await items.nth(7).count() == 0
    assert await items.nth(-4).count() == 0


@pytest.mark.asyncio
async def test_filters(page, driver: FakeDriver) -> None:
    _todo_list(driver)
    items = page.locator("li")
    assert await items.filter(has_text="buy milk").count() == 1
    assert await items.filter(has_not_text=re.compile("^Buy")).count() == 2
    assert await items.filter(visible=True).count() == 2
    assert await items.filter(has=page.locator("input")).count() == 1
    assert await items.filter(has_not=page.locator("input")).count() == 2


@pytest.mark.asyncio
async def test_nested_query_deduplicates_by_node(page, driver: FakeDriver) -> None:
    outer = FakeElement("div", classes=("box",))
    inner = FakeElement("div", classes=("box",))
    inner.add(FakeElement("span", id="only"))
    outer.add(inner)
    driver.body().add(outer)

    # both boxes contain the span: it must be reported once
    assert await page.locator(".box").locator("span").count() == 1


@pytest.mark.asyncio
async def test_intermediate_handles_are_released(page, driver: FakeDriver) -> None:
    _todo_list(driver)
    await page.locator("#todos").locator("li").count()
    await page.wait_for_timeout(20)
    # every handle the resolver produced was given back to the driver
    assert driver.handles == {}


@pytest.mark.asyncio
async def test_has_locator_must_share_the_frame(page, driver: FakeDriver) -> None:
    driver.attach_frame(name="inner")
    await page.wait_for_timeout(10)
    other = page.frame(name="inner")
    with pytest.raises(ValueError):
        page.locator("li").filter(has=other.locator("input"))


@pytest.mark.asyncio
async def test_timed_out_resolution_releases_its_handles(page, driver: FakeDriver, session) -> None:
    ul = FakeElement("ul")
    ul.add(*[FakeElement("li", text=f"item {i}") for i in range(5)])
    driver.body().add(ul)
    live = len(session.connection.objects)
    driver.response_delays["textContent"] = 0.05

    with pytest.raises(AwTimeoutError):
        await page.locator("li").filter(has_text="nope").click(timeout=120)
    await asyncio.sleep(0.5)

    assert len(session.connection.objects) == live
    assert driver.handles == {}


@pytest.mark.asyncio
async def test_and_or_composition(page, driver: FakeDriver) -> None:
    _todo_list(driver)
    driver.body().add(FakeElement("button", id="add", text="Add"))

    done = page.locator("li").and_(page.locator(".done"))
    assert await done.count() == 1
    assert await done.text_content() == "Write tests"
    assert await page.locator("li").and_(page.locator("button")).count() == 0

    either = page.locator("#add").or_(page.locator(".item"))
    assert await either.count() == 4
    assert await either.first().text_content() == "Add"
    # overlapping matches are reported once
    assert await page.locator("li").or_(page.locator(".done")).count() == 3
    await page.wait_for_timeout(20)
    assert driver.handles == {}


@pytest.mark.asyncio
async def test_composition_requires_the_same_frame(page, driver: FakeDriver) -> None:
    driver.attach_frame(name="inner")
    await page.wait_for_timeout(10)
    other = page.frame(name="inner")
    with pytest.raises(ValueError):
        page.locator("li").and_(other.locator("li"))
    with pytest.raises(ValueError):
        page.locator("li").or_(other.locator("li"))


@pytest.mark.asyncio
async def test_all_text_contents_and_inner_texts(page, driver: FakeDriver) -> None:
    _todo_list(driver)
    items = page.locator("li")
    assert await items.all_text_contents() == ["Buy  milk", "Write tests", "Ship it"]
    # hidden elements have no rendered text
    assert await items.all_inner_texts() == ["Buy  milk", "Write tests", ""]
    assert await page.locator("table").all_text_contents() == []
