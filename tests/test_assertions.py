import re

import pytest

from autowait.api.assertions import expect
from autowait.core import errors
from fake_driver import FakeDriver, FakeElement


@pytest.mark.asyncio
async def test_to_have_text_waits_for_the_text(page, driver: FakeDriver) -> None:
    status = FakeElement("p", id="status", text="Saving...")
    driver.body().add(status)
    driver.later(0.1, setattr, status, "text", "  Saved \n")

    await expect(page.locator("#status")).to_have_text("Saved")
    await expect(page.locator("#status")).to_have_text(re.compile(r"^\s*Sav"))
    await expect(page.locator("#status")).to_contain_text("ave")
    await expect(page.locator("#status")).to_have_text("saved", ignore_case=True)


@pytest.mark.asyncio
async def test_failed_expectation_reports_last_value(page, driver: FakeDriver) -> None:
    driver.body().add(FakeElement("p", id="status", text="Saving..."))

    with pytest.raises(errors.ExpectationError) as info:
        await expect(page.locator("#status"), timeout=100).to_have_text("Saved")
    err = info.value
    assert isinstance(err, AssertionError)
    assert err.actual == "Saving..."
    assert err.expected == "Saved"
    assert "Locator expected to have text: 'Saved'" in str(err)
    assert "Received: 'Saving...'" in str(err)
    assert err.call_log and "unexpected value 'Saving...'" in "\n".join(err.call_log)


@pytest.mark.asyncio
async def test_missing_element_is_reported(page) -> None:
    with pytest.raises(errors.ExpectationError) as info:
        await expect(page.locator("#nothing")).to_have_text("x", timeout=60)
    assert info.value.actual is None
    assert "resolved to 0 elements" in "\n".join(info.value.call_log)


@pytest.mark.asyncio
async def test_to_have_count_and_text_lists(page, driver: FakeDriver) -> None:
    ul = FakeElement("ul")
    ul.add(FakeElement("li", text="a"), FakeElement("li", text="b"))
    driver.body().add(ul)
    driver.later(0.1, ul.add, FakeElement("li", text="c"))

    items = page.locator("li")
    await expect(items).to_have_count(3)
    await expect(items).to_have_text(["a", "b", "c"])
    await expect(items).to_contain_text(["a", re.compile("b"), "c"])
    await expect(items).not_.to_have_count(2)

    with pytest.raises(errors.ExpectationError, match="Received: 3"):
        await expect(items, timeout=60).to_have_count(1)


@pytest.mark.asyncio
async def test_visibility_and_negation(page, driver: FakeDriver) -> None:
    toast = FakeElement("div", id="toast", text="hi")
    driver.body().add(toast)
    driver.later(0.1, setattr, toast, "visible", False)

    await expect(page.locator("#toast")).to_be_visible()
    await expect(page.locator("#toast")).to_be_hidden()
    await expect(page.locator("#toast")).not_.to_be_visible()
    # no match counts as hidden
    await expect(page.locator("#gone")).to_be_hidden()

    with pytest.raises(errors.ExpectationError, match="Locator expected not to be hidden"):
        await expect(page.locator("#toast"), timeout=60).not_.to_be_hidden()


@pytest.mark.asyncio
async def test_states_and_values(page, driver: FakeDriver) -> None:
    box = FakeElement("input", id="agree", attrs={"type": "checkbox"})
    field = FakeElement("input", id="q", value="hello", attrs={"name": "query"})
    button = FakeElement("button", id="go", enabled=False)
    driver.body().add(box, field, button)
    driver.later(0.1, setattr, box, "checked", True)

    await expect(page.locator("#agree")).to_be_checked()
    await expect(page.locator("#agree")).not_.to_be_checked(checked=False)
    await expect(page.locator("#q")).to_have_value("hello")
    await expect(page.locator("#q")).to_have_value(re.compile("^hel"))
    await expect(page.locator("#q")).to_have_attribute("name", "query")
    await expect(page.locator("#q")).to_be_editable()
    await expect(page.locator("#go")).to_be_disabled()

    with pytest.raises(errors.ExpectationError):
        await expect(page.locator("#go"), timeout=60).to_be_enabled()


@pytest.mark.asyncio
async def test_single_element_assertions_are_strict(page, driver: FakeDriver) -> None:
    driver.body().add(FakeElement("p", text="a"), FakeElement("p", text="b"))
    with pytest.raises(errors.StrictModeViolationError):
        await expect(page.locator("p")).to_have_text("a")


@pytest.mark.asyncio
async def test_default_timeout_comes_from_settings(page, driver: FakeDriver, test_settings) -> None:
    test_settings.expect_timeout_ms = 50
    driver.body().add(FakeElement("p", id="status", text="Saving..."))
    with pytest.raises(errors.ExpectationError, match="Received: 'Saving...'"):
        await expect(page.locator("#status")).to_have_text("Saved")
