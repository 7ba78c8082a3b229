import pytest
from pydantic import TypeAdapter

import autowait.actions.impl  # noqa: F401  注册动作
from autowait.core import registry
from autowait.core.action import ActionSpec
from fake_driver import FakeDriver, FakeElement


def _search_page(body: FakeElement) -> None:
    q = FakeElement("input", id="q")
    go = FakeElement("button", id="go", text="Search")
    # the result shows up only after the click, with whatever was typed
    go.hooks["click"] = lambda el, p: body.add(FakeElement("div", id="result", text=q.value))
    body.add(q, go)


@pytest.mark.asyncio
async def test_smoke_end_to_end(page, driver: FakeDriver) -> None:
    driver.routes["https://shop.test/search"] = _search_page
    data = [
        {"name": "open_url", "args": {"url": "https://shop.test/search"}},
        {"name": "type", "args": {"selector": "#q", "text": "hello"}},
        {"name": "click", "args": {"selector": "#go"}},
        {"name": "wait_for", "args": {"selector": "#result", "timeout_ms": 5000}},
        {"name": "extract_text", "args": {"selector": "#result"}},
    ]
    specs = TypeAdapter(list[ActionSpec]).validate_python(data)

    extracted = None
    for spec in specs:
        _meta, params = registry.validate_spec(spec)
        fn = registry.get_action(spec.name)
        res = await fn(page, params)
        assert res.ok
        if spec.name == "extract_text":
            extracted = res.extracted_content

    assert extracted == "hello"
    assert page.url == "https://shop.test/search"
