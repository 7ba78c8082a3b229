import json
from pathlib import Path

import pytest
from pydantic import BaseModel, ValidationError

import autowait.actions.impl  # noqa: F401
from autowait.core import registry
from autowait.core.action import ActionSpec, Script
from autowait.core.controller.runner import Runner
from autowait.core.errors import ActionExecutionError, StrictModeViolationError, TimeoutError
from autowait.core.result import ActionResult
from fake_driver import FakeDriver, FakeElement

SCRIPT_ACTIONS = {
    "open_url", "wait_for", "wait_for_url", "click", "dblclick", "hover", "fill", "type",
    "press", "check", "uncheck", "select_option", "upload", "extract_text", "count", "expect_text",
}


@pytest.fixture
def isolated_registry(monkeypatch):
    monkeypatch.setattr(registry, "_REGISTRY", dict(registry._REGISTRY))
    monkeypatch.setattr(registry, "_META", dict(registry._META))


def _specs(*steps: dict) -> list[ActionSpec]:
    return [ActionSpec.model_validate(s) for s in steps]


# ---------------- registry ----------------


def test_all_script_actions_registered() -> None:
    actions = registry.list_actions()
    assert SCRIPT_ACTIONS <= set(actions)
    assert actions["click"].summary.startswith("Click an element")
    assert registry.get_action("type").__name__ == "type_action"


def test_validate_spec_errors() -> None:
    with pytest.raises(KeyError):
        registry.validate_spec(ActionSpec(name="teleport"))
    with pytest.raises(ValidationError):
        registry.validate_spec(ActionSpec(name="click", args={}))
    with pytest.raises(ValidationError):
        registry.validate_spec(ActionSpec(name="click", args={"selector": "#a", "colour": "red"}))

    _meta, params = registry.validate_spec(ActionSpec(name="click", args={"selector": " #a ", "nth": 0}))
    assert params.selector == "#a" and params.button == "left"


def test_validate_script_collects_every_problem() -> None:
    problems = registry.validate_script(
        _specs(
            {"name": "click", "args": {"selector": "#ok"}},
            {"name": "nope"},
            {"name": "fill", "args": {"selector": "#q"}},
        )
    )
    assert [(i, name) for i, name, _ in problems] == [(2, "nope"), (3, "fill")]


def test_register_conflicts_and_argless_actions(isolated_registry) -> None:
    async def ping(page, params):
        """Do nothing."""
        return ActionResult.success()

    registry.register("ping", ping)
    registry.register("ping", ping)  # same function: fine
    with pytest.raises(ValueError):
        registry.register("ping", lambda page, params: None)

    assert registry.get_meta("ping").summary == "Do nothing."
    assert registry.validate_spec(ActionSpec(name="ping")) == (registry.get_meta("ping"), None)
    with pytest.raises(ValueError, match="takes no arguments"):
        registry.validate_spec(ActionSpec(name="ping", args={"x": 1}))


def test_script_load_accepts_list_or_object(tmp_path: Path) -> None:
    steps = [{"name": "click", "args": {"selector": "#go"}}]
    bare = tmp_path / "bare.json"
    bare.write_text(json.dumps(steps), encoding="utf-8")
    full = tmp_path / "full.json"
    full.write_text(json.dumps({"start_url": "https://a.test/", "default_timeout_ms": 500, "steps": steps}))

    assert Script.load(bare).steps[0].name == "click"
    script = Script.load(full)
    assert script.start_url == "https://a.test/" and script.default_timeout_ms == 500


# ---------------- runner ----------------


@pytest.mark.asyncio
async def test_runner_runs_steps_in_order(page, driver: FakeDriver) -> None:
    field = FakeElement("input", id="q")
    box = FakeElement("input", id="agree", attrs={"type": "checkbox"})
    driver.body().add(field, box, FakeElement("li", text="a"), FakeElement("li", text="b"))

    rows = await Runner().run(
        page,
        _specs(
            {"name": "fill", "args": {"selector": "#q", "text": "hi"}},
            {"name": "press", "args": {"selector": "#q", "key": "Enter"}},
            {"name": "check", "args": {"selector": "#agree"}},
            {"name": "count", "args": {"selector": "li"}},
            {"name": "extract_text", "args": {"selector": "li", "has_text": "b"}},
        ),
    )

    assert [r.ok for r in rows] == [True] * 5
    assert field.value == "hi" and box.checked
    assert rows[3].extracted == 2
    assert rows[4].extracted == "b" and rows[4].detail == "b"
    assert rows[0].detail == 'selector="#q"'


@pytest.mark.asyncio
async def test_runner_stops_on_first_failure(page) -> None:
    rows = await Runner().run(
        page,
        _specs(
            {"name": "click", "args": {"selector": "#missing", "timeout_ms": 100}},
            {"name": "count", "args": {"selector": "li"}},
        ),
    )
    assert len(rows) == 1
    assert not rows[0].ok and rows[0].attempts == 1
    assert rows[0].detail.startswith("[click] failed to click element")


@pytest.mark.asyncio
async def test_runner_keeps_going_when_asked(page) -> None:
    rows = await Runner(stop_on_failure=False).run(
        page,
        _specs(
            {"name": "click", "args": {"selector": "#missing", "timeout_ms": 50}},
            {"name": "count", "args": {"selector": "li"}},
        ),
    )
    assert [r.ok for r in rows] == [False, True]


@pytest.mark.asyncio
async def test_runner_retries_timeouts_only(page, driver: FakeDriver) -> None:
    rows = await Runner(retries=1).run(page, _specs({"name": "click", "args": {"selector": "#late", "timeout_ms": 50}}))
    assert rows[0].attempts == 2 and not rows[0].ok

    for i in range(2):
        driver.body().add(FakeElement("button", id=f"b{i}"))
    rows = await Runner(retries=3).run(page, _specs({"name": "click", "args": {"selector": "button"}}))
    assert rows[0].attempts == 1
    assert "failed to click element" in rows[0].detail


@pytest.mark.asyncio
async def test_runner_retry_can_succeed(page, driver: FakeDriver) -> None:
    button = FakeElement("button", id="late")
    # shows up during the retry backoff
    driver.later(0.2, driver.body().add, button)
    rows = await Runner(retries=2).run(page, _specs({"name": "click", "args": {"selector": "#late", "timeout_ms": 50}}))
    assert rows[0].ok and rows[0].attempts == 2
    assert button.actions


@pytest.mark.asyncio
async def test_runner_reports_invalid_spec(page) -> None:
    rows = await Runner().run(page, _specs({"name": "click", "args": {"selector": ""}}))
    assert not rows[0].ok and rows[0].attempts == 0
    assert rows[0].detail.startswith("invalid spec")


@pytest.mark.asyncio
async def test_action_errors_keep_their_cause(page, driver: FakeDriver) -> None:
    driver.body().add(FakeElement("a"), FakeElement("a"))
    fn = registry.get_action("click")
    _meta, params = registry.validate_spec(ActionSpec(name="click", args={"selector": "a"}))

    with pytest.raises(ActionExecutionError) as info:
        await fn(page, params)
    err = info.value
    assert isinstance(err.cause, StrictModeViolationError)
    assert not err.retryable
    assert str(err).startswith("[click] failed to click element | selector=a")

    _meta, params = registry.validate_spec(ActionSpec(name="click", args={"selector": "#nope", "timeout_ms": 30}))
    with pytest.raises(ActionExecutionError) as info:
        await fn(page, params)
    assert isinstance(info.value.cause, TimeoutError) and info.value.retryable


@pytest.mark.asyncio
async def test_open_url_and_wait_for_url_actions(page) -> None:
    rows = await Runner().run(
        page,
        _specs(
            {"name": "open_url", "args": {"url": "https://shop.test/cart"}},
            {"name": "wait_for_url", "args": {"url": "**/cart"}},
        ),
    )
    assert all(r.ok for r in rows)
    assert rows[0].meta["status"] == 200
    assert rows[1].detail == "https://shop.test/cart"


def test_params_models_are_pydantic() -> None:
    for meta in registry.list_actions().values():
        if meta.name in SCRIPT_ACTIONS:
            assert issubclass(meta.params_model, BaseModel)


@pytest.mark.asyncio
async def test_expect_text_step_waits_for_the_text(page, driver: FakeDriver) -> None:
    status = FakeElement("p", id="status", text="Saving...")
    driver.body().add(status)
    driver.later(0.1, setattr, status, "text", "Saved")

    rows = await Runner().run(
        page,
        _specs(
            {"name": "expect_text", "args": {"selector": "#status", "text": "Saved", "timeout_ms": 1000}},
            {"name": "expect_text", "args": {"selector": "#status", "text": "Nope", "timeout_ms": 60}},
        ),
    )
    assert rows[0].ok
    assert not rows[1].ok and rows[1].attempts == 1
    assert rows[1].detail.startswith("[expect_text] text did not match")
