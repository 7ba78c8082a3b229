import pytest
from pydantic import ValidationError

from autowait.core.options import ClickOptions, FillOptions, Position, WaitForOptions, coerce_options
from autowait.core.settings import Settings
from autowait.core.timeouts import TimeoutSettings


def test_options_are_frozen_and_strict() -> None:
    opts = ClickOptions(timeout=500, position=Position(x=1, y=2))
    with pytest.raises(ValidationError):
        opts.timeout = 10  # type: ignore[misc]
    with pytest.raises(ValidationError):
        ClickOptions(timeuot=5)  # type: ignore[call-arg]
    with pytest.raises(ValidationError):
        ClickOptions(timeout=-1)


def test_coerce_merges_keywords_over_record() -> None:
    base = ClickOptions(timeout=500, force=True)
    assert coerce_options(ClickOptions, base, {}) is base

    merged = coerce_options(ClickOptions, base, {"timeout": 100})
    assert merged.timeout == 100 and merged.force is True

    built = coerce_options(FillOptions, None, {"no_wait_after": True})
    assert built.no_wait_after and built.timeout is None


def test_wait_for_defaults_to_visible() -> None:
    assert WaitForOptions().state == "visible"
    with pytest.raises(ValidationError):
        WaitForOptions(state="stable")  # type: ignore[arg-type]


def test_timeout_chain() -> None:
    cfg = Settings(default_timeout_ms=30_000, navigation_timeout_ms=None)
    browser = TimeoutSettings(settings=cfg)
    page = TimeoutSettings(browser, settings=cfg)

    assert page.timeout() == 30_000
    assert page.navigation_timeout() == 30_000

    browser.set_default_timeout(5_000)
    assert page.timeout() == 5_000
    assert page.navigation_timeout() == 5_000

    page.set_default_navigation_timeout(1_000)
    assert page.navigation_timeout() == 1_000
    assert page.timeout() == 5_000
    assert page.timeout(0) == 0
    assert page.timeout(250) == 250


def test_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("AW_POLL_INTERVAL_MS", "50")
    monkeypatch.setenv("AW_HEADLESS", "false")
    cfg = Settings()
    assert cfg.poll_interval_ms == 50
    assert cfg.headless is False
