"""
Script action implementations bound to a Page:
- open_url / wait_for / wait_for_url
- click / dblclick / hover / fill / type / press / check / uncheck
- select_option / upload
- extract_text / count
- expect_text

Each action:
  1) Expects a Page + validated params (Pydantic v2)
  2) Builds a Locator and lets the actionability engine do the waiting
  3) Returns ActionResult, or raises ActionExecutionError wrapping the cause
"""

# @file purpose: Implement and register script actions.
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from autowait.api.assertions import expect
from autowait.api.locator import Locator
from autowait.api.page import Page
from autowait.core.errors import ActionExecutionError, AutowaitError
from autowait.core.registry import action
from autowait.core.result import ActionResult

from .params import (
    CheckParams,
    ClickParams,
    CountParams,
    ExpectTextParams,
    ExtractTextParams,
    FillParams,
    HoverParams,
    OpenUrlParams,
    PressParams,
    SelectOptionParams,
    SelectorParams,
    TypeParams,
    UploadParams,
    WaitForParams,
    WaitForUrlParams,
)


def _locator(page: Page, params: SelectorParams | CountParams) -> Locator:
    loc = page.locator(params.selector)
    if params.has_text:
        loc = loc.filter(has_text=params.has_text)
    nth: Optional[int] = getattr(params, "nth", None)
    if nth is not None:
        loc = loc.nth(nth)
    return loc


async def _on_element(
    name: str,
    message: str,
    params: SelectorParams,
    run: Callable[[], Awaitable[Any]],
    **meta: Any,
) -> ActionResult:
    try:
        await run()
    except AutowaitError as e:
        raise ActionExecutionError(
            action=name,
            message=message,
            selector=params.selector,
            cause=e,
        ) from e
    return ActionResult.success(step=name, selector=params.selector, **meta)


@action("open_url", params_model=OpenUrlParams)
async def open_url(page: Page, params: OpenUrlParams) -> ActionResult:
    """Navigate the page and wait for the requested load state."""
    url = str(params.url)
    try:
        response = await page.goto(url, wait_until=params.wait_until, timeout=params.timeout_ms)
    except AutowaitError as e:
        raise ActionExecutionError(action="open_url", message="failed to open url", url=url, cause=e) from e
    status = response.status if response is not None else None
    return ActionResult.success(step="open_url", url=page.url or url, status=status)


@action("wait_for", params_model=WaitForParams)
async def wait_for(page: Page, params: WaitForParams) -> ActionResult:
    """Wait until the element reaches a state (visible by default)."""
    return await _on_element(
        "wait_for",
        f"element did not become {params.state} in time",
        params,
        lambda: _locator(page, params).wait_for(state=params.state, timeout=params.timeout_ms),
        state=params.state,
    )


@action("wait_for_url", params_model=WaitForUrlParams)
async def wait_for_url(page: Page, params: WaitForUrlParams) -> ActionResult:
    """Wait until the main frame commits a URL matching a glob."""
    try:
        await page.wait_for_url(params.url, wait_until=params.wait_until, timeout=params.timeout_ms)
    except AutowaitError as e:
        raise ActionExecutionError(
            action="wait_for_url", message="url did not match in time", url=params.url, cause=e
        ) from e
    return ActionResult.success(step="wait_for_url", url=page.url)


@action("click", params_model=ClickParams)
async def click(page: Page, params: ClickParams) -> ActionResult:
    """Click an element once it is visible, stable, enabled and hit-testable."""
    return await _on_element(
        "click",
        "failed to click element",
        params,
        lambda: _locator(page, params).click(
            button=params.button,
            force=params.force,
            no_wait_after=params.no_wait_after,
            timeout=params.timeout_ms,
        ),
    )


@action("dblclick", params_model=ClickParams)
async def dblclick(page: Page, params: ClickParams) -> ActionResult:
    """Double-click an element."""
    return await _on_element(
        "dblclick",
        "failed to double-click element",
        params,
        lambda: _locator(page, params).dblclick(
            button=params.button,
            force=params.force,
            no_wait_after=params.no_wait_after,
            timeout=params.timeout_ms,
        ),
    )


@action("hover", params_model=HoverParams)
async def hover(page: Page, params: HoverParams) -> ActionResult:
    """Move the pointer over an element."""
    return await _on_element(
        "hover",
        "failed to hover element",
        params,
        lambda: _locator(page, params).hover(force=params.force, timeout=params.timeout_ms),
    )


@action("fill", params_model=FillParams)
async def fill(page: Page, params: FillParams) -> ActionResult:
    """Replace an editable element's value."""
    return await _on_element(
        "fill",
        "failed to fill element",
        params,
        lambda: _locator(page, params).fill(params.text, timeout=params.timeout_ms),
        length=len(params.text),
    )


@action("type", params_model=TypeParams)
async def type_action(page: Page, params: TypeParams) -> ActionResult:
    """
    Type text key by key. Named type_action to avoid shadowing the builtin;
    registered name is still "type".
    """
    return await _on_element(
        "type",
        "failed to input text",
        params,
        lambda: _locator(page, params).type(params.text, delay=params.delay_ms, timeout=params.timeout_ms),
        length=len(params.text),
    )


@action("press", params_model=PressParams)
async def press(page: Page, params: PressParams) -> ActionResult:
    """Press a key (or chord such as Control+A) on an element."""
    return await _on_element(
        "press",
        "failed to press key",
        params,
        lambda: _locator(page, params).press(params.key, timeout=params.timeout_ms),
        key=params.key,
    )


@action("check", params_model=CheckParams)
async def check_action(page: Page, params: CheckParams) -> ActionResult:
    """Check a checkbox/radio (no-op if already checked)."""
    return await _on_element(
        "check",
        "failed to check element",
        params,
        lambda: _locator(page, params).check(timeout=params.timeout_ms),
    )


@action("uncheck", params_model=CheckParams)
async def uncheck_action(page: Page, params: CheckParams) -> ActionResult:
    """Uncheck a checkbox (no-op if already unchecked)."""
    return await _on_element(
        "uncheck",
        "failed to uncheck element",
        params,
        lambda: _locator(page, params).uncheck(timeout=params.timeout_ms),
    )


@action("select_option", params_model=SelectOptionParams)
async def select_option_action(page: Page, params: SelectOptionParams) -> ActionResult:
    """Select options of a <select> by value."""
    try:
        selected = await _locator(page, params).select_option(params.values, timeout=params.timeout_ms)
    except AutowaitError as e:
        raise ActionExecutionError(
            action="select_option",
            message="failed to select option",
            selector=params.selector,
            details={"values": params.values},
            cause=e,
        ) from e
    return ActionResult.success(step="select_option", selector=params.selector, selected=selected)


@action("upload", params_model=UploadParams)
async def upload(page: Page, params: UploadParams) -> ActionResult:
    """Set local files on an <input type=file>."""
    try:
        await _locator(page, params).set_input_files(params.files, timeout=params.timeout_ms)
    except (AutowaitError, FileNotFoundError) as e:
        raise ActionExecutionError(
            action="upload",
            message="failed to upload file",
            selector=params.selector,
            details={"files": params.files},
            cause=e,
        ) from e
    return ActionResult.success(step="upload", selector=params.selector, files=len(params.files))


@action("extract_text", params_model=ExtractTextParams)
async def extract_text(page: Page, params: ExtractTextParams) -> ActionResult:
    """Read an element's text (textContent, or innerText with inner=true)."""
    loc = _locator(page, params)
    try:
        if params.inner:
            txt = await loc.inner_text(timeout=params.timeout_ms)
        else:
            txt = await loc.text_content(timeout=params.timeout_ms)
    except AutowaitError as e:
        raise ActionExecutionError(
            action="extract_text", message="failed to extract text", selector=params.selector, cause=e
        ) from e
    return ActionResult.extracted(txt, step="extract_text", selector=params.selector, empty=not txt)


@action("count", params_model=CountParams)
async def count(page: Page, params: CountParams) -> ActionResult:
    """Count current matches without waiting."""
    try:
        n = await _locator(page, params).count()
    except AutowaitError as e:
        raise ActionExecutionError(
            action="count", message="failed to count elements", selector=params.selector, cause=e
        ) from e
    return ActionResult.extracted(n, step="count", selector=params.selector)


@action("expect_text", params_model=ExpectTextParams)
async def expect_text(page: Page, params: ExpectTextParams) -> ActionResult:
    """Assert an element's text (whole text, or a substring with contains=true), re-checking until it holds."""
    assertion = expect(_locator(page, params), timeout=params.timeout_ms)
    check = assertion.to_contain_text if params.contains else assertion.to_have_text
    return await _on_element(
        "expect_text", "text did not match", params, lambda: check(params.text), expected=params.text
    )
