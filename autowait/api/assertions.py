"""
Web-first assertions: re-check a locator until the expectation holds.

    await expect(page.locator("#status")).to_have_text("Saved")
    await expect(page.locator("li")).not_.to_have_count(0)

- 每次检查都重新解析 locator 并读取当前值（与 actionability 引擎同一轮询节奏）
- 单元素断言遵循 strict 模式：匹配到多个元素立即失败，不重试
- 超时后抛出 ExpectationError（也是 AssertionError），附带最后观察到的值与调用日志
- 默认超时取 Settings.expect_timeout_ms，可被 expect(..., timeout=) 或单次调用覆盖
"""
# @file purpose: Auto-retrying assertions over locators.

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Sequence, Union

from ..core import errors
from ..core.actionability import ActionabilityState
from ..core.resolver import TextMatch, _release_all, resolve

if TYPE_CHECKING:
    from .element_handle import ElementHandle
    from .locator import Locator

logger = logging.getLogger(__name__)

ExpectedText = Union[TextMatch, Sequence[TextMatch]]


def expect(locator: "Locator", timeout: Optional[float] = None) -> "LocatorAssertions":
    """Entry point: ``await expect(locator).to_be_visible()``."""
    return LocatorAssertions(locator, timeout)


def _normalize_ws(text: str) -> str:
    return " ".join(text.split())


def _text_ok(actual: Optional[str], expected: TextMatch, *, substring: bool, ignore_case: bool) -> bool:
    if actual is None:
        return False
    if isinstance(expected, re.Pattern):
        if ignore_case and not expected.flags & re.IGNORECASE:
            expected = re.compile(expected.pattern, expected.flags | re.IGNORECASE)
        return expected.search(actual) is not None
    got, want = _normalize_ws(actual), _normalize_ws(expected)
    if ignore_case:
        got, want = got.lower(), want.lower()
    return want in got if substring else got == want


def _value_ok(actual: Optional[str], expected: TextMatch) -> bool:
    # exact for strings, search for patterns; no whitespace normalisation
    if actual is None:
        return False
    if isinstance(expected, re.Pattern):
        return expected.search(actual) is not None
    return actual == expected


def _format(value: Any) -> str:
    if isinstance(value, re.Pattern):
        return f"/{value.pattern}/"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_format(v) for v in value) + "]"
    return repr(value)


class _Missing(Exception):
    """The locator resolved to no element this round."""


class LocatorAssertions:
    def __init__(self, locator: "Locator", timeout: Optional[float] = None, is_not: bool = False) -> None:
        self._locator = locator
        self._timeout = timeout
        self._is_not = is_not

    @property
    def not_(self) -> "LocatorAssertions":
        return LocatorAssertions(self._locator, self._timeout, not self._is_not)

    # ---------------- core loop ----------------

    def _timeout_ms(self, timeout: Optional[float]) -> float:
        if timeout is not None:
            return timeout
        if self._timeout is not None:
            return self._timeout
        return self._locator.frame._connection.settings.expect_timeout_ms

    async def _expect(
        self,
        title: str,
        expected: Any,
        read: Callable[[], Awaitable[Any]],
        matches: Callable[[Any], bool],
        timeout: Optional[float],
    ) -> None:
        locator = self._locator
        if self._is_not:
            title = title.replace("expected to", "expected not to")
        observed: List[Any] = [None]

        async def check() -> ActionabilityState:
            state = ActionabilityState()
            try:
                value = await read()
            except _Missing:
                observed[0] = None
                state.attached = False
                if self._is_not:
                    return state
                return state.fail(f"{locator.description} resolved to 0 elements")
            except errors.ElementDetachedError:
                state.attached = False
                return state.fail("element is not attached to the DOM")
            observed[0] = value
            state.attached = True
            if matches(value) != self._is_not:
                return state
            return state.fail(f"unexpected value {_format(value)}")

        # "Locator expected not to have text" -> "not have text"
        goal = title.split("expected ", 1)[1].replace("not to ", "not ")
        if goal.startswith("to "):
            goal = goal[3:]
        try:
            await locator._engine.poll(locator.description, goal, self._timeout_ms(timeout), check)
        except errors.TimeoutError as e:
            message = f"{title}: {_format(expected)}\nReceived: {_format(observed[0])}\n"
            if e.call_log:
                message += "Call log:\n" + "\n".join(f"  - {line}" for line in e.call_log)
            logger.debug("expectation failed for %s", locator.description)
            raise errors.ExpectationError(
                message,
                selector=locator.description,
                expected=expected,
                actual=observed[0],
                call_log=e.call_log,
            ) from None

    async def _single(self, read: Callable[["ElementHandle"], Awaitable[Any]]) -> Any:
        locator = self._locator
        handles = await resolve(locator.frame, locator.stages)
        try:
            if len(handles) > 1:
                raise errors.StrictModeViolationError(
                    locator.description, len(handles), [h.preview for h in handles[:10]]
                )
            if not handles:
                raise _Missing()
            return await read(handles[0])
        finally:
            _release_all(handles)

    async def _all_texts(self, use_inner_text: bool) -> List[str]:
        if use_inner_text:
            return await self._locator.all_inner_texts()
        return await self._locator.all_text_contents()

    # ---------------- text ----------------

    async def _text(
        self,
        expected: ExpectedText,
        *,
        substring: bool,
        title: str,
        use_inner_text: bool,
        ignore_case: bool,
        timeout: Optional[float],
    ) -> None:
        method = "innerText" if use_inner_text else "textContent"
        if isinstance(expected, (list, tuple)):
            wanted = list(expected)

            def all_match(texts: List[str]) -> bool:
                return len(texts) == len(wanted) and all(
                    _text_ok(t, w, substring=substring, ignore_case=ignore_case) for t, w in zip(texts, wanted)
                )

            await self._expect(title, wanted, lambda: self._all_texts(use_inner_text), all_match, timeout)
            return
        await self._expect(
            title,
            expected,
            lambda: self._single(lambda h: h._read(method)),
            lambda text: _text_ok(text, expected, substring=substring, ignore_case=ignore_case),
            timeout,
        )

    async def to_have_text(
        self,
        expected: ExpectedText,
        *,
        use_inner_text: bool = False,
        ignore_case: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        """Whole text equals `expected` (whitespace normalized); a regex is searched."""
        await self._text(
            expected,
            substring=False,
            title="Locator expected to have text",
            use_inner_text=use_inner_text,
            ignore_case=ignore_case,
            timeout=timeout,
        )

    async def to_contain_text(
        self,
        expected: ExpectedText,
        *,
        use_inner_text: bool = False,
        ignore_case: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        await self._text(
            expected,
            substring=True,
            title="Locator expected to contain text",
            use_inner_text=use_inner_text,
            ignore_case=ignore_case,
            timeout=timeout,
        )

    # ---------------- values ----------------

    async def to_have_count(self, count: int, *, timeout: Optional[float] = None) -> None:
        await self._expect(
            "Locator expected to have count", count, self._locator.count, lambda n: n == count, timeout
        )

    async def to_have_value(self, value: TextMatch, *, timeout: Optional[float] = None) -> None:
        await self._expect(
            "Locator expected to have value",
            value,
            lambda: self._single(lambda h: h._read("inputValue")),
            lambda got: _value_ok(got, value),
            timeout,
        )

    async def to_have_attribute(self, name: str, value: TextMatch, *, timeout: Optional[float] = None) -> None:
        await self._expect(
            f"Locator expected to have attribute '{name}'",
            value,
            lambda: self._single(lambda h: h._read("getAttribute", {"name": name})),
            lambda got: _value_ok(got, value),
            timeout,
        )

    # ---------------- states ----------------

    async def _state(self, title: str, state: str, want: bool, timeout: Optional[float]) -> None:
        await self._expect(
            title,
            want,
            lambda: self._single(lambda h: h._element_state(state)),
            lambda got: bool(got) == want,
            timeout,
        )

    async def to_be_visible(self, *, timeout: Optional[float] = None) -> None:
        await self._expect(
            "Locator expected to be visible", True, self._visible, lambda got: got is True, timeout
        )

    async def to_be_hidden(self, *, timeout: Optional[float] = None) -> None:
        # no match counts as hidden
        await self._expect(
            "Locator expected to be hidden", False, self._visible, lambda got: got is False, timeout
        )

    async def _visible(self) -> bool:
        try:
            return await self._single(lambda h: h._element_state("visible"))
        except (_Missing, errors.ElementDetachedError):
            return False

    async def to_be_checked(self, *, checked: bool = True, timeout: Optional[float] = None) -> None:
        title = "Locator expected to be checked" if checked else "Locator expected to be unchecked"
        await self._state(title, "checked", checked, timeout)

    async def to_be_enabled(self, *, timeout: Optional[float] = None) -> None:
        await self._state("Locator expected to be enabled", "enabled", True, timeout)

    async def to_be_disabled(self, *, timeout: Optional[float] = None) -> None:
        await self._state("Locator expected to be disabled", "enabled", False, timeout)

    async def to_be_editable(self, *, timeout: Optional[float] = None) -> None:
        await self._state("Locator expected to be editable", "editable", True, timeout)
