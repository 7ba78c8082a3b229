"""
定义项目级异常类型，统一错误语义与捕获边界。
- AutowaitError: 所有自定义异常的基类
- TimeoutError: 可重试的超时（携带最后一次可操作性快照与调用日志）
- StrictModeViolationError: 单目标操作匹配到多个元素（致命，不重试）
- TargetClosedError / FrameDetachedError: 句柄或 frame 已失效（本次调用致命，连接仍可用）
- ConnectionClosedError: 与 driver 的通道已断开（对该连接上所有调用致命）
- ElementDetachedError / NotActionableError: driver 报告的瞬态状态，Locator 会重试
- CheckStateError: 点击后 checkbox 状态未改变
- ExpectationError: expect() 断言在超时内未成立（同时是 AssertionError）
"""
# @file purpose: Define error taxonomy for autowait.

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .actionability import ActionabilityState


class AutowaitError(Exception):
    """Base class for all custom errors in autowait."""


class TimeoutError(AutowaitError):
    """
    Raised when an actionability check or a wait predicate never held within its bound.
    The caller must treat it as "outcome unknown": the driver may still be completing
    a command that was abandoned locally.
    """

    def __init__(
        self,
        message: str,
        *,
        selector: str | None = None,
        state: ActionabilityState | None = None,
        call_log: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.selector: str | None = selector
        self.state: ActionabilityState | None = state
        self.call_log: list[str] = call_log or []


class StrictModeViolationError(AutowaitError):
    """Raised when a single-target operation resolves to more than one element."""

    def __init__(self, selector: str, count: int, previews: list[str] | None = None) -> None:
        self.selector = selector
        self.count = count
        self.previews: list[str] = previews or []
        message = f"strict mode violation: {selector} resolved to {count} elements"
        if self.previews:
            lines = "\n".join(f"    {i}) {p}" for i, p in enumerate(self.previews, start=1))
            message = f"{message}:\n{lines}"
        super().__init__(message)


class TargetClosedError(AutowaitError):
    """Raised when the page, frame or handle a call targets has been closed or disposed."""


class FrameDetachedError(TargetClosedError):
    """Raised when the frame an operation runs in detaches while it is pending."""


class ConnectionClosedError(AutowaitError):
    """Raised for every pending and future call once the driver channel is gone."""


class ElementDetachedError(AutowaitError):
    """Element is not attached to the DOM (transient for locators, fatal for handles)."""


class NotActionableError(AutowaitError):
    """Driver reported the target moved or is not actionable yet at dispatch time."""


class CheckStateError(AutowaitError):
    """Raised when clicking a checkbox or radio did not move it to the requested state."""


class ExpectationError(AutowaitError, AssertionError):
    """
    Raised by expect() when the expected locator condition never held within its bound.
    Carries the last value observed, so test output shows what the page really had.
    """

    def __init__(
        self,
        message: str,
        *,
        selector: str,
        expected: Any = None,
        actual: Any = None,
        call_log: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.selector = selector
        self.expected = expected
        self.actual = actual
        self.call_log: list[str] = call_log or []


class NavigationError(AutowaitError):
    """Raised when a navigation the caller waits for fails in the driver."""


class DriverError(AutowaitError):
    """Error reported by the driver that has no dedicated local type."""

    def __init__(self, name: str, message: str, stack: str | None = None) -> None:
        super().__init__(f"{name}: {message}")
        self.name = name
        self.stack = stack


class ActionExecutionError(AutowaitError):
    """
    Raised when a script action fails to execute.
    脚本动作执行期错误（超时、严格模式、目标关闭等）。
    统一封装上下文，便于 CLI/编排层打印一致的信息与诊断。
    """

    def __init__(
        self,
        action: str,
        message: str,
        *,
        selector: str | None = None,
        url: str | None = None,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.action: str = action
        self.selector: str | None = selector
        self.url: str | None = url
        self.details: dict[str, Any] = details or {}
        self.cause: BaseException | None = cause

    @property
    def retryable(self) -> bool:
        # 仅超时（结果未知）可整体重试
        return isinstance(self.cause, TimeoutError)

    def __str__(self) -> str:
        parts = [f"[{self.action}] {super().__str__()}"]
        if self.selector:
            parts.append(f"selector={self.selector}")
        if self.url:
            parts.append(f"url={self.url}")
        if self.details:
            kv = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            parts.append(f"details={{ {kv} }}")
        return " | ".join(parts)
