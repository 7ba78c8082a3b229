"""
脚本动作注册表：
- 以 name 为键注册异步动作函数 async fn(page, params) -> ActionResult
- 绑定 params_model (Pydantic v2)，执行前用 TypeAdapter 强校验
- validate_script() 一次性校验整份脚本，收集全部错误而非遇错即停
"""
# @file purpose: Provide script action registry, metadata, and spec validation.

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, TypeAdapter, ValidationError

from .action import ActionSpec

ActionFn = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class ActionMeta:
    name: str
    params_model: Optional[Type[BaseModel]] = None
    summary: str = ""


_REGISTRY: Dict[str, ActionFn] = {}
_META: Dict[str, ActionMeta] = {}


def _summary(fn: ActionFn) -> str:
    doc = inspect.getdoc(fn) or ""
    return doc.splitlines()[0] if doc else ""


def action(
    name: str, *, params_model: Optional[Type[BaseModel]] = None
) -> Callable[[ActionFn], ActionFn]:
    """
    装饰器：注册动作函数及其参数模型。
        @action("click", params_model=ClickParams)
        async def click(page, params): ...
    """

    def deco(fn: ActionFn) -> ActionFn:
        register(name, fn, params_model=params_model)
        return fn

    return deco


def register(name: str, fn: ActionFn, *, params_model: Optional[Type[BaseModel]] = None) -> None:
    if name in _REGISTRY and _REGISTRY[name] is not fn:
        raise ValueError(f"Action already registered: {name}")
    _REGISTRY[name] = fn
    _META[name] = ActionMeta(name=name, params_model=params_model, summary=_summary(fn))


def get_action(name: str) -> ActionFn:
    try:
        return _REGISTRY[name]
    except KeyError as e:
        raise KeyError(f"Action not registered: {name}") from e


def get_meta(name: str) -> ActionMeta:
    try:
        return _META[name]
    except KeyError as e:
        raise KeyError(f"Action not registered (no metadata): {name}") from e


def list_actions() -> Dict[str, ActionMeta]:
    return dict(_META)


def validate_spec(spec: ActionSpec) -> Tuple[ActionMeta, Optional[BaseModel]]:
    """
    1) 动作是否已注册（否则 KeyError）
    2) 若绑定了 params_model，用其校验 args（失败抛 ValidationError）
    3) 返回 (ActionMeta, 解析后的参数实例 | None)
    """
    meta = get_meta(spec.name)
    if meta.params_model is None:
        if spec.args:
            raise ValueError(f"Action {spec.name!r} takes no arguments")
        return meta, None
    params_obj = TypeAdapter(meta.params_model).validate_python(spec.args)
    return meta, params_obj


def validate_script(specs: List[ActionSpec]) -> List[Tuple[int, str, str]]:
    """Validate every step; returns (index, name, error) for the invalid ones."""
    problems: List[Tuple[int, str, str]] = []
    for i, spec in enumerate(specs, start=1):
        try:
            validate_spec(spec)
        except (ValidationError, KeyError, ValueError) as e:
            problems.append((i, spec.name, str(e)))
    return problems


# 仅用于测试：重置注册表
def _reset_registry_for_tests() -> None:
    _REGISTRY.clear()
    _META.clear()
