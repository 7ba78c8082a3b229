"""
Locator resolution: selector chain -> ordered list of live element handles.

A chain is a tuple of stages applied left to right:
- QueryStage(selector): query the frame (first stage) or every element of the
  previous match set; results are de-duplicated by driver node identity
- FilterStage(...): keep elements whose text / descendants / visibility match
- IndexStage(k): keep only the k-th element (negative counts from the end)
- AndStage(chain): keep elements that the second chain also matches
- OrStage(chain): add the second chain's matches after the current ones

Nothing is cached: every call re-queries the driver. Handles dropped along the
way are released immediately; the caller owns (and must release) the result.
"""
# @file purpose: Resolve selector chains against current DOM state.

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional, Pattern, Sequence, Tuple, Union

from .errors import ElementDetachedError

if TYPE_CHECKING:
    from ..api.element_handle import ElementHandle
    from ..api.frame import Frame

logger = logging.getLogger(__name__)

TextMatch = Union[str, Pattern[str]]


@dataclass(frozen=True)
class QueryStage:
    selector: str

    def describe(self, prefix: str) -> str:
        if not prefix:
            return f"locator({self.selector!r})"
        return f"{prefix}.locator({self.selector!r})"


@dataclass(frozen=True)
class FilterStage:
    has_text: Optional[TextMatch] = None
    has_not_text: Optional[TextMatch] = None
    has: Optional[Tuple["Stage", ...]] = None
    has_not: Optional[Tuple["Stage", ...]] = None
    visible: Optional[bool] = None

    def describe(self, prefix: str) -> str:
        args = []
        if self.has_text is not None:
            args.append(f"has_text={_describe_text(self.has_text)}")
        if self.has_not_text is not None:
            args.append(f"has_not_text={_describe_text(self.has_not_text)}")
        if self.has is not None:
            args.append(f"has={describe_chain(self.has)}")
        if self.has_not is not None:
            args.append(f"has_not={describe_chain(self.has_not)}")
        if self.visible is not None:
            args.append(f"visible={self.visible}")
        return f"{prefix}.filter({', '.join(args)})"


@dataclass(frozen=True)
class IndexStage:
    index: int

    def describe(self, prefix: str) -> str:
        if self.index == 0:
            return f"{prefix}.first"
        if self.index == -1:
            return f"{prefix}.last"
        return f"{prefix}.nth({self.index})"


@dataclass(frozen=True)
class AndStage:
    other: Tuple["Stage", ...]

    def describe(self, prefix: str) -> str:
        return f"{prefix}.and_({describe_chain(self.other)})"


@dataclass(frozen=True)
class OrStage:
    other: Tuple["Stage", ...]

    def describe(self, prefix: str) -> str:
        return f"{prefix}.or_({describe_chain(self.other)})"


Stage = Union[QueryStage, FilterStage, IndexStage, AndStage, OrStage]


def describe_chain(stages: Sequence[Stage]) -> str:
    text = ""
    for stage in stages:
        text = stage.describe(text)
    return text


def _describe_text(value: TextMatch) -> str:
    if isinstance(value, re.Pattern):
        return f"/{value.pattern}/"
    return repr(value)


def _normalize_ws(text: str) -> str:
    return " ".join(text.split())


def text_matches(text: Optional[str], expected: TextMatch) -> bool:
    if text is None:
        return False
    if isinstance(expected, re.Pattern):
        return expected.search(text) is not None
    return _normalize_ws(expected).lower() in _normalize_ws(text).lower()


def _release_all(handles: Iterable["ElementHandle"], keep: Iterable["ElementHandle"] = ()) -> None:
    kept = {id(h) for h in keep}
    for handle in handles:
        if id(handle) not in kept:
            handle._release()


async def resolve(
    frame: "Frame",
    stages: Sequence[Stage],
    scope: Optional["ElementHandle"] = None,
) -> List["ElementHandle"]:
    """Resolve `stages` inside `frame` (or below `scope`). Zero matches is not an error.

    If the call is cancelled or fails partway, every handle it created so far is
    released before the exception propagates.
    """
    current: Optional[List["ElementHandle"]] = None
    try:
        for stage in stages:
            if isinstance(stage, QueryStage):
                matched = await _query(frame, stage.selector, current, scope)
                if current is not None:
                    _release_all(current)
                current = matched
            elif current is None:
                raise ValueError(f"{type(stage).__name__} must follow a selector")
            elif isinstance(stage, FilterStage):
                kept: List["ElementHandle"] = []
                for handle in current:
                    if await _passes(frame, handle, stage):
                        kept.append(handle)
                _release_all(current, keep=kept)
                current = kept
            elif isinstance(stage, (AndStage, OrStage)):
                current = await _combine(frame, stage, current, scope)
            else:
                picked: List["ElementHandle"] = []
                if -len(current) <= stage.index < len(current):
                    picked = [current[stage.index]]
                _release_all(current, keep=picked)
                current = picked
            if not current:
                return []
    except BaseException:
        if current:
            _release_all(current)
        raise
    return current or []


async def _query(
    frame: "Frame",
    selector: str,
    current: Optional[List["ElementHandle"]],
    scope: Optional["ElementHandle"],
) -> List["ElementHandle"]:
    if current is None:
        if scope is not None:
            return await _query_below(scope, selector)
        return await frame._query_all(selector)

    seen = set()
    matched: List["ElementHandle"] = []
    try:
        for parent in current:
            for handle in await _query_below(parent, selector):
                key = handle.node_key
                if key in seen:
                    handle._release()
                    continue
                seen.add(key)
                matched.append(handle)
    except BaseException:
        _release_all(matched)
        raise
    return matched


async def _combine(
    frame: "Frame",
    stage: Union["AndStage", "OrStage"],
    current: List["ElementHandle"],
    scope: Optional["ElementHandle"],
) -> List["ElementHandle"]:
    """Intersect (and_) or union (or_) `current` with a second chain.

    Takes ownership of `current`: whatever is not returned gets released.
    """
    other = await resolve(frame, stage.other, scope=scope)
    if isinstance(stage, AndStage):
        keys = {h.node_key for h in other}
        _release_all(other)
        kept = [h for h in current if h.node_key in keys]
        _release_all(current, keep=kept)
        return kept
    seen = {h.node_key for h in current}
    extra: List["ElementHandle"] = []
    for handle in other:
        if handle.node_key in seen:
            handle._release()
            continue
        seen.add(handle.node_key)
        extra.append(handle)
    return list(current) + extra


async def _query_below(element: "ElementHandle", selector: str) -> List["ElementHandle"]:
    try:
        return await element._query_all(selector)
    except ElementDetachedError:
        logger.debug("scope element detached while querying %r", selector)
        return []


async def _passes(frame: "Frame", handle: "ElementHandle", stage: FilterStage) -> bool:
    try:
        if stage.has_text is not None or stage.has_not_text is not None:
            text = await handle._text_content()
            if stage.has_text is not None and not text_matches(text, stage.has_text):
                return False
            if stage.has_not_text is not None and text_matches(text, stage.has_not_text):
                return False
        if stage.visible is not None:
            if await handle._element_state("visible") != stage.visible:
                return False
        if stage.has is not None:
            inner = await resolve(frame, stage.has, scope=handle)
            _release_all(inner)
            if not inner:
                return False
        if stage.has_not is not None:
            inner = await resolve(frame, stage.has_not, scope=handle)
            _release_all(inner)
            if inner:
                return False
    except ElementDetachedError:
        # detached mid-resolution: not a match this round
        return False
    return True
