"""
Actionability engine: the auto-wait retry loop behind every interaction.

    RESOLVING -> CHECKING -> ACTING -> SETTLING -> DONE
        |            |          |
        +-- 0 matches / predicate false: poll, back to RESOLVING
        +-- detached mid-check or mid-dispatch: DETACHED -> RESOLVING
        +-- deadline passed anywhere: TIMED_OUT

- Resolution happens on every iteration (locators) or returns the fixed
  handle (element handles, which never re-resolve and treat detach as fatal)
- >1 match for a strict target is fatal at once: ambiguity is not transient
- The poll interval is fixed; the driver pushes most state changes anyway
- One deadline bounds resolve/check/act; commands still in flight when it
  passes are abandoned, not cancelled on the driver
- Settling runs after the deadline-bound part, so a slow navigation never
  turns a dispatched action into a failure
"""
# @file purpose: Implement the actionability / auto-wait retry engine.

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
)

from . import errors
from .options import Position
from .resolver import Stage, _release_all, describe_chain, resolve
from .settings import Settings, settings as default_settings
from .timeouts import TimeoutSettings

if TYPE_CHECKING:
    from ..api.element_handle import ElementHandle
    from ..api.frame import Frame

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ActionState(str, Enum):
    RESOLVING = "resolving"
    CHECKING = "checking"
    ACTING = "acting"
    SETTLING = "settling"
    DETACHED = "detached"
    DONE = "done"
    TIMED_OUT = "timed_out"


class Check(str, Enum):
    VISIBLE = "visible"
    STABLE = "stable"
    RECEIVES_EVENTS = "receives_events"
    ENABLED = "enabled"
    EDITABLE = "editable"


_POINTER_CHECKS = (Check.VISIBLE, Check.STABLE, Check.RECEIVES_EVENTS, Check.ENABLED)

# action -> readiness predicates ("attached" is implied by resolution)
ACTION_CHECKS: Dict[str, Tuple[Check, ...]] = {
    "click": _POINTER_CHECKS,
    "dblclick": _POINTER_CHECKS,
    "tap": _POINTER_CHECKS,
    "check": _POINTER_CHECKS,
    "uncheck": _POINTER_CHECKS,
    "hover": (Check.VISIBLE, Check.STABLE, Check.RECEIVES_EVENTS),
    "fill": (Check.VISIBLE, Check.ENABLED, Check.EDITABLE),
    "clear": (Check.VISIBLE, Check.ENABLED, Check.EDITABLE),
    "select_option": (Check.VISIBLE, Check.ENABLED),
    "select_text": (Check.VISIBLE,),
    "scroll_into_view": (Check.STABLE,),
    "type": (),
    "press": (),
    "focus": (),
    "set_input_files": (),
    "dispatch_event": (),
    "read": (),
}

POINTER_ACTIONS = frozenset({"click", "dblclick", "tap", "check", "uncheck", "hover"})


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass
class ActionabilityState:
    """Snapshot of one readiness pass. Recomputed every iteration, never kept."""

    target: Optional[str] = None
    attached: Optional[bool] = None
    visible: Optional[bool] = None
    stable: Optional[bool] = None
    receives_events: Optional[bool] = None
    enabled: Optional[bool] = None
    editable: Optional[bool] = None
    hit_target: Optional[str] = None
    point: Optional[Point] = None
    failure: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.failure is None

    def fail(self, reason: str) -> "ActionabilityState":
        self.failure = reason
        return self


class Target(Protocol):
    """What the engine acts on: a re-resolving locator or a fixed element handle."""

    description: str
    strict: bool
    retry_on_detach: bool
    frame: "Frame"

    async def resolve(self) -> List["ElementHandle"]: ...
    def release(self, handles: Sequence["ElementHandle"]) -> None: ...


class LocatorTarget:
    strict = True
    retry_on_detach = True

    def __init__(self, frame: "Frame", stages: Sequence[Stage], *, strict: bool = True) -> None:
        self.frame = frame
        self.stages = tuple(stages)
        self.strict = strict
        self.description = describe_chain(self.stages)

    async def resolve(self) -> List["ElementHandle"]:
        return await resolve(self.frame, self.stages)

    def release(self, handles: Sequence["ElementHandle"]) -> None:
        _release_all(handles)


class HandleTarget:
    strict = False
    retry_on_detach = False

    def __init__(self, handle: "ElementHandle") -> None:
        self.handle = handle
        self.frame = handle.owner_frame
        self.description = f"element handle {handle.preview}"

    async def resolve(self) -> List["ElementHandle"]:
        self.handle._connection.objects.ensure_live(self.handle)
        return [self.handle]

    def release(self, handles: Sequence["ElementHandle"]) -> None:
        # the caller owns the handle
        pass


@dataclass
class Progress:
    """Call log + last observed state for one engine operation."""

    action: str
    selector: str
    timeout_ms: float
    started: float = field(default_factory=lambda: asyncio.get_running_loop().time())
    phase: ActionState = ActionState.RESOLVING
    attempts: int = 0
    state: Optional[ActionabilityState] = None
    lines: List[str] = field(default_factory=list)

    def log(self, line: str) -> None:
        self.lines.append(line)
        logger.debug("[%s %s] %s", self.action, self.selector, line)

    def record(self, state: ActionabilityState) -> None:
        previous = self.state.failure if self.state is not None else None
        self.state = state
        if state.failure is not None and state.failure != previous:
            self.log(f"  {state.failure}")

    def remaining_ms(self) -> Optional[float]:
        if self.timeout_ms == 0:
            return None
        elapsed = (asyncio.get_running_loop().time() - self.started) * 1000
        return max(0.0, self.timeout_ms - elapsed)

    def timeout_error(self) -> errors.TimeoutError:
        self.phase = ActionState.TIMED_OUT
        reason = self.state.failure if self.state is not None and self.state.failure else "no state observed"
        lines = "\n".join(f"  - {line}" for line in self.lines)
        message = (
            f"Timeout {self.timeout_ms:g}ms exceeded while waiting to {self.action}.\n"
            f"  selector: {self.selector}\n"
            f"  last state: {reason}\n"
            f"Call log:\n{lines}"
        )
        return errors.TimeoutError(message, selector=self.selector, state=self.state, call_log=list(self.lines))


Act = Callable[["ElementHandle", Optional[Point]], Awaitable[T]]


class ActionabilityEngine:
    def __init__(self, timeouts: TimeoutSettings, *, settings: Optional[Settings] = None) -> None:
        cfg = settings or default_settings
        self.timeouts = timeouts
        self.poll_interval_ms = cfg.poll_interval_ms
        self.settle_timeout_ms = cfg.settle_timeout_ms

    # ---------------- actions ----------------

    async def perform(self, target: Target, action: str, options: Any, act: Act[T]) -> Optional[T]:
        """Run `act` once the target is resolved and ready; returns its result (None for trial)."""
        if action not in ACTION_CHECKS:
            raise KeyError(f"Unknown action: {action}")
        timeout_ms = self.timeouts.timeout(getattr(options, "timeout", None))
        progress = Progress(action=action, selector=target.description, timeout_ms=timeout_ms)
        progress.log(f"waiting for {target.description}")

        result, mark = await self._with_deadline(
            progress, self._action_loop(progress, target, action, options, act)
        )

        if mark is not None and action != "read" and not getattr(options, "no_wait_after", False):
            progress.phase = ActionState.SETTLING
            await self._settle(progress, target.frame, mark)
        progress.phase = ActionState.DONE
        return result

    async def _action_loop(
        self, progress: Progress, target: Target, action: str, options: Any, act: Act[T]
    ) -> Tuple[Optional[T], Optional[int]]:
        checks = ACTION_CHECKS[action]
        pointer = action in POINTER_ACTIONS
        force = bool(getattr(options, "force", False))
        trial = bool(getattr(options, "trial", False))
        position: Optional[Position] = getattr(options, "position", None)
        retry_now = False

        while True:
            if progress.attempts and not retry_now:
                await self._backoff()
            retry_now = False
            progress.attempts += 1
            if progress.attempts > 1:
                progress.log(f"retrying {action} action, attempt #{progress.attempts}")

            progress.phase = ActionState.RESOLVING
            handles = await target.resolve()
            try:
                if not handles:
                    progress.record(ActionabilityState(attached=False).fail(
                        f"{target.description} resolved to 0 elements"
                    ))
                    continue
                if len(handles) > 1 and target.strict:
                    raise errors.StrictModeViolationError(
                        target.description, len(handles), [h.preview for h in handles[:10]]
                    )
                handle = handles[0]
                if progress.attempts == 1 or progress.state is None or progress.state.target != handle.preview:
                    progress.log(f"{target.description} resolved to {handle.preview}")

                point: Optional[Point] = None
                if not force:
                    progress.phase = ActionState.CHECKING
                    state = await self._check(handle, target.frame, checks, position, pointer)
                    progress.record(state)
                    if state.attached is False:
                        if not target.retry_on_detach:
                            raise errors.ElementDetachedError("Element is not attached to the DOM")
                        progress.phase = ActionState.DETACHED
                        retry_now = True
                        continue
                    if not state.ready:
                        continue
                    point = state.point
                elif pointer:
                    point = await self._action_point(handle, position)
                    if point is None:
                        progress.record(ActionabilityState(target=handle.preview, visible=False).fail(
                            "element is not visible"
                        ))
                        continue

                if trial:
                    progress.log("trial run: skipping the action")
                    return None, None

                progress.phase = ActionState.ACTING
                progress.log(f"performing {action} action")
                mark = target.frame.page._navigation_mark()
                try:
                    result = await act(handle, point)
                except errors.ElementDetachedError as e:
                    if not target.retry_on_detach:
                        raise
                    progress.phase = ActionState.DETACHED
                    progress.record(ActionabilityState(target=handle.preview, attached=False).fail(str(e)))
                    retry_now = True
                    continue
                except errors.NotActionableError as e:
                    progress.record(ActionabilityState(target=handle.preview, attached=True).fail(str(e)))
                    continue
                progress.log(f"{action} action done")
                return result, mark
            finally:
                target.release(handles)

    async def _check(
        self,
        handle: "ElementHandle",
        frame: "Frame",
        checks: Sequence[Check],
        position: Optional[Position],
        pointer: bool,
    ) -> ActionabilityState:
        state = ActionabilityState(target=handle.preview, attached=True)
        try:
            if Check.VISIBLE in checks:
                state.visible = await handle._element_state("visible")
                if not state.visible:
                    return state.fail("element is not visible")
            if Check.ENABLED in checks:
                state.enabled = await handle._element_state("enabled")
                if not state.enabled:
                    return state.fail("element is not enabled")
            if Check.EDITABLE in checks:
                state.editable = await handle._element_state("editable")
                if not state.editable:
                    return state.fail("element is not editable")
            if Check.STABLE in checks:
                state.stable = await self._is_stable(handle, frame)
                if not state.stable:
                    return state.fail("element is not stable")
            if pointer:
                state.point = await self._action_point(handle, position)
                if state.point is None:
                    state.visible = False
                    return state.fail("element is not visible")
                if Check.RECEIVES_EVENTS in checks:
                    ok, description = await handle._check_hit_target(state.point)
                    state.receives_events = ok
                    state.hit_target = description
                    if not ok:
                        if description:
                            return state.fail(f"{description} intercepts pointer events")
                        return state.fail("element does not receive pointer events")
        except errors.ElementDetachedError:
            state.attached = False
            return state.fail("element is not attached to the DOM")
        return state

    async def _is_stable(self, handle: "ElementHandle", frame: "Frame") -> bool:
        # same box across two animation frames
        before = await handle._bounding_box()
        if before is None:
            return False
        await frame._wait_for_animation_frame()
        after = await handle._bounding_box()
        return after == before

    async def _action_point(self, handle: "ElementHandle", position: Optional[Position]) -> Optional[Point]:
        await handle._scroll_into_view_if_needed()
        box = await handle._bounding_box()
        if box is None or box["width"] <= 0 or box["height"] <= 0:
            return None
        if position is not None:
            return Point(box["x"] + position.x, box["y"] + position.y)
        return Point(box["x"] + box["width"] / 2, box["y"] + box["height"] / 2)

    # ---------------- state waits ----------------

    async def wait_for_state(
        self, target: Target, state: str, timeout: Optional[float] = None
    ) -> Optional["ElementHandle"]:
        """
        Poll until the target reaches `state`. For `attached` / `visible` the
        matched handle is returned and owned by the caller.
        """
        timeout_ms = self.timeouts.timeout(timeout)
        progress = Progress(action=f"be {state}", selector=target.description, timeout_ms=timeout_ms)
        progress.log(f"waiting for {target.description} to be {state}")
        return await self._with_deadline(progress, self._state_loop(progress, target, state))

    async def _state_loop(self, progress: Progress, target: Target, state: str) -> Optional["ElementHandle"]:
        while True:
            if progress.attempts:
                await self._backoff()
            progress.attempts += 1
            handles = await target.resolve()
            keep: Optional["ElementHandle"] = None
            try:
                if len(handles) > 1 and target.strict:
                    raise errors.StrictModeViolationError(
                        target.description, len(handles), [h.preview for h in handles[:10]]
                    )
                handle = handles[0] if handles else None
                ok, snapshot = await self._probe(handle, target, state)
                progress.record(snapshot)
                if ok:
                    if handle is not None and state in ("attached", "visible"):
                        keep = handle
                    return keep
            finally:
                target.release([h for h in handles if h is not keep])

    async def _probe(
        self, handle: Optional["ElementHandle"], target: Target, state: str
    ) -> Tuple[bool, ActionabilityState]:
        if handle is None:
            snapshot = ActionabilityState(attached=False)
            if state in ("detached", "hidden"):
                return True, snapshot
            return False, snapshot.fail(f"{target.description} resolved to 0 elements")

        snapshot = ActionabilityState(target=handle.preview, attached=True)
        try:
            if state == "attached":
                return True, snapshot
            if state == "detached":
                return False, snapshot.fail("element is still attached")
            if state in ("visible", "hidden"):
                snapshot.visible = await handle._element_state("visible")
                if state == "visible":
                    return snapshot.visible, snapshot if snapshot.visible else snapshot.fail("element is not visible")
                return not snapshot.visible, snapshot if not snapshot.visible else snapshot.fail("element is visible")
            if state == "stable":
                snapshot.stable = await self._is_stable(handle, target.frame)
                return snapshot.stable, snapshot if snapshot.stable else snapshot.fail("element is not stable")
            if state in ("enabled", "disabled"):
                snapshot.enabled = await handle._element_state("enabled")
                ok = snapshot.enabled == (state == "enabled")
                return ok, snapshot if ok else snapshot.fail(f"element is not {state}")
            if state == "editable":
                snapshot.editable = await handle._element_state("editable")
                return snapshot.editable, snapshot if snapshot.editable else snapshot.fail("element is not editable")
        except errors.ElementDetachedError:
            snapshot.attached = False
            if state in ("detached", "hidden"):
                return True, snapshot
            if not target.retry_on_detach:
                raise
            return False, snapshot.fail("element is not attached to the DOM")
        raise ValueError(f"Unknown state: {state}")

    # ---------------- generic polling ----------------

    async def poll(
        self,
        description: str,
        goal: str,
        timeout_ms: float,
        probe: Callable[[], Awaitable[ActionabilityState]],
    ) -> ActionabilityState:
        """Re-run `probe` every poll interval until it reports no failure."""
        progress = Progress(action=goal, selector=description, timeout_ms=timeout_ms)
        progress.log(f"waiting for {description} to {goal}")
        return await self._with_deadline(progress, self._poll_loop(progress, probe))

    async def _poll_loop(
        self, progress: Progress, probe: Callable[[], Awaitable[ActionabilityState]]
    ) -> ActionabilityState:
        while True:
            if progress.attempts:
                await self._backoff()
            progress.attempts += 1
            state = await probe()
            progress.record(state)
            if state.ready:
                return state

    # ---------------- helpers ----------------

    async def _with_deadline(self, progress: Progress, coro: Awaitable[T]) -> T:
        if progress.timeout_ms == 0:
            return await coro
        try:
            return await asyncio.wait_for(coro, progress.timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise progress.timeout_error() from None

    async def _backoff(self) -> None:
        await asyncio.sleep(self.poll_interval_ms / 1000)

    async def _settle(self, progress: Progress, frame: "Frame", mark: int) -> None:
        page = frame.page
        navigating = page._frames_navigating_since(mark)
        if not navigating:
            return
        remaining = progress.remaining_ms()
        bound = self.settle_timeout_ms if remaining is None else min(self.settle_timeout_ms, remaining)
        for nav_frame in navigating:
            progress.log(f"waiting for navigation of {nav_frame.url!r} to commit")
            try:
                await nav_frame._wait_for_commit(bound)
            except (errors.TimeoutError, errors.TargetClosedError) as e:
                # the action itself already happened
                logger.warning("%s: navigation did not commit after %s: %s", progress.selector, progress.action, e)
