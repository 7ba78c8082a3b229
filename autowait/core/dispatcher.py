"""
Call correlation and event fan-out.

- Dispatcher: id -> pending Callback map; responses resolve by id in O(1)
- EventHub: (guid, event) -> listeners; subscribe() hands back a Subscription
  token that is the only way to unsubscribe
"""
# @file purpose: Correlate responses with calls and fan out events.

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], Any]


@dataclass
class Callback:
    """A call awaiting its response."""

    future: asyncio.Future
    guid: str
    method: str


class Dispatcher:
    def __init__(self) -> None:
        self._callbacks: Dict[int, Callback] = {}
        self._last_id = 0

    def __len__(self) -> int:
        return len(self._callbacks)

    def register(self, guid: str, method: str) -> Tuple[int, asyncio.Future]:
        """Allocate the next correlation id and its future."""
        self._last_id += 1
        future = asyncio.get_running_loop().create_future()
        self._callbacks[self._last_id] = Callback(future=future, guid=guid, method=method)
        return self._last_id, future

    def forget(self, call_id: int) -> None:
        self._callbacks.pop(call_id, None)

    def resolve(self, call_id: int, result: Any = None, error: Optional[BaseException] = None) -> bool:
        """Deliver a response; False when nobody is waiting for it any more."""
        callback = self._callbacks.pop(call_id, None)
        if callback is None:
            logger.debug("dropping response for unknown call id=%s", call_id)
            return False
        if callback.future.done():
            # caller already gave up (local timeout / cancellation)
            logger.debug("dropping late response for %s.%s id=%s", callback.guid, callback.method, call_id)
            return False
        if error is not None:
            callback.future.set_exception(error)
        else:
            callback.future.set_result(result)
        return True

    def fail_all(self, error_factory: Callable[[], BaseException]) -> None:
        callbacks = list(self._callbacks.values())
        self._callbacks.clear()
        for callback in callbacks:
            if not callback.future.done():
                callback.future.set_exception(error_factory())


@dataclass(eq=False)
class Subscription:
    """Unsubscribe token returned by EventHub.subscribe()."""

    hub: "EventHub"
    guid: str
    event: str
    listener: Listener
    active: bool = field(default=True)

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self.hub._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cancel()


class EventHub:
    """Typed publish/subscribe keyed by (object guid, event tag)."""

    def __init__(self) -> None:
        self._listeners: Dict[Tuple[str, str], List[Subscription]] = {}
        # scheduled coroutine listeners, kept alive until they finish
        self._tasks: Set[asyncio.Future] = set()

    def subscribe(self, guid: str, event: str, listener: Listener) -> Subscription:
        sub = Subscription(hub=self, guid=guid, event=event, listener=listener)
        self._listeners.setdefault((guid, event), []).append(sub)
        return sub

    def has_listeners(self, guid: str, event: str) -> bool:
        return bool(self._listeners.get((guid, event)))

    def emit(self, guid: str, event: str, params: Dict[str, Any]) -> None:
        subs = self._listeners.get((guid, event))
        if not subs:
            return
        # copy: listeners may unsubscribe while we iterate
        for sub in list(subs):
            if not sub.active:
                continue
            try:
                result = sub.listener(params)
            except Exception:  # noqa: BLE001
                logger.exception("listener for %s on %s raised", event, guid or "<root>")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(functools.partial(self._on_listener_done, event, guid))

    def _on_listener_done(self, event: str, guid: str, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("listener for %s on %s raised", event, guid or "<root>", exc_info=error)

    def drop_object(self, guid: str) -> None:
        """Forget every listener of a disposed object."""
        for key in [k for k in self._listeners if k[0] == guid]:
            for sub in self._listeners.pop(key):
                sub.active = False

    def _remove(self, sub: Subscription) -> None:
        subs = self._listeners.get((sub.guid, sub.event))
        if not subs:
            return
        try:
            subs.remove(sub)
        except ValueError:
            return
        if not subs:
            del self._listeners[(sub.guid, sub.event)]
