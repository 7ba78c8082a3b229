"""
Predicate-gated waits over the event stream.

A Waiter owns one deadline and a set of failure conditions (frame detached,
page closed, connection closed). Each wait_for_event() races the awaited event
against those failures and the remaining time; several waits inside one Waiter
share the same deadline.

    with Waiter(timeout_ms, "waiting for navigation") as waiter:
        waiter.reject_on(frame, "detached", lambda: FrameDetachedError(...))
        params = await waiter.wait_for_event(frame, "navigated", predicate)
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from . import errors
from .dispatcher import Subscription
from .objects import Handle

Predicate = Callable[[Dict[str, Any]], bool]


class Waiter:
    def __init__(self, timeout_ms: float, description: str) -> None:
        self._loop = asyncio.get_running_loop()
        self._timeout_ms = timeout_ms
        self._deadline: Optional[float] = None if timeout_ms == 0 else self._loop.time() + timeout_ms / 1000
        self.description = description
        self._failure: asyncio.Future = self._loop.create_future()
        self._subscriptions: List[Subscription] = []
        self._log: List[str] = [description]

    def __enter__(self) -> "Waiter":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()

    def log(self, line: str) -> None:
        self._log.append(line)

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (None: unbounded)."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._loop.time())

    def reject_on(self, target: Handle, event: str, error: Callable[[], BaseException]) -> None:
        def _listener(_params: Dict[str, Any]) -> None:
            self.reject(error())

        self._subscriptions.append(target.on(event, _listener))

    def reject_on_connection_close(self, target: Handle) -> None:
        sub = target._connection.on_close(
            lambda p: self.reject(errors.ConnectionClosedError(p.get("reason", "Connection closed")))
        )
        self._subscriptions.append(sub)

    def reject(self, error: BaseException) -> None:
        if not self._failure.done():
            self._failure.set_exception(error)

    async def wait_for_event(
        self, target: Handle, event: str, predicate: Optional[Predicate] = None
    ) -> Dict[str, Any]:
        future: asyncio.Future = self._loop.create_future()

        def _listener(params: Dict[str, Any]) -> None:
            if future.done():
                return
            try:
                if predicate is None or predicate(params):
                    future.set_result(params)
            except Exception as e:  # noqa: BLE001
                future.set_exception(e)

        with target.on(event, _listener):
            return await self.wait(future)

    async def wait(self, future: asyncio.Future) -> Any:
        """Race `future` against the failure conditions and the deadline."""
        if self._failure.done():
            future.cancel()
            raise self._failure.exception()  # type: ignore[misc]
        done, _ = await asyncio.wait(
            {future, self._failure},
            timeout=self.remaining(),
            return_when=asyncio.FIRST_COMPLETED,
        )
        if future in done:
            return future.result()
        future.cancel()
        if self._failure in done:
            raise self._failure.exception()  # type: ignore[misc]
        log = "\n".join(f"  - {line}" for line in self._log)
        raise errors.TimeoutError(f"Timeout {self._timeout_ms:g}ms exceeded.\n{log}")

    def dispose(self) -> None:
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
        if not self._failure.done():
            self._failure.cancel()
        elif not self._failure.cancelled():
            # mark retrieved
            self._failure.exception()
