"""
Object registry: driver-assigned guids -> local proxy handles.

- 以 kind（driver 报告的类型名）注册代理类：@remote_type("Frame")
- ObjectRegistry 独占 guid -> Handle 映射，并为每个 guid 维护代数（generation）
- 过期句柄（已释放，或 guid 被重新注册）在发送前即失败：TargetClosedError
"""
# @file purpose: Provide handle base class, proxy type table and the object registry.

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Type, TypeVar

from .dispatcher import Listener, Subscription
from .errors import ConnectionClosedError, TargetClosedError

if TYPE_CHECKING:
    from .connection import Connection

logger = logging.getLogger(__name__)

H = TypeVar("H", bound="Handle")

# 全局类型表：kind -> 代理类
_FACTORIES: Dict[str, Type["Handle"]] = {}


def remote_type(kind: str) -> Callable[[Type[H]], Type[H]]:
    """
    装饰器：把代理类绑定到 driver 的类型名。
        @remote_type("Frame")
        class Frame(Handle): ...
    """

    def deco(cls: Type[H]) -> Type[H]:
        _FACTORIES[kind] = cls
        return cls

    return deco


def get_factory(kind: str) -> Type["Handle"]:
    # 未知类型退化为普通 Handle（driver 可能公布我们不关心的对象）
    return _FACTORIES.get(kind, Handle)


def list_types() -> Dict[str, Type["Handle"]]:
    return dict(_FACTORIES)


class Handle:
    """
    Opaque reference to a driver-side object.

    The handle is a lightweight value: callers may keep it after disposal, but
    any call made through it then fails with TargetClosedError.
    """

    def __init__(
        self,
        connection: Connection,
        kind: str,
        guid: str,
        parent: Optional["Handle"],
        initializer: Dict[str, Any],
    ) -> None:
        self._connection = connection
        self.kind = kind
        self.guid = guid
        self._parent = parent
        self._initializer = initializer
        self._children: Dict[str, Handle] = {}
        self._disposed = False
        self._generation = 0
        if parent is not None:
            parent._children[guid] = self

    def __repr__(self) -> str:
        state = " disposed" if self._disposed else ""
        return f"<{type(self).__name__} guid={self.guid!r}{state}>"

    @property
    def parent(self) -> Optional["Handle"]:
        return self._parent

    @property
    def initializer(self) -> Dict[str, Any]:
        return self._initializer

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    # ---------------- events ----------------

    def on(self, event: str, listener: Listener) -> Subscription:
        """Subscribe to an event of this object; cancel the returned token to stop."""
        return self._connection.events.subscribe(self.guid, event, listener)

    def _emit(self, event: str, params: Optional[Dict[str, Any]] = None) -> None:
        self._connection.events.emit(self.guid, event, params or {})

    def _on_event(self, event: str, params: Dict[str, Any]) -> None:
        """Update local state from a driver event before listeners see it."""

    def _on_dispose(self) -> None:
        """Hook run once when the handle is invalidated."""

    # ---------------- calls ----------------

    async def _send(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        self._connection.objects.ensure_live(self)
        return await self._connection.send_message(self.guid, method, params)

    # ---------------- disposal ----------------

    async def dispose(self) -> None:
        """Release the driver-side object. Disposing twice is a no-op."""
        if self._disposed:
            return
        try:
            if not self._connection.is_closed:
                await self._send("dispose")
        except TargetClosedError:
            # already gone on the driver side
            pass
        finally:
            self._disconnect()

    def _release(self) -> None:
        """Dispose locally right away and tell the driver without waiting."""
        if self._disposed:
            return
        self._disconnect()
        if not self._connection.is_closed:
            self._connection.send_no_reply(self.guid, "dispose")

    def _disconnect(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._parent is not None:
            self._parent._children.pop(self.guid, None)
        self._connection.objects.unregister(self)
        for child in list(self._children.values()):
            child._disconnect()
        self._children.clear()
        self._on_dispose()
        self._connection.events.drop_object(self.guid)


class ObjectRegistry:
    """guid -> Handle map owned by a single connection."""

    def __init__(self, connection: Connection) -> None:
        self._connection = connection
        self._objects: Dict[str, Handle] = {}
        self._generations: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, guid: object) -> bool:
        return guid in self._objects

    def register(
        self,
        guid: str,
        kind: str,
        parent: Optional[Handle] = None,
        initializer: Optional[Dict[str, Any]] = None,
    ) -> Handle:
        existing = self._objects.get(guid)
        if existing is not None:
            # driver may announce the same object more than once
            return existing
        generation = self._generations.get(guid, 0) + 1
        self._generations[guid] = generation
        factory = get_factory(kind)
        try:
            handle = factory(self._connection, kind, guid, parent, initializer or {})
        except Exception:
            if parent is not None:
                parent._children.pop(guid, None)
            raise
        handle._generation = generation
        self._objects[guid] = handle
        return handle

    def lookup(self, guid: str) -> Optional[Handle]:
        return self._objects.get(guid)

    def dispose(self, guid: str) -> None:
        handle = self._objects.get(guid)
        if handle is None:
            logger.debug("dispose for unknown object %s ignored", guid)
            return
        handle._disconnect()

    def unregister(self, handle: Handle) -> None:
        if self._objects.get(handle.guid) is handle:
            del self._objects[handle.guid]

    def ensure_live(self, handle: Handle) -> None:
        if self._connection.is_closed:
            raise ConnectionClosedError("Driver connection closed")
        if (
            handle._disposed
            or self._objects.get(handle.guid) is not handle
            or self._generations.get(handle.guid) != handle._generation
        ):
            raise TargetClosedError(f"Target {handle.kind} {handle.guid!r} has been closed or disposed")

    def clear(self) -> None:
        for handle in list(self._objects.values()):
            handle._disconnect()
        self._objects.clear()
