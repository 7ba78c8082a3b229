"""
Connection to the driver: one transport, one reader task, many concurrent calls.

Responsibilities:
- Build command envelopes and await their responses (Dispatcher)
- Route __create__ / __dispose__ to the ObjectRegistry
- Route everything else to the target handle, then to EventHub listeners
- Fail every pending and future call once the transport closes
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from . import errors
from .dispatcher import Dispatcher, EventHub, Listener, Subscription
from .objects import Handle, ObjectRegistry
from .protocol import (
    CREATE_METHOD,
    DISPOSE_METHOD,
    CommandEnvelope,
    CreatePayload,
    Message,
    parse_error,
)
from .settings import Settings, settings as default_settings

# 导入代理类以触发 @remote_type 注册
import autowait.api.browser  # noqa: F401,E402
import autowait.api.element_handle  # noqa: F401,E402
import autowait.api.frame  # noqa: F401,E402
import autowait.api.network  # noqa: F401,E402
import autowait.api.page  # noqa: F401,E402

logger = logging.getLogger(__name__)

ROOT_GUID = ""
CLOSED_EVENT = "__closed__"


class Connection:
    def __init__(self, transport: Any, *, settings: Optional[Settings] = None) -> None:
        self.transport = transport
        self.settings = settings or default_settings
        self.dispatcher = Dispatcher()
        self.events = EventHub()
        self.objects = ObjectRegistry(self)
        self.root = self.objects.register(ROOT_GUID, "Root")
        self._reader: Optional[asyncio.Task] = None
        self._closed_error: Optional[errors.ConnectionClosedError] = None

    @property
    def is_closed(self) -> bool:
        return self._closed_error is not None

    # ---------------- lifecycle ----------------

    async def start(self) -> None:
        """Start the reader loop (idempotent)."""
        if self._reader is None:
            self._reader = asyncio.create_task(self._read_loop(), name="autowait-reader")

    async def initialize(self) -> Any:
        """Handshake with the driver; returns the Playwright root object."""
        await self.start()
        result = await self.send_message(ROOT_GUID, "initialize", {"sdkLanguage": "python"})
        return result["playwright"]

    async def close(self) -> None:
        if not self.is_closed:
            self._on_close(errors.ConnectionClosedError("Connection closed by client"))
        await self.transport.close()
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass

    def on_close(self, listener: Listener) -> Subscription:
        return self.events.subscribe(ROOT_GUID, CLOSED_EVENT, listener)

    # ---------------- outgoing ----------------

    async def send_message(self, guid: str, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Send one command and wait for its result (deserialized)."""
        future = await self._send(guid, method, params)
        return await future

    def send_no_reply(self, guid: str, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Fire-and-forget: the outcome is only logged."""

        async def _run() -> None:
            try:
                await self.send_message(guid, method, params)
            except errors.AutowaitError as e:
                logger.debug("%s.%s (no reply) failed: %s", guid, method, e)

        asyncio.ensure_future(_run())

    async def _send(self, guid: str, method: str, params: Optional[Dict[str, Any]]) -> asyncio.Future:
        if self._closed_error is not None:
            raise errors.ConnectionClosedError(str(self._closed_error))
        wire_params = self._serialize(params or {})
        call_id, future = self.dispatcher.register(guid, method)
        envelope = CommandEnvelope(id=call_id, guid=guid, method=method, params=wire_params)
        message = envelope.model_dump()
        if self.settings.debug_protocol:
            logger.debug("SEND ► %s", message)
        try:
            await self.transport.send(message)
        except errors.ConnectionClosedError as e:
            self.dispatcher.forget(call_id)
            self._on_close(e)
            raise
        return future

    def _serialize(self, value: Any) -> Any:
        if isinstance(value, Handle):
            self.objects.ensure_live(value)
            return {"guid": value.guid}
        if isinstance(value, dict):
            return {k: self._serialize(v) for k, v in value.items() if v is not None}
        if isinstance(value, (list, tuple)):
            return [self._serialize(v) for v in value]
        return value

    # ---------------- incoming ----------------

    async def _read_loop(self) -> None:
        while True:
            try:
                raw = await self.transport.receive()
            except errors.ConnectionClosedError as e:
                self._on_close(e)
                return
            if self.settings.debug_protocol:
                logger.debug("◀ RECV %s", raw)
            try:
                self.dispatch(raw)
            except ValidationError as e:
                logger.error("malformed message from driver: %s", e)
            except Exception:  # noqa: BLE001
                # the reader outlives any single bad message
                logger.exception("failed to dispatch message from driver: %s", raw)

    def dispatch(self, raw: Dict[str, Any]) -> None:
        message = Message.model_validate(raw)
        if message.id is not None:
            if message.error is not None:
                self.dispatcher.resolve(message.id, error=parse_error(message.error))
                return
            result = self._deserialize(message.result)
            if not self.dispatcher.resolve(message.id, result=result):
                self._release_orphans(result)
            return

        if message.method is None or message.guid is None:
            logger.debug("ignoring message without method/guid: %s", raw)
            return
        if message.method == CREATE_METHOD:
            self._create_remote_object(message.guid, message.params)
            return
        if message.method == DISPOSE_METHOD:
            self.objects.dispose(message.guid)
            return

        target = self.objects.lookup(message.guid)
        if target is None:
            logger.debug("event %s for unknown object %s dropped", message.method, message.guid)
            return
        params = self._deserialize(message.params)
        target._on_event(message.method, params)
        self.events.emit(message.guid, message.method, params)

    def _create_remote_object(self, parent_guid: str, params: Dict[str, Any]) -> Handle:
        payload = CreatePayload.model_validate(params)
        parent = self.objects.lookup(parent_guid)
        if parent is None:
            logger.debug("parent %s of %s unknown; attaching to root", parent_guid, payload.guid)
            parent = self.root
        return self.objects.register(payload.guid, payload.type, parent, payload.initializer)

    def _deserialize(self, value: Any) -> Any:
        if isinstance(value, dict):
            if len(value) == 1 and "guid" in value:
                handle = self.objects.lookup(value["guid"])
                if handle is not None:
                    return handle
            return {k: self._deserialize(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._deserialize(v) for v in value]
        return value

    def _on_close(self, error: errors.ConnectionClosedError) -> None:
        if self._closed_error is not None:
            return
        self._closed_error = error
        logger.info("driver connection closed: %s", error)
        self.dispatcher.fail_all(lambda: errors.ConnectionClosedError(str(error)))
        self.events.emit(ROOT_GUID, CLOSED_EVENT, {"reason": str(error)})

    def _release_orphans(self, value: Any) -> None:
        """Release element handles carried by a response nobody is waiting for."""
        if isinstance(value, Handle):
            if value.kind == "ElementHandle":
                value._release()
        elif isinstance(value, dict):
            for v in value.values():
                self._release_orphans(v)
        elif isinstance(value, list):
            for v in value:
                self._release_orphans(v)
