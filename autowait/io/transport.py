"""
Transport protocol (abstraction) and the stdio pipe implementation.

The connection only needs three operations from a transport:
- send(message): write one envelope
- receive(): read the next envelope, raising ConnectionClosedError at EOF
- close(): stop writing; pending reads end with ConnectionClosedError

Framing on the pipe: 4-byte little-endian payload length, then UTF-8 JSON.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

from ..core.errors import ConnectionClosedError

logger = logging.getLogger(__name__)

_HEADER_SIZE = 4


class Transport(Protocol):
    async def send(self, message: dict[str, Any]) -> None: ...
    async def receive(self) -> dict[str, Any]: ...
    async def close(self) -> None: ...


class _Writer(Protocol):
    def write(self, data: bytes) -> None: ...
    async def drain(self) -> None: ...
    def close(self) -> None: ...


class PipeTransport:
    """
    Length-prefixed JSON over a pair of byte streams.
    - `reader` is the driver's stdout (asyncio.StreamReader)
    - `writer` is the driver's stdin (asyncio.StreamWriter)
    """

    def __init__(self, reader: asyncio.StreamReader, writer: _Writer) -> None:
        self._reader = reader
        self._writer = writer
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def send(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise ConnectionClosedError("Driver connection closed")
        payload = json.dumps(message, separators=(",", ":")).encode("utf-8")
        try:
            self._writer.write(len(payload).to_bytes(_HEADER_SIZE, "little") + payload)
            await self._writer.drain()
        except (ConnectionError, RuntimeError) as e:
            self._closed = True
            raise ConnectionClosedError("Failed to write message to driver, pipe closed") from e

    async def receive(self) -> dict[str, Any]:
        try:
            header = await self._reader.readexactly(_HEADER_SIZE)
            length = int.from_bytes(header, "little")
            payload = await self._reader.readexactly(length)
        except (asyncio.IncompleteReadError, ConnectionError) as e:
            self._closed = True
            raise ConnectionClosedError("Failed to read message from driver, pipe closed") from e
        try:
            return json.loads(payload.decode("utf-8"))
        except ValueError as e:
            self._closed = True
            raise ConnectionClosedError(f"Malformed message from driver: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # only the outgoing side is closed: the driver may still be flushing
        # its stdout and would block if nobody read it
        try:
            self._writer.close()
        except (ConnectionError, RuntimeError):
            logger.debug("driver stdin already closed")
