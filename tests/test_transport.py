import asyncio
import json

import pytest

from autowait.core.errors import ConnectionClosedError
from autowait.io.transport import PipeTransport


class _BufferWriter:
    def __init__(self) -> None:
        self.data = bytearray()
        self.closed = False
        self.broken = False

    def write(self, data: bytes) -> None:
        if self.broken:
            raise BrokenPipeError("pipe closed")
        self.data.extend(data)

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True


def _frame(message: dict) -> bytes:
    payload = json.dumps(message).encode("utf-8")
    return len(payload).to_bytes(4, "little") + payload


@pytest.mark.asyncio
async def test_send_writes_little_endian_length_prefix() -> None:
    writer = _BufferWriter()
    transport = PipeTransport(asyncio.StreamReader(), writer)
    await transport.send({"id": 1, "guid": "", "method": "initialize", "params": {}})

    length = int.from_bytes(writer.data[:4], "little")
    assert length == len(writer.data) - 4
    assert json.loads(writer.data[4:].decode("utf-8"))["method"] == "initialize"


@pytest.mark.asyncio
async def test_receive_reads_frames_in_order_even_when_split() -> None:
    reader = asyncio.StreamReader()
    raw = _frame({"id": 1, "result": {}}) + _frame({"guid": "x", "method": "ping", "params": {"n": "ü"}})
    # feed in awkward chunks
    reader.feed_data(raw[:3])
    reader.feed_data(raw[3:11])
    reader.feed_data(raw[11:])
    transport = PipeTransport(reader, _BufferWriter())

    first = await transport.receive()
    second = await transport.receive()
    assert first == {"id": 1, "result": {}}
    assert second["params"] == {"n": "ü"}


@pytest.mark.asyncio
async def test_eof_raises_connection_closed() -> None:
    reader = asyncio.StreamReader()
    reader.feed_data(b"\x10\x00")
    reader.feed_eof()
    transport = PipeTransport(reader, _BufferWriter())

    with pytest.raises(ConnectionClosedError):
        await transport.receive()
    assert transport.is_closed


@pytest.mark.asyncio
async def test_send_after_close_fails_immediately() -> None:
    writer = _BufferWriter()
    transport = PipeTransport(asyncio.StreamReader(), writer)
    await transport.close()
    assert writer.closed

    with pytest.raises(ConnectionClosedError):
        await transport.send({"id": 1})


@pytest.mark.asyncio
async def test_broken_pipe_on_send_is_connection_closed() -> None:
    writer = _BufferWriter()
    writer.broken = True
    transport = PipeTransport(asyncio.StreamReader(), writer)

    with pytest.raises(ConnectionClosedError):
        await transport.send({"id": 1})
    assert transport.is_closed
