"""Readable byte streams handed out by 'RequestBody.open_stream()'.
All of them follow the 'trio.abc.ReceiveStream' contract: 'receive_some()'
returns at most 'max_bytes' bytes and b"" at the end of the body.
"""

import typing

import trio

from .utils import DEFAULT_CHUNK_SIZE, to_bytes


class BytesReceiveStream(trio.abc.ReceiveStream):
    """Streams a bytes object that's already in memory."""

    def __init__(self, data: bytes):
        self._data = memoryview(data)
        self._offset = 0
        self._closed = False

    async def receive_some(self, max_bytes: typing.Optional[int] = None) -> bytes:
        if self._closed:
            raise trio.ClosedResourceError("stream was closed")
        await trio.lowlevel.checkpoint()
        if max_bytes is None:
            max_bytes = DEFAULT_CHUNK_SIZE
        chunk = self._data[self._offset : self._offset + max_bytes]
        self._offset += len(chunk)
        return bytes(chunk)

    async def aclose(self) -> None:
        self._closed = True
        await trio.lowlevel.checkpoint()


class FileReceiveStream(trio.abc.ReceiveStream):
    """Streams a binary file object. Reads happen in a worker
    thread via 'trio.wrap_file()' so a slow disk doesn't block
    the event loop. Closing the stream leaves the file open,
    the file belongs to the body that opened the stream.
    """

    def __init__(self, fp: typing.BinaryIO):
        self._fp = trio.wrap_file(fp)
        self._closed = False

    async def receive_some(self, max_bytes: typing.Optional[int] = None) -> bytes:
        if self._closed:
            raise trio.ClosedResourceError("stream was closed")
        if max_bytes is None:
            max_bytes = DEFAULT_CHUNK_SIZE
        data = await self._fp.read(max_bytes)
        return to_bytes(data or b"")

    async def aclose(self) -> None:
        self._closed = True
        await trio.lowlevel.checkpoint()


class IterableReceiveStream(trio.abc.ReceiveStream):
    """Streams the chunks of an async iterable of bytes or str.
    Chunks larger than 'max_bytes' are split across calls.
    """

    def __init__(
        self,
        iterable: typing.AsyncIterable[typing.Union[str, bytes]],
        encoding: str = "utf-8",
    ):
        self._iterator = iterable.__aiter__()
        self._encoding = encoding
        self._buffer = b""
        self._exhausted = False
        self._closed = False

    async def receive_some(self, max_bytes: typing.Optional[int] = None) -> bytes:
        if self._closed:
            raise trio.ClosedResourceError("stream was closed")
        if max_bytes is None:
            max_bytes = DEFAULT_CHUNK_SIZE

        # Skip over empty chunks, b"" is reserved for the end of the stream.
        while not self._buffer and not self._exhausted:
            try:
                chunk = await self._iterator.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
            else:
                self._buffer = to_bytes(chunk, self._encoding)

        data, self._buffer = self._buffer[:max_bytes], self._buffer[max_bytes:]
        if not data:
            await trio.lowlevel.checkpoint()
        return data

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            aclose = getattr(self._iterator, "aclose", None)
            if aclose is not None:
                await aclose()
        await trio.lowlevel.checkpoint()
