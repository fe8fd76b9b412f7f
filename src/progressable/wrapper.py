import contextlib
import typing

import trio

from .body import RequestBody
from .exceptions import InvalidArgument, MissingRequired, wrap_io_errors
from .progress import ProgressSink, ProgressType, as_progress_sink
from .utils import DEFAULT_CHUNK_SIZE, copy_stream

_BODY_CAPABILITIES = ("headers", "content_length", "open_stream", "close")


class ProgressableBody(RequestBody):
    """Wraps another request body and reports upload progress while the
    body is being written to the network. After every chunk that was sent
    'progress' receives the total number of bytes sent so far.

    The wrapped body's headers are copied once, when the wrapper is created.
    The wrapper owns the wrapped body from then on: closing the wrapper
    closes the wrapped body.

    >>> body = ProgressableBody(Bytes(data), print, chunk_size=4096)
    >>> await body.serialize(send_stream)
    """

    def __init__(
        self,
        body: RequestBody,
        progress: ProgressType,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
            raise InvalidArgument(f"'chunk_size' must be an int, got {chunk_size!r}")
        if chunk_size <= 0:
            raise InvalidArgument(f"'chunk_size' must be positive, got {chunk_size}")
        if body is None:
            raise MissingRequired("'body' is required")
        missing = [name for name in _BODY_CAPABILITIES if not hasattr(body, name)]
        if missing:
            raise InvalidArgument(
                f"'body' doesn't look like a request body, missing {missing!r}"
            )

        self._progress: ProgressSink = as_progress_sink(progress)
        self._chunk_size = chunk_size
        self._body = body
        super().__init__(headers=body.headers)

    @property
    def body(self) -> RequestBody:
        return self._body

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def content_length(self) -> typing.Optional[int]:
        return self._body.content_length

    async def serialize(
        self,
        stream: trio.abc.SendStream,
        chunk_size: typing.Optional[int] = None,
    ) -> int:
        """Writes the wrapped body onto 'stream' while reporting progress.
        The readable stream of the wrapped body is closed when this returns,
        including when writing fails or the task is cancelled.
        """
        if chunk_size is None:
            chunk_size = self._chunk_size
        async with await self.open_stream() as source:
            return await copy_stream(
                source,
                stream,
                chunk_size=chunk_size,
                progress=self._progress,
                body=self,
            )

    @contextlib.asynccontextmanager
    async def data_chunks(
        self,
    ) -> typing.AsyncIterator[typing.AsyncIterator[bytes]]:
        """Same as 'serialize()' for transports that pull the body as an
        async iterator. Progress is reported once the consumer comes back
        for the next chunk, i.e. after it has sent the previous one.
        The readable stream of the wrapped body is closed when the
        'async with' block exits, whether or not all chunks were consumed.

        >>> async with body.data_chunks() as chunks:
        ...     async for chunk in chunks:
        ...         await socket.send_all(chunk)
        """
        async with await self.open_stream() as source:
            yield self._iter_chunks(source)

    async def _iter_chunks(
        self, source: trio.abc.ReceiveStream
    ) -> typing.AsyncIterator[bytes]:
        sent = 0
        while True:
            with wrap_io_errors("error while reading the request body", self):
                chunk = await source.receive_some(self._chunk_size)
            if not chunk:
                return
            yield chunk
            sent += len(chunk)
            self._progress.report(sent)

    async def _open_stream(self) -> trio.abc.ReceiveStream:
        return await self._body.open_stream()

    def _close(self) -> None:
        self._body.close()

    def __repr__(self) -> str:
        return (
            f"<ProgressableBody body={self._body!r} chunk_size={self._chunk_size}>"
        )
