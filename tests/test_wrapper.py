import typing

import pytest
import trio
import trio.testing

import progressable
from progressable.streams import BytesReceiveStream


class TrackingReceiveStream(BytesReceiveStream):
    """Remembers whether it was closed and can stall on a given read."""

    def __init__(self, data: bytes, stall_on_read: typing.Optional[int] = None):
        super().__init__(data)
        self.was_closed = False
        self.reads = 0
        self.stall_on_read = stall_on_read

    async def receive_some(self, max_bytes=None) -> bytes:
        self.reads += 1
        if self.reads == self.stall_on_read:
            await trio.sleep_forever()
        return await super().receive_some(max_bytes)

    async def aclose(self) -> None:
        self.was_closed = True
        await super().aclose()


class TrackingBody(progressable.RequestBody):
    def __init__(self, data: bytes, *, stall_on_read=None, **kwargs):
        super().__init__(**kwargs)
        self.data = data
        self.stall_on_read = stall_on_read
        self.streams: typing.List[TrackingReceiveStream] = []
        self.close_calls = 0

    @property
    def content_length(self) -> int:
        return len(self.data)

    async def _open_stream(self) -> TrackingReceiveStream:
        stream = TrackingReceiveStream(self.data, stall_on_read=self.stall_on_read)
        self.streams.append(stream)
        return stream

    def _close(self) -> None:
        self.close_calls += 1


class FailingSendStream(trio.abc.SendStream):
    """Accepts 'ok_writes' writes, then breaks."""

    def __init__(self, ok_writes: int):
        self.ok_writes = ok_writes
        self.data = bytearray()

    async def send_all(self, data) -> None:
        await trio.lowlevel.checkpoint()
        if self.ok_writes <= 0:
            raise trio.BrokenResourceError("connection reset") from ConnectionResetError()
        self.ok_writes -= 1
        self.data += data

    async def wait_send_all_might_not_block(self) -> None:
        await trio.lowlevel.checkpoint()

    async def aclose(self) -> None:
        await trio.lowlevel.checkpoint()


class DuckBody:
    """Implements the body capabilities without sub-classing RequestBody."""

    def __init__(self, data: bytes):
        self.headers = {"Content-Type": "text/plain", "X-Duck": "quack"}
        self.content_length = None
        self.data = data
        self.closed = 0

    async def open_stream(self) -> trio.abc.ReceiveStream:
        return BytesReceiveStream(self.data)

    def close(self) -> None:
        self.closed += 1


@pytest.mark.trio
async def test_progress_reports_cumulative_bytes():
    reports = []
    body = progressable.ProgressableBody(
        progressable.Bytes(b"x" * 50000), reports.append, chunk_size=20480
    )
    destination = trio.testing.MemorySendStream()

    sent = await body.serialize(destination)

    assert reports == [20480, 40960, 50000]
    assert sent == 50000
    assert destination.get_data_nowait() == b"x" * 50000


@pytest.mark.trio
@pytest.mark.parametrize(
    ["size", "chunk_size"],
    [
        (size, chunk_size)
        for size in (1, 100, 4095, 4096, 4097, 65536, 100001)
        for chunk_size in (1, 7, 4096, 20480)
        # Keep the number of chunks per case reasonable.
        if size // chunk_size <= 5000
    ],
)
async def test_progress_is_strictly_increasing_and_ends_at_size(size, chunk_size):
    data = bytes(range(256)) * (size // 256) + bytes(size % 256)
    reports = []
    body = progressable.ProgressableBody(
        progressable.Bytes(data), reports.append, chunk_size=chunk_size
    )
    destination = trio.testing.MemorySendStream()

    await body.serialize(destination)

    assert reports[-1] == size
    assert all(a < b for a, b in zip(reports, reports[1:]))
    assert all(b - a <= chunk_size for a, b in zip([0] + reports, reports))
    assert destination.get_data_nowait() == data


@pytest.mark.trio
async def test_empty_body_sends_nothing():
    reports = []
    body = progressable.ProgressableBody(progressable.Bytes(b""), reports.append)
    destination = trio.testing.MemorySendStream()

    assert await body.serialize(destination) == 0
    assert reports == []
    # Nothing was ever written to the destination.
    with pytest.raises(trio.WouldBlock):
        destination.get_data_nowait()


@pytest.mark.trio
async def test_default_chunk_size():
    reports = []
    body = progressable.ProgressableBody(
        progressable.Bytes(b"a" * 50000), reports.append
    )
    assert body.chunk_size == progressable.DEFAULT_CHUNK_SIZE == 20480

    await body.serialize(trio.testing.MemorySendStream())

    assert reports == [20480, 40960, 50000]


@pytest.mark.parametrize("chunk_size", [0, -1, -20480])
def test_chunk_size_must_be_positive(chunk_size):
    inner = TrackingBody(b"data")
    with pytest.raises(progressable.InvalidArgument):
        progressable.ProgressableBody(inner, print, chunk_size=chunk_size)

    # Invalid arguments don't take ownership of the body.
    assert inner.close_calls == 0


@pytest.mark.parametrize("chunk_size", [1.5, "1024", True])
def test_chunk_size_must_be_an_int(chunk_size):
    with pytest.raises(progressable.InvalidArgument):
        progressable.ProgressableBody(
            progressable.Bytes(b""), print, chunk_size=chunk_size
        )


def test_body_is_required():
    with pytest.raises(progressable.MissingRequired):
        progressable.ProgressableBody(None, print)


def test_progress_is_required():
    with pytest.raises(progressable.MissingRequired):
        progressable.ProgressableBody(progressable.Bytes(b"data"), None)


def test_configuration_errors_are_builtin_errors_too():
    with pytest.raises(ValueError):
        progressable.ProgressableBody(progressable.Bytes(b""), print, chunk_size=0)
    with pytest.raises(TypeError):
        progressable.ProgressableBody(None, print)
    with pytest.raises(progressable.ConfigurationError):
        progressable.ProgressableBody(progressable.Bytes(b""), object())


def test_body_must_have_body_capabilities():
    with pytest.raises(progressable.InvalidArgument):
        progressable.ProgressableBody(b"not a body", print)


def test_content_length_is_forwarded():
    body = progressable.ProgressableBody(progressable.Bytes(b"x" * 123), print)
    assert body.content_length == 123

    body = progressable.ProgressableBody(progressable.Bytes(b""), print)
    assert body.content_length == 0


@pytest.mark.trio
async def test_unknown_content_length_stays_unknown():
    async def chunks():
        yield b"abc"

    body = progressable.ProgressableBody(progressable.Stream(chunks()), print)
    assert body.content_length is None


def test_headers_are_snapshotted():
    inner = progressable.Bytes(
        b"data",
        headers=[
            ("X-First", "1"),
            ("X-Multi", "a"),
            ("x-multi", "b"),
            ("Content-Encoding", "identity"),
        ],
    )
    body = progressable.ProgressableBody(inner, print)

    assert list(body.headers.items()) == list(inner.headers.items())
    assert list(body.headers.items()) == [
        ("X-First", "1"),
        ("X-Multi", "a"),
        ("X-Multi", "b"),
        ("Content-Encoding", "identity"),
        ("Content-Type", "application/octet-stream"),
    ]

    inner.headers.add("X-Later", "2")
    inner.headers["X-First"] = "changed"

    assert "X-Later" not in body.headers
    assert body.headers["X-First"] == "1"


@pytest.mark.trio
async def test_failed_write_raises_transport_error_and_closes_source():
    reports = []
    inner = TrackingBody(b"y" * 50)
    body = progressable.ProgressableBody(inner, reports.append, chunk_size=10)
    destination = FailingSendStream(ok_writes=2)

    with pytest.raises(progressable.TransportError) as e:
        await body.serialize(destination)

    assert e.value.body is body
    assert isinstance(e.value.__cause__, trio.BrokenResourceError)
    assert isinstance(e.value.error, ConnectionResetError)
    assert reports == [10, 20]
    assert bytes(destination.data) == b"y" * 20
    assert inner.streams[0].was_closed


@pytest.mark.trio
async def test_failed_read_raises_transport_error():
    class BrokenStream(BytesReceiveStream):
        async def receive_some(self, max_bytes=None):
            raise OSError("disk on fire")

    class BrokenBody(TrackingBody):
        async def _open_stream(self):
            return BrokenStream(self.data)

    reports = []
    body = progressable.ProgressableBody(BrokenBody(b"zz"), reports.append)

    with pytest.raises(progressable.TransportError) as e:
        await body.serialize(trio.testing.MemorySendStream())

    assert isinstance(e.value.error, OSError)
    assert e.value.body is body
    assert reports == []


@pytest.mark.trio
async def test_cancellation_closes_source():
    inner = TrackingBody(b"c" * 30, stall_on_read=2)
    reports = []
    body = progressable.ProgressableBody(inner, reports.append, chunk_size=10)

    with trio.move_on_after(0.05) as scope:
        await body.serialize(trio.testing.MemorySendStream())

    assert scope.cancelled_caught
    assert reports == [10]
    assert inner.streams[0].was_closed


@pytest.mark.trio
async def test_progress_errors_propagate():
    inner = TrackingBody(b"p" * 30)

    def progress(value):
        raise RuntimeError("ui went away")

    body = progressable.ProgressableBody(inner, progress, chunk_size=10)

    with pytest.raises(RuntimeError):
        await body.serialize(trio.testing.MemorySendStream())
    assert inner.streams[0].was_closed


@pytest.mark.trio
async def test_progress_sink_object():
    class Sink:
        def __init__(self):
            self.values = []

        def report(self, value):
            self.values.append(value)

    sink = Sink()
    body = progressable.ProgressableBody(
        progressable.Bytes(b"s" * 25), sink, chunk_size=10
    )
    await body.serialize(trio.testing.MemorySendStream())

    assert sink.values == [10, 20, 25]


@pytest.mark.trio
async def test_each_serialization_counts_from_zero():
    reports = []
    body = progressable.ProgressableBody(
        progressable.Bytes(b"r" * 15), reports.append, chunk_size=10
    )
    await body.serialize(trio.testing.MemorySendStream())
    await body.serialize(trio.testing.MemorySendStream())

    assert reports == [10, 15, 10, 15]


def test_close_forwards_once():
    inner = TrackingBody(b"data")
    body = progressable.ProgressableBody(inner, print)

    body.close()
    body.close()

    assert body.closed
    assert inner.closed
    assert inner.close_calls == 1


def test_context_manager_closes():
    inner = TrackingBody(b"data")
    with progressable.ProgressableBody(inner, print) as body:
        assert not body.closed
    assert inner.close_calls == 1


@pytest.mark.trio
async def test_serialize_after_close():
    body = progressable.ProgressableBody(progressable.Bytes(b"data"), print)
    body.close()

    with pytest.raises(progressable.BodyClosed):
        await body.serialize(trio.testing.MemorySendStream())


@pytest.mark.trio
async def test_duck_typed_body():
    inner = DuckBody(b"quack" * 10)
    reports = []
    body = progressable.ProgressableBody(inner, reports.append, chunk_size=20)

    assert body.content_length is None
    assert list(body.headers.items()) == [
        ("Content-Type", "text/plain"),
        ("X-Duck", "quack"),
    ]

    destination = trio.testing.MemorySendStream()
    await body.serialize(destination)
    assert reports == [20, 40, 50]
    assert destination.get_data_nowait() == b"quack" * 10

    body.close()
    body.close()
    assert inner.closed == 1


@pytest.mark.parametrize(
    "headers",
    [
        [("Content-Type", "text/plain"), ("X-Duck", "quack")],
        (("Content-Type", "text/plain"), ("X-Duck", "quack")),
        progressable.Headers({"Content-Type": "text/plain", "X-Duck": "quack"}),
    ],
)
def test_duck_typed_body_header_shapes(headers):
    inner = DuckBody(b"quack")
    inner.headers = headers
    body = progressable.ProgressableBody(inner, print)

    assert list(body.headers.items()) == [
        ("Content-Type", "text/plain"),
        ("X-Duck", "quack"),
    ]


@pytest.mark.trio
async def test_data_chunks_reports_progress():
    reports = []
    inner = TrackingBody(b"d" * 25)
    body = progressable.ProgressableBody(inner, reports.append, chunk_size=10)

    chunks = []
    async with body.data_chunks() as iterator:
        async for chunk in iterator:
            chunks.append(chunk)

    assert chunks == [b"d" * 10, b"d" * 10, b"d" * 5]
    assert reports == [10, 20, 25]
    assert inner.streams[0].was_closed


@pytest.mark.trio
async def test_data_chunks_closes_source_when_abandoned():
    reports = []
    inner = TrackingBody(b"a" * 30)
    body = progressable.ProgressableBody(inner, reports.append, chunk_size=10)

    async with body.data_chunks() as iterator:
        async for chunk in iterator:
            assert chunk == b"a" * 10
            break

    assert inner.streams[0].was_closed
    assert reports == []


@pytest.mark.trio
async def test_data_chunks_closes_source_when_consumer_fails():
    inner = TrackingBody(b"f" * 30)
    body = progressable.ProgressableBody(inner, print, chunk_size=10)

    with pytest.raises(trio.BrokenResourceError):
        async with body.data_chunks() as iterator:
            async for _ in iterator:
                raise trio.BrokenResourceError("peer went away")

    assert inner.streams[0].was_closed


@pytest.mark.trio
async def test_wrapped_stream_body_is_single_use():
    async def chunks():
        yield b"hello "
        yield "world"

    reports = []
    body = progressable.ProgressableBody(
        progressable.Stream(chunks()), reports.append, chunk_size=4
    )
    destination = trio.testing.MemorySendStream()
    await body.serialize(destination)

    assert destination.get_data_nowait() == b"hello world"
    assert reports == [4, 6, 10, 11]

    with pytest.raises(progressable.UnrewindableBodyError):
        await body.serialize(destination)
