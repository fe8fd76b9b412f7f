import io
import json
import mimetypes
import os
import typing

import filetype
import trio

from .exceptions import BodyClosed, UnrewindableBodyError
from .models import Headers, HeadersType
from .streams import BytesReceiveStream, FileReceiveStream, IterableReceiveStream
from .utils import DEFAULT_CHUNK_SIZE, INT_TO_URLENC, copy_stream

JSONType = typing.Union[
    typing.Mapping[typing.Any, typing.Any],
    typing.Sequence[typing.Any],
    int,
    bool,
    str,
    float,
    None,
]
StrOrInt = typing.Union[str, int]
FormType = typing.Union[
    typing.Sequence[typing.Tuple[str, StrOrInt]],
    typing.Mapping[str, typing.Union[StrOrInt, typing.Sequence[StrOrInt]]],
]
StreamSourceType = typing.Union[
    trio.abc.ReceiveStream, typing.AsyncIterable[typing.Union[str, bytes]]
]


class RequestBody:
    """An outgoing request body. Transports only rely on these capabilities:

    - 'headers': the headers describing the body (Content-Type etc.)
    - 'content_length': the size in bytes or 'None' if it isn't known
      up front in which case the request should use 'Transfer-Encoding: chunked'
    - 'open_stream()': a fresh readable stream over the body data
    - 'close()': releases whatever the body holds on to

    Sub-classes implement '_open_stream()' and optionally '_close()'.
    """

    def __init__(self, *, headers: typing.Optional[HeadersType] = None):
        self._headers = Headers(headers or ())
        self._closed = False

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def content_length(self) -> typing.Optional[int]:
        raise NotImplementedError()

    @property
    def closed(self) -> bool:
        return self._closed

    async def open_stream(self) -> trio.abc.ReceiveStream:
        """Returns a stream over the body data starting at the
        beginning of the body. The caller is responsible for closing it.
        """
        self._check_open()
        return await self._open_stream()

    async def serialize(
        self, stream: trio.abc.SendStream, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> int:
        """Writes the whole body onto 'stream'. Returns the number of bytes written."""
        async with await self.open_stream() as source:
            return await copy_stream(
                source, stream, chunk_size=chunk_size, body=self
            )

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._close()

    def __enter__(self) -> "RequestBody":
        return self

    def __exit__(self, *_: typing.Any) -> None:
        self.close()

    async def _open_stream(self) -> trio.abc.ReceiveStream:
        raise NotImplementedError()

    def _close(self) -> None:
        pass

    def _check_open(self) -> None:
        if self._closed:
            raise BodyClosed("request body is closed", body=self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} content_length={self.content_length!r}>"


class Bytes(RequestBody):
    """Class representing the simplest data-type, just bytes."""

    def __init__(
        self,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        headers: typing.Optional[HeadersType] = None,
    ):
        super().__init__(headers=headers)
        self._data = data
        self._headers.setdefault("Content-Type", content_type)

    @property
    def content_length(self) -> int:
        return len(self._data)

    async def _open_stream(self) -> trio.abc.ReceiveStream:
        return BytesReceiveStream(self._data)


def compact_json_dumps(obj: JSONType) -> str:
    """Function that doesn't add extra whitespace when encoding JSON"""
    return json.dumps(obj, separators=(",", ":"))


class JSON(Bytes):
    def __init__(
        self,
        obj: JSONType,
        *,
        json_dumps: typing.Callable[[JSONType], str] = compact_json_dumps,
        headers: typing.Optional[HeadersType] = None,
    ):
        super().__init__(
            json_dumps(obj).encode("utf-8"),
            content_type="application/json",
            headers=headers,
        )


class URLEncodedForm(Bytes):
    """Implements application/x-www-form-urlencoded"""

    def __init__(
        self, form: FormType, *, headers: typing.Optional[HeadersType] = None
    ):
        super().__init__(
            _encode_form(form),
            content_type="application/x-www-form-urlencoded",
            headers=headers,
        )


def _encode_form(form: FormType) -> bytes:
    def serialize(x: StrOrInt) -> bytes:
        return b"".join([INT_TO_URLENC[byte] for byte in str(x).encode("utf-8")])

    output: typing.List[bytes] = []
    for k, vs in form.items() if hasattr(form, "items") else form:
        if isinstance(vs, str) or not hasattr(vs, "__iter__"):
            vs = (vs,)
        for v in vs:
            output.append(serialize(k) + b"=" + serialize(v))
    return b"&".join(output)


class File(RequestBody):
    """Class representing a binary file-like object. The body starts at
    the file pointer position when the 'File' is created and every call
    to 'open_stream()' rewinds back to there.
    """

    def __init__(
        self,
        fp: typing.BinaryIO,
        *,
        content_type: typing.Optional[str] = None,
        headers: typing.Optional[HeadersType] = None,
        close_fp: bool = False,
    ):
        super().__init__(headers=headers)
        self._fp = fp
        self._close_fp = close_fp
        # Initial location of the file pointer before data
        # transmission starts, 'None' if we can't seek.
        self._fp_begin: typing.Optional[int] = None
        self._fp_end: typing.Optional[int] = None

        if _is_seekable(fp):
            self._fp_begin = fp.tell()
            fp.seek(0, io.SEEK_END)
            self._fp_end = fp.tell()
            fp.seek(self._fp_begin, io.SEEK_SET)

        if content_type is None:
            content_type = self._guess_content_type()
        if content_type is not None:
            self._headers.setdefault("Content-Type", content_type)

    @classmethod
    def from_path(
        cls,
        path: typing.Union[str, "os.PathLike[str]"],
        *,
        content_type: typing.Optional[str] = None,
        headers: typing.Optional[HeadersType] = None,
    ) -> "File":
        """Opens the file at 'path', the file is closed along with the body."""
        fp = open(path, mode="rb")
        try:
            return cls(fp, content_type=content_type, headers=headers, close_fp=True)
        except BaseException:
            fp.close()
            raise

    @property
    def content_length(self) -> typing.Optional[int]:
        if self._fp_begin is None or self._fp_end is None:
            return None
        return self._fp_end - self._fp_begin

    async def _open_stream(self) -> trio.abc.ReceiveStream:
        if self._fp_begin is not None:
            await trio.to_thread.run_sync(self._fp.seek, self._fp_begin, io.SEEK_SET)
        return FileReceiveStream(self._fp)

    def _close(self) -> None:
        if self._close_fp:
            self._fp.close()

    def _guess_content_type(self) -> typing.Optional[str]:
        content_type = None
        if self._fp_begin is not None:
            data = self._fp.read(261)  # All that 'filetype' looks at.
            self._fp.seek(self._fp_begin, io.SEEK_SET)
            content_type = filetype.guess_mime(data) if data else None

        # Couldn't guess by the contents of the file, so
        # we try the name of the file as a last-ditch effort.
        name = getattr(self._fp, "name", None)
        if content_type is None and isinstance(name, (str, os.PathLike)):
            content_type, _ = mimetypes.guess_type(os.fspath(name), strict=False)
        return content_type


def _is_seekable(fp: typing.Any) -> bool:
    seekable = getattr(fp, "seekable", None)
    if seekable is not None:
        try:
            return bool(seekable())
        except (OSError, ValueError):
            return False
    return hasattr(fp, "seek") and hasattr(fp, "tell")


class Stream(RequestBody):
    """Body backed by a one-shot source: an async iterable of bytes / str
    chunks or an existing 'trio.abc.ReceiveStream'. It can only be
    streamed once, there's no way to rewind it for a retry.
    """

    def __init__(
        self,
        source: StreamSourceType,
        *,
        content_length: typing.Optional[int] = None,
        headers: typing.Optional[HeadersType] = None,
    ):
        super().__init__(headers=headers)
        self._source = source
        self._content_length = content_length
        self._stream: typing.Optional[trio.abc.ReceiveStream] = None

    @property
    def content_length(self) -> typing.Optional[int]:
        return self._content_length

    async def _open_stream(self) -> trio.abc.ReceiveStream:
        if self._stream is not None:
            raise UnrewindableBodyError(
                "request body stream was already consumed", body=self
            )
        if isinstance(self._source, trio.abc.ReceiveStream):
            self._stream = self._source
        else:
            self._stream = IterableReceiveStream(self._source)
        return self._stream
