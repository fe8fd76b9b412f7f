import typing

import trio

from .exceptions import InvalidArgument, wrap_io_errors

if typing.TYPE_CHECKING:
    from .body import RequestBody
    from .progress import ProgressSink

# 5 * 4096, small enough to report often on slow uplinks.
DEFAULT_CHUNK_SIZE = 20480


def _int_to_urlenc() -> typing.Dict[int, bytes]:
    """Creates a mapping of ordinals to bytes encoded via url-encoding"""
    values = {}
    special = {0x2A, 0x2D, 0x2E, 0x5F}
    for byte in range(256):
        if (
            (0x61 <= byte <= 0x7A)
            or (0x030 <= byte <= 0x5A and byte != 0x40)
            or (byte in special)
        ):  # Keep the ASCII
            values[byte] = bytes((byte,))
        elif byte == 0x020:  # Space -> '+'
            values[byte] = b"+"
        else:  # Percent-encoded
            values[byte] = b"%" + hex(byte)[2:].upper().zfill(2).encode()
    return values


INT_TO_URLENC = _int_to_urlenc()


def to_bytes(value: typing.Union[str, bytes], encoding: str = "utf-8") -> bytes:
    if isinstance(value, str):
        return value.encode(encoding)
    return value


async def copy_stream(
    source: trio.abc.ReceiveStream,
    destination: trio.abc.SendStream,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: typing.Optional["ProgressSink"] = None,
    body: typing.Optional["RequestBody"] = None,
) -> int:
    """Copies 'source' onto 'destination' in chunks of at most 'chunk_size'
    bytes until 'source' is exhausted. After every chunk is written the
    cumulative number of bytes written is handed to 'progress'.
    I/O failures become 'TransportError' carrying 'body'.
    Returns the total number of bytes copied.
    """
    if chunk_size <= 0:
        raise InvalidArgument(f"'chunk_size' must be positive, got {chunk_size}")

    total = 0
    while True:
        with wrap_io_errors("error while reading the request body", body):
            chunk = await source.receive_some(chunk_size)
        if not chunk:
            break
        with wrap_io_errors("error while writing the request body", body):
            await destination.send_all(chunk)
        total += len(chunk)
        if progress is not None:
            progress.report(total)
    return total
