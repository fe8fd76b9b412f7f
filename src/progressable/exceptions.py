import contextlib
import typing

import trio

if typing.TYPE_CHECKING:
    from .body import RequestBody


class ProgressableError(Exception):
    """Base error type for 'progressable' which may carry the
    request body that was being handled when the error occurred
    and the encapsulated error if this error wraps a different exception.
    """

    def __init__(
        self,
        message: str,
        *,
        body: typing.Optional["RequestBody"] = None,
        error: typing.Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.body = body
        self.error = error


class ConfigurationError(ProgressableError):
    """Error raised when an object is constructed with invalid arguments.
    The instance must not be used afterwards.
    """


class InvalidArgument(ConfigurationError, ValueError):
    """An argument was given but its value is not acceptable"""


class MissingRequired(ConfigurationError, TypeError):
    """A required argument was 'None'"""


class TransportError(ProgressableError):
    """Error raised when reading the source body or writing
    to the destination stream fails during serialization.
    """


class BodyClosed(ProgressableError):
    """Error raised when using a request body after it has been closed"""


class UnrewindableBodyError(ProgressableError):
    """Error raised when a request body needs to be streamed
    a second time but its data cannot be rewound.
    """


@contextlib.contextmanager
def wrap_io_errors(
    message: str, body: typing.Optional["RequestBody"] = None
) -> typing.Iterator[None]:
    """Rewrites stream and OS level failures into 'TransportError'.
    Cancellation and errors that already belong to us pass through untouched.
    """
    try:
        yield
    except ProgressableError:
        raise
    except (trio.BrokenResourceError, trio.ClosedResourceError, OSError) as err:
        # trio.BrokenResourceError usually carries the real socket error.
        cause = err.__cause__ if err.__cause__ is not None else err
        raise TransportError(message, body=body, error=cause) from err
