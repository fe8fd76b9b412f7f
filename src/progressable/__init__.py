from .exceptions import (
    ProgressableError,
    ConfigurationError,
    InvalidArgument,
    MissingRequired,
    TransportError,
    BodyClosed,
    UnrewindableBodyError,
)
from .models import Headers
from .body import RequestBody, Bytes, JSON, URLEncodedForm, File, Stream
from .progress import (
    ProgressSink,
    CallbackProgress,
    LoggingProgress,
    TqdmProgress,
    as_progress_sink,
)
from .utils import DEFAULT_CHUNK_SIZE, copy_stream
from .wrapper import ProgressableBody

__all__ = [
    "Headers",
    "RequestBody",
    "Bytes",
    "JSON",
    "URLEncodedForm",
    "File",
    "Stream",
    "ProgressableBody",
    "ProgressSink",
    "CallbackProgress",
    "LoggingProgress",
    "TqdmProgress",
    "as_progress_sink",
    "copy_stream",
    "DEFAULT_CHUNK_SIZE",
    "ProgressableError",
    "ConfigurationError",
    "InvalidArgument",
    "MissingRequired",
    "TransportError",
    "BodyClosed",
    "UnrewindableBodyError",
]

__version__ = "dev"
