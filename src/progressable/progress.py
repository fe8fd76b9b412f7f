import logging
import typing

from tqdm import tqdm

from .exceptions import InvalidArgument, MissingRequired

logger = logging.getLogger("progressable")

ProgressCallback = typing.Callable[[int], typing.Any]


class ProgressSink(typing.Protocol):
    """Observer of upload progress. 'report()' receives the cumulative
    number of bytes transferred so far. During a single serialization
    the values only ever increase and no report follows the end of it.
    """

    def report(self, value: int) -> None:
        ...


ProgressType = typing.Union[ProgressSink, ProgressCallback]


class CallbackProgress:
    """Adapts a plain callable into a 'ProgressSink'."""

    def __init__(self, callback: ProgressCallback):
        self._callback = callback

    def report(self, value: int) -> None:
        self._callback(value)

    def __repr__(self) -> str:
        return f"<CallbackProgress {self._callback!r}>"


class LoggingProgress:
    """Writes every progress report to a logger, with a
    percentage when the total size is known.
    """

    def __init__(
        self,
        log: typing.Optional[logging.Logger] = None,
        *,
        level: int = logging.DEBUG,
        total: typing.Optional[int] = None,
        name: str = "upload",
    ):
        self.log = log or logger
        self.level = level
        self.total = total
        self.name = name

    def report(self, value: int) -> None:
        if self.total:
            self.log.log(
                self.level,
                "%s: %d of %d bytes sent (%.1f%%)",
                self.name,
                value,
                self.total,
                100.0 * value / self.total,
            )
        else:
            self.log.log(self.level, "%s: %d bytes sent", self.name, value)


class TqdmProgress:
    """Drives a 'tqdm' progress bar. tqdm counts increments so
    the cumulative values are turned back into deltas.
    """

    def __init__(
        self,
        total: typing.Optional[int] = None,
        *,
        desc: typing.Optional[str] = None,
        **tqdm_kwargs: typing.Any,
    ):
        tqdm_kwargs.setdefault("unit", "B")
        tqdm_kwargs.setdefault("unit_scale", True)
        self.bar = tqdm(total=total, desc=desc, **tqdm_kwargs)
        self._last = 0

    def report(self, value: int) -> None:
        self.bar.update(value - self._last)
        self._last = value

    def close(self) -> None:
        self.bar.close()

    def __enter__(self) -> "TqdmProgress":
        return self

    def __exit__(self, *_: typing.Any) -> None:
        self.close()


def as_progress_sink(progress: typing.Optional[ProgressType]) -> ProgressSink:
    """Accepts either an object with a 'report()' method
    or a callable taking the cumulative byte count.
    """
    if progress is None:
        raise MissingRequired("'progress' is required")
    if callable(getattr(progress, "report", None)):
        return typing.cast(ProgressSink, progress)
    if callable(progress):
        return CallbackProgress(progress)
    raise InvalidArgument(
        f"'progress' must be callable or have a 'report()' method, got {progress!r}"
    )
