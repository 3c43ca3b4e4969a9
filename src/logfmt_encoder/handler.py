import io
import logging
import sys
from typing import IO, Any, Optional

from logfmt_encoder.formatter import Logfmter


class LogfmtHandler(logging.StreamHandler):
    """
    A ``logging.StreamHandler`` that defaults to ``Logfmter`` and accepts
    binary sinks.

    Binary sinks receive the line encoded with ``encoding``; code points that
    cannot be encoded (e.g. lone surrogates) are written as backslash
    escapes. Text sinks receive the line unchanged. The sink is flushed
    after every line and is never closed by the handler.

    ``logging.Handler.handle`` holds the handler lock around ``emit``, so a
    single handler may be shared between threads.
    """

    def __init__(
        self,
        stream: Optional[IO[Any]] = None,
        formatter: Optional[logging.Formatter] = None,
        encoding: str = "utf-8",
        level: int = logging.NOTSET,
    ):
        if stream is None:
            stream = getattr(sys.stderr, "buffer", sys.stderr)
        super().__init__(stream)
        self.encoding = encoding
        self.setLevel(level)
        self.setFormatter(formatter if formatter is not None else Logfmter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record) + self.terminator
            if isinstance(self.stream, io.TextIOBase):
                self.stream.write(line)
            else:
                self.stream.write(line.encode(self.encoding, errors="backslashreplace"))
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)
