import logging
import traceback
from types import TracebackType
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple, Type, cast

from logfmt_encoder.encoder import (
    Level,
    LogfmtEncoder,
    Redactor,
    format_string,
    normalize_key,
)

ExcInfo = Tuple[Type[BaseException], BaseException, TracebackType]

# Reserved log record attributes are never emitted as extras. They are only
# reachable through the formatter's keys/mapping.
#
# https://docs.python.org/3/library/logging.html#logrecord-attributes
RESERVED: Tuple[str, ...] = (
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "message",
    "module",
    "msecs",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
)


class Logfmter(logging.Formatter):
    """
    A ``logging.Formatter`` that renders records as logfmt lines.

    The returned string has no trailing newline; the handler's terminator
    ends the line.
    """

    @classmethod
    def format_exc_info(cls, exc_info: ExcInfo) -> str:
        """
        Format the provided exc_info into a logfmt formatted string.

        This function should only be used to format exceptions which are
        currently being handled. Not with those exceptions which are
        manually passed into the logger. For example:

            try:
                raise Exception()
            except Exception:
                logging.exception()
        """
        # Tracebacks have a single trailing newline that we don't need.
        value = "".join(traceback.format_exception(*exc_info)).rstrip("\n")

        return format_string(value)

    @classmethod
    def get_extra(cls, record: logging.LogRecord) -> Dict[str, Any]:
        """
        Return a dictionary of logger extra parameters by filtering any reserved keys.
        """
        extras: Dict[str, Any] = {}

        for key, value in record.__dict__.items():
            if key in RESERVED:
                continue

            key = normalize_key(key)

            if isinstance(value, dict):
                extras.update(cls.flatten_dict(value, key))
            else:
                extras[key] = value

        return extras

    @classmethod
    def flatten_dict(
        cls, v: dict, root: str = "", seen: FrozenSet[int] = frozenset()
    ) -> Dict[str, Any]:
        """
        Return a dictionary whereby the input dictionary is converted to
        depth equal to one with keys that are joined via periods.

        A dict that contains itself, directly or further down, is not
        descended into again; it is kept as a leaf value instead.
        """
        flattened: Dict[str, Any] = {}
        seen = seen | {id(v)}

        for key, value in v.items():
            key = normalize_key(str(key))
            key = f"{root}.{key}" if root else key

            if isinstance(value, dict) and id(value) not in seen:
                flattened.update(cls.flatten_dict(value, key, seen))
            else:
                flattened[key] = value

        return flattened

    def __init__(
        self,
        prefix: str = "",
        keys: Sequence[str] = (),
        mapping: Optional[Dict[str, str]] = None,
        datefmt: Optional[str] = None,
        force_quotes: bool = False,
        redactor: Optional[Redactor] = None,
    ):
        super().__init__(datefmt=datefmt)
        self.encoder = LogfmtEncoder(
            prefix=prefix, force_quotes=force_quotes, redactor=redactor
        )
        self.keys: List[str] = [normalize_key(key) for key in keys]
        self.mapping = {
            normalize_key(key): value for key, value in (mapping or {}).items()
        }

    def get_keyed(self, record: logging.LogRecord) -> List[Tuple[str, Any]]:
        """
        Return the configured record attributes as (key, value) pairs.

        A key is looked up under its mapped attribute name when a mapping
        exists, e.g. 'logger' from 'name'. Missing attributes are skipped.
        """
        pairs = []

        for key in self.keys:
            attribute = self.mapping.get(key, key)

            if not hasattr(record, attribute):
                continue

            value = getattr(record, attribute)
            if isinstance(value, dict):
                pairs.extend(self.flatten_dict(value, key).items())
            else:
                pairs.append((key, value))

        return pairs

    def format(self, record: logging.LogRecord) -> str:
        # If the 'asctime' attribute will be used, then generate it.
        if "asctime" in self.keys or "asctime" in self.mapping.values():
            record.asctime = self.formatTime(record, self.datefmt)

        pairs = self.get_keyed(record)
        pairs.extend(self.get_extra(record).items())

        line = self.encoder.encode(
            Level.from_levelno(record.levelno), record.getMessage(), pairs
        ).rstrip("\n")

        tokens = [line]

        if record.exc_info:
            # Cast exc_info to its not null variant to make mypy happy.
            exc_info = cast(ExcInfo, record.exc_info)
            tokens.append(f"exc_info={self.format_exc_info(exc_info)}")

        if record.stack_info:
            stack_info = self.formatStack(record.stack_info).rstrip("\n")
            tokens.append(f"stack_info={format_string(stack_info)}")

        return " ".join(tokens)
