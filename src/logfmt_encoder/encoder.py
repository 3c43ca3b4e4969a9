import enum
import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple, Union

# Numeric level below DEBUG. The standard library has no name for it, so
# callers that want "trace" records log at this level explicitly.
TRACE = 5

Pairs = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


class Level(str, enum.Enum):
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    DEBUG = "debug"
    TRACE = "trace"

    @classmethod
    def from_levelno(cls, levelno: int) -> "Level":
        """
        Map a numeric ``logging`` level onto the closest named severity.
        """
        if levelno >= logging.CRITICAL:
            return cls.CRITICAL
        elif levelno >= logging.ERROR:
            return cls.ERROR
        elif levelno >= logging.WARNING:
            return cls.WARNING
        elif levelno >= logging.INFO:
            return cls.INFO
        elif levelno >= logging.DEBUG:
            return cls.DEBUG

        return cls.TRACE


class Redaction(enum.Enum):
    """
    Decision returned by a redactor for a single key.

    A redactor may also return a callable, in which case the value is
    replaced by the callable's result before it is formatted.
    """

    PLAIN = "plain"
    SKIP = "skip"


Redactor = Callable[[str], Union[Redaction, Callable[[Any], Any]]]


def _is_control(ch: str) -> bool:
    # C0, DEL, C1 and the Unicode line/paragraph separators, all of which
    # str.splitlines or a terminal would treat as something other than text.
    return ch < " " or "\x7f" <= ch <= "\x9f" or ch == "\u2028" or ch == "\u2029"


def _escape_char(ch: str) -> str:
    if ch in _ESCAPES:
        return _ESCAPES[ch]
    if _is_control(ch):
        if ch > "\xff":
            return "\\u{:04x}".format(ord(ch))
        return "\\x{:02x}".format(ord(ch))
    return ch


def format_string(value: str, force_quotes: bool = False) -> str:
    """
    Process the provided string with any necessary quoting and/or escaping.

    Strings holding whitespace, '=', '"' or control characters are quoted.
    Backslashes are only escaped inside quotes, so a bare value is always
    emitted exactly as given.
    """
    needs_quoting = force_quotes or not value
    if not needs_quoting:
        needs_quoting = any(
            ch.isspace() or ch == "=" or ch == '"' or _is_control(ch) for ch in value
        )

    if not needs_quoting:
        return value

    return '"{}"'.format("".join(_escape_char(ch) for ch in value))


def format_error(exc: BaseException) -> str:
    """
    Return the error-description text for an exception instance.
    """
    name = type(exc).__name__
    try:
        message = str(exc)
    except Exception:
        message = ""

    return "{}: {}".format(name, message) if message else name


def _to_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="backslashreplace")
    if isinstance(value, BaseException):
        return format_error(value)
    if isinstance(value, enum.Enum):
        value = value.value

    # Logging must never raise, so objects with broken __str__ degrade to
    # their repr and finally to their type name.
    try:
        return str(value)
    except Exception:
        pass
    try:
        return repr(value)
    except Exception:
        return "<unprintable {}>".format(type(value).__name__)


def format_value(value: Any, force_quotes: bool = False) -> str:
    """
    Map the provided value to the proper logfmt formatted string.
    """
    if value is None:
        text = ""
    elif isinstance(value, bool):
        text = "true" if value else "false"
    else:
        return format_string(_to_text(value), force_quotes)

    return '"{}"'.format(text) if force_quotes else text


def normalize_key(key: str) -> str:
    """
    Return a key that is always a single valid logfmt token.

    Whitespace, '=' and '"' are replaced by underscores and an empty key
    becomes a single underscore. Keys are normalized rather than rejected so
    that a badly named field never prevents a record from being logged.
    """
    if not key:
        return "_"

    return "".join(
        "_" if ch.isspace() or ch == "=" or ch == '"' or _is_control(ch) else ch
        for ch in key
    )


def format_pair(key: str, value: Any, force_quotes: bool = False) -> str:
    return "{}={}".format(normalize_key(str(key)), format_value(value, force_quotes))


def _iter_pairs(pairs: Optional[Pairs]) -> Iterable[Tuple[str, Any]]:
    if pairs is None:
        return ()
    if isinstance(pairs, Mapping):
        return pairs.items()
    return pairs


def _format_level(level: Union[Level, str], force_quotes: bool) -> str:
    if isinstance(level, Level):
        return '"{}"'.format(level.value) if force_quotes else level.value
    return format_value(level, force_quotes)


def encode(
    prefix: str,
    level: Union[Level, str],
    message: str,
    pairs: Optional[Pairs] = None,
    force_quotes: bool = False,
    redactor: Optional[Redactor] = None,
) -> str:
    """
    Encode a single record into a newline terminated logfmt line.

    The prefix is written verbatim. The level and message always come first,
    followed by the pairs in the order given; duplicate keys are kept.
    """
    tokens = [
        "level={}".format(_format_level(level, force_quotes)),
        "msg={}".format(format_value(message, force_quotes)),
    ]

    for key, value in _iter_pairs(pairs):
        key = normalize_key(str(key))

        if redactor is not None:
            decision = redactor(key)
            if decision is Redaction.SKIP:
                continue
            # Anything that is neither SKIP nor a replacement keeps the value.
            if callable(decision):
                value = decision(value)

        tokens.append(format_pair(key, value, force_quotes))

    return "{}{}\n".format(prefix, " ".join(tokens))


class LogfmtEncoder:
    """
    Encoder bound to a prefix and quoting options chosen at construction.

    Instances hold no mutable state. They are not documented as thread-safe
    though: writes from several threads must be serialized by whoever owns
    the sink, e.g. ``LogfmtHandler``'s lock.
    """

    def __init__(
        self,
        prefix: str = "",
        force_quotes: bool = False,
        redactor: Optional[Redactor] = None,
    ):
        self._prefix = prefix
        self._force_quotes = force_quotes
        self._redactor = redactor

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def force_quotes(self) -> bool:
        return self._force_quotes

    @property
    def redactor(self) -> Optional[Redactor]:
        return self._redactor

    def encode(
        self, level: Union[Level, str], message: str, pairs: Optional[Pairs] = None
    ) -> str:
        return encode(
            self._prefix,
            level,
            message,
            pairs,
            force_quotes=self._force_quotes,
            redactor=self._redactor,
        )

    def __repr__(self) -> str:
        return "{}(prefix={!r}, force_quotes={!r})".format(
            type(self).__name__, self._prefix, self._force_quotes
        )
