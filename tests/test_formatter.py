import io
import logging
import logging.config
import sys
import time

import pytest

from logfmt_encoder import TRACE, Logfmter, Redaction


def make_record(msg="hi", level=logging.INFO, **attrs):
    return logging.makeLogRecord(
        {
            "name": "tests",
            "msg": msg,
            "levelno": level,
            "levelname": logging.getLevelName(level),
            **attrs,
        }
    )


class TestLogfmterFormat:
    def test_message(self):
        record = logging.LogRecord(
            name="tests",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="hello %s",
            args=("world",),
            exc_info=None,
        )

        assert Logfmter().format(record) == 'level=info msg="hello world"'

    def test_no_trailing_newline(self):
        assert not Logfmter().format(make_record()).endswith("\n")

    @pytest.mark.parametrize(
        "level, expected",
        [
            (logging.CRITICAL, "critical"),
            (logging.ERROR, "error"),
            (logging.WARNING, "warning"),
            (logging.INFO, "info"),
            (logging.DEBUG, "debug"),
            (TRACE, "trace"),
        ],
    )
    def test_levels(self, level, expected):
        assert Logfmter().format(make_record(level=level)) == f"level={expected} msg=hi"

    def test_prefix(self):
        formatter = Logfmter(prefix="svc: ")
        record = make_record("bad thing", logging.ERROR, code="E1", detail="x y")

        assert formatter.format(record) == (
            'svc: level=error msg="bad thing" code=E1 detail="x y"'
        )

    def test_extras(self):
        record = make_record(user="alice", count=3, ok=True, nothing=None)

        assert Logfmter().format(record) == (
            "level=info msg=hi user=alice count=3 ok=true nothing="
        )

    def test_nested_extras_are_flattened(self):
        record = make_record(ctx={"req": {"id": 7, "path": "/a b"}, "user": "bob"})

        assert Logfmter().format(record) == (
            'level=info msg=hi ctx.req.id=7 ctx.req.path="/a b" ctx.user=bob'
        )

    def test_self_referencing_extras(self):
        ctx = {"id": 1}
        ctx["self"] = ctx
        record = make_record("x", logging.ERROR, ctx=ctx)

        assert Logfmter().format(record) == (
            "level=error msg=x ctx.id=1 ctx.self=\"{'id': 1, 'self': {...}}\""
        )

    def test_repeated_but_acyclic_dicts_are_flattened(self):
        shared = {"v": 1}
        record = make_record(ctx={"a": shared, "b": shared})

        assert Logfmter().format(record) == "level=info msg=hi ctx.a.v=1 ctx.b.v=1"

    def test_extra_keys_are_normalized(self):
        record = make_record()
        record.__dict__["my key"] = "v"

        assert Logfmter().format(record) == "level=info msg=hi my_key=v"

    def test_keys_and_mapping(self):
        formatter = Logfmter(keys=["logger", "missing"], mapping={"logger": "name"})
        record = make_record(user="alice")

        assert formatter.format(record) == "level=info msg=hi logger=tests user=alice"

    def test_asctime(self):
        formatter = Logfmter(keys=["ts"], mapping={"ts": "asctime"}, datefmt="%Y")
        record = make_record()
        year = time.strftime("%Y", time.localtime(record.created))

        assert formatter.format(record) == f"level=info msg=hi ts={year}"

    def test_force_quotes(self):
        formatter = Logfmter(force_quotes=True)

        assert formatter.format(make_record(n=1)) == 'level="info" msg="hi" n="1"'

    def test_redactor(self):
        def redactor(key):
            if key == "password":
                return Redaction.SKIP
            if key == "token":
                return lambda value: value[:2] + "..."
            return Redaction.PLAIN

        formatter = Logfmter(redactor=redactor)
        record = make_record(user="alice", password="hunter2", token="abcdef")

        assert formatter.format(record) == "level=info msg=hi user=alice token=ab..."

    def test_exc_info(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record("failed", logging.ERROR, exc_info=sys.exc_info())

        line = Logfmter().format(record)

        assert line.startswith('level=error msg=failed exc_info="Traceback')
        assert "\\n" in line
        assert "\n" not in line
        assert line.endswith('ValueError: boom"')

    def test_stack_info(self):
        record = make_record(stack_info="Stack (most recent call last):\n  here")

        assert Logfmter().format(record) == (
            'level=info msg=hi stack_info="Stack (most recent call last):\\n  here"'
        )

    def test_records_are_independent(self):
        formatter = Logfmter()

        assert formatter.format(make_record(a=1)) == "level=info msg=hi a=1"
        assert formatter.format(make_record()) == "level=info msg=hi"


class TestLoggingIntegration:
    @pytest.fixture
    def logger(self):
        logger = logging.getLogger("logfmt_encoder.tests.formatter")
        logger.setLevel(TRACE)
        logger.propagate = False
        yield logger
        for handler in list(logger.handlers):
            logger.removeHandler(handler)

    def test_logger_extra(self, logger):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(Logfmter())
        logger.addHandler(handler)

        logger.info("hello", extra={"a": 1, "b": "x y"})

        assert stream.getvalue() == 'level=info msg=hello a=1 b="x y"\n'

    def test_logger_adapter(self, logger):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(Logfmter())
        logger.addHandler(handler)

        logging.LoggerAdapter(logger, {"logger": "tests"}).debug("hi there")

        assert stream.getvalue() == 'level=debug msg="hi there" logger=tests\n'

    def test_trace_level(self, logger):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(Logfmter())
        logger.addHandler(handler)

        logger.log(TRACE, "deep")

        assert stream.getvalue() == "level=trace msg=deep\n"

    def test_dict_config(self, logger):
        stream = io.BytesIO()

        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "logfmt": {
                        "()": "logfmt_encoder.Logfmter",
                        "prefix": "app: ",
                        "keys": ["logger"],
                        "mapping": {"logger": "name"},
                    }
                },
                "handlers": {
                    "sink": {
                        "()": "logfmt_encoder.LogfmtHandler",
                        "stream": stream,
                        "formatter": "logfmt",
                    }
                },
                "loggers": {
                    logger.name: {
                        "handlers": ["sink"],
                        "level": "INFO",
                        "propagate": False,
                    }
                },
            }
        )

        logger.warning("disk full", extra={"free": 0})

        assert stream.getvalue() == (
            b"app: level=warning msg=\"disk full\" "
            b"logger=logfmt_encoder.tests.formatter free=0\n"
        )
